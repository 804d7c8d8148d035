"""Exception taxonomy shared by the credential store, cache layer and clients."""


class CompanionError(Exception):
    """Base class for every error the companion core reports to callers."""


class InvalidInput(CompanionError):
    """Username or PIN failed format validation; nothing was written."""


class DuplicateUser(CompanionError):
    """A user with this name is already registered."""

    def __init__(self, username: str):
        super().__init__(f"User already exists: {username}")
        self.username = username


class UnknownUser(CompanionError):
    """No credential record exists for this name."""

    def __init__(self, username: str):
        super().__init__(f"Unknown user: {username}")
        self.username = username


class InvalidCredentials(CompanionError):
    """The PIN does not match the stored digest."""

    def __init__(self, username: str):
        super().__init__("Invalid PIN")
        self.username = username


class StoreCorrupt(CompanionError):
    """
    A persisted store could not be parsed.

    Loads never raise this; they fall back to an empty model and keep the
    instance on the store's ``diagnostics`` list instead.
    """

    def __init__(self, path, reason: str):
        super().__init__(f"Store at {path} is unreadable: {reason}")
        self.path = path
        self.reason = reason


class FetchError(CompanionError):
    """An upstream collaborator (weather, news, geocoding) failed."""


class LocationNotFound(FetchError):
    """Geocoding returned no match for the configured city."""

    def __init__(self, query: str):
        super().__init__(f"City not found: {query}")
        self.query = query


class Unavailable(CompanionError):
    """Fetch failed and there is no cached entry to fall back on."""

    def __init__(self, owner: str, kind, cause: Exception | None = None):
        super().__init__(f"No data available for {owner}/{kind}")
        self.owner = owner
        self.kind = kind
        self.cause = cause
