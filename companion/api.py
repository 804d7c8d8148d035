"""HTTP API for the personal data companion."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from .app_types import UserSettings
from .companion_service import CompanionService, DataView, build_service
from .errors import (
    CompanionError,
    DuplicateUser,
    InvalidCredentials,
    InvalidInput,
    LocationNotFound,
    UnknownUser,
    Unavailable,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="companion/api")

_service: Optional[CompanionService] = None


def get_service() -> CompanionService:
    """Lazily build the process-wide service (overridden in tests)."""
    global _service
    if _service is None:
        _service = build_service()
    return _service


router = APIRouter()


class CredentialsRequest(BaseModel):
    """Username/PIN pair for register, login and switch."""
    username: str
    pin: str


class SessionResponse(BaseModel):
    """Who is active and with which settings."""
    username: str
    is_guest: bool
    settings: UserSettings


class UsersResponse(BaseModel):
    users: list[str]


class WeatherRowModel(BaseModel):
    time: str
    temp: str
    summary: str


class ArticleModel(BaseModel):
    title: str
    source: str
    published: str
    url: str


class WeatherResponse(BaseModel):
    """Hourly weather plus cache/offline status."""
    owner: str
    status: str
    stale: bool
    fetched_at: datetime
    city: Optional[str] = None
    units: Optional[str] = None
    rows: list[WeatherRowModel]


class NewsResponse(BaseModel):
    """Headlines plus cache/offline status."""
    owner: str
    topic: str
    status: str
    stale: bool
    fetched_at: datetime
    rows: list[ArticleModel]


def _http_error(exc: CompanionError) -> HTTPException:
    """Map core errors to HTTP status codes."""
    if isinstance(exc, InvalidInput):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, DuplicateUser):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, UnknownUser):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidCredentials):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    if isinstance(exc, Unavailable):
        detail = str(exc.cause) if isinstance(exc.cause, LocationNotFound) else "Data unavailable (offline and nothing cached)"
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
    logger.error("Unhandled companion error", extra={"error": str(exc)})
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _session_response(service: CompanionService) -> SessionResponse:
    identity, user_settings = service.sessions.snapshot()
    return SessionResponse(username=identity.username, is_guest=identity.is_guest, settings=user_settings)


def _rows(view: DataView) -> list[dict]:
    payload = view.result.payload or {}
    return list(payload.get("rows") or [])


@router.get("/session", response_model=SessionResponse)
def get_session(service: CompanionService = Depends(get_service)):
    """Return the active identity and its settings."""
    return _session_response(service)


@router.post("/auth/register", response_model=SessionResponse)
def register(req: CredentialsRequest, service: CompanionService = Depends(get_service)):
    """Create an account and log into it."""
    try:
        service.register(req.username, req.pin)
    except CompanionError as exc:
        raise _http_error(exc)
    return _session_response(service)


@router.post("/auth/login", response_model=SessionResponse)
def login(req: CredentialsRequest, service: CompanionService = Depends(get_service)):
    """Authenticate and make the account active."""
    try:
        service.login(req.username, req.pin)
    except CompanionError as exc:
        raise _http_error(exc)
    return _session_response(service)


@router.post("/auth/switch", response_model=SessionResponse)
def switch_account(req: CredentialsRequest, service: CompanionService = Depends(get_service)):
    """Swap the active account in one step."""
    try:
        service.switch(req.username, req.pin)
    except CompanionError as exc:
        raise _http_error(exc)
    return _session_response(service)


@router.post("/auth/logout", response_model=SessionResponse)
def logout(service: CompanionService = Depends(get_service)):
    """Return to the guest identity."""
    service.logout()
    return _session_response(service)


@router.get("/users", response_model=UsersResponse)
def list_users(service: CompanionService = Depends(get_service)):
    return UsersResponse(users=service.list_users())


@router.delete("/users/{username}", response_model=SessionResponse)
def delete_user(username: str, service: CompanionService = Depends(get_service)):
    """Delete an account with its cache and settings; logs out if it was active."""
    try:
        service.delete_user(username)
    except CompanionError as exc:
        raise _http_error(exc)
    return _session_response(service)


@router.get("/settings", response_model=UserSettings)
def get_settings(service: CompanionService = Depends(get_service)):
    return service.sessions.settings


@router.put("/settings", response_model=UserSettings)
def put_settings(user_settings: UserSettings, service: CompanionService = Depends(get_service)):
    """Persist settings for the active identity."""
    return service.update_settings(user_settings)


@router.get("/weather", response_model=WeatherResponse)
def get_weather(refresh: bool = False, service: CompanionService = Depends(get_service)):
    """Hourly weather for the active user; ``refresh`` skips the freshness check."""
    try:
        view = service.get_weather(force_refresh=refresh)
    except CompanionError as exc:
        raise _http_error(exc)
    payload = view.result.payload or {}
    return WeatherResponse(
        owner=view.owner,
        status=view.status,
        stale=view.result.stale,
        fetched_at=view.result.fetched_at,
        city=payload.get("city"),
        units=payload.get("units"),
        rows=_rows(view),
    )


@router.get("/news", response_model=NewsResponse)
def get_news(refresh: bool = False, topic: Optional[str] = None, service: CompanionService = Depends(get_service)):
    """Headlines for the active user's topic (or ``topic``)."""
    try:
        view = service.get_news(force_refresh=refresh, topic=topic)
    except CompanionError as exc:
        raise _http_error(exc)
    payload = view.result.payload or {}
    return NewsResponse(
        owner=view.owner,
        topic=payload.get("topic") or view.kind.topic or "",
        status=view.status,
        stale=view.result.stale,
        fetched_at=view.result.fetched_at,
        rows=_rows(view),
    )
