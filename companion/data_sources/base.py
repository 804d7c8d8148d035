"""Interfaces and helpers for the upstream data collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from companion.app_types import Units
from companion.data_sources.open_meteo_client import Location


class CompanionDataSource(Protocol):
    """Anything that can geocode a city and fetch weather and news payloads."""

    def geocode(self, query: str) -> Location:
        """Resolve a city name; raise LocationNotFound/FetchError on failure."""
        ...

    def fetch_weather(self, latitude: float, longitude: float, units: Units) -> dict:
        """Return an hourly weather payload; raise FetchError on failure."""
        ...

    def fetch_news(self, topic: str) -> dict:
        """Return an article list payload; raise FetchError on failure."""
        ...


@dataclass
class CallableDataSource(CompanionDataSource):
    """Wrap three callables so they can be swapped for different backends."""

    geocoder: Callable[..., Location]
    weather: Callable[..., dict]
    news: Callable[..., dict]

    def geocode(self, query: str) -> Location:
        """Delegate to the configured geocoding callable."""
        return self.geocoder(query)

    def fetch_weather(self, latitude: float, longitude: float, units: Units) -> dict:
        """Delegate to the configured weather callable."""
        return self.weather(latitude, longitude, units)

    def fetch_news(self, topic: str) -> dict:
        """Delegate to the configured news callable."""
        return self.news(topic)
