"""Upstream collaborators: geocoding, hourly weather and topic news."""

from .base import CallableDataSource, CompanionDataSource
from .factory import build_data_source
from .hn_client import Article, fetch_news
from .open_meteo_client import Location, WeatherRow, fetch_hourly_weather, geocode

__all__ = [
    "build_data_source",
    "CallableDataSource",
    "CompanionDataSource",
    "Article",
    "Location",
    "WeatherRow",
    "fetch_hourly_weather",
    "fetch_news",
    "geocode",
]
