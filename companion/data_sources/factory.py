"""Factory for the default upstream data source."""

from __future__ import annotations

from functools import partial

from companion import config
from companion.data_sources.base import CallableDataSource, CompanionDataSource
from companion.data_sources.hn_client import fetch_news
from companion.data_sources.open_meteo_client import fetch_hourly_weather, geocode
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


def build_data_source(settings: config.Settings | None = None) -> CompanionDataSource:
    """Wire Open-Meteo (geocoding + weather) and HN Algolia (news) with configured limits."""
    settings = settings or config.settings
    logger.info("Using Open-Meteo and HN Algolia data sources")
    timeout = settings.http_timeout_seconds
    return CallableDataSource(
        geocoder=partial(geocode, timeout=timeout),
        weather=partial(fetch_hourly_weather, hours=settings.weather_hours, timeout=timeout),
        news=partial(fetch_news, count=settings.news_count, timeout=timeout),
    )
