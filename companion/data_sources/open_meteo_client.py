"""Helpers for geocoding and hourly temperatures from the Open-Meteo APIs."""
from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass
from typing import List

import requests

from companion.app_types import Units
from companion.errors import FetchError, LocationNotFound
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag='open_meteo_client')

session = requests.Session()

OPEN_METEO_WEATHER_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"

EXPECTED_TEMPERATURE_UNITS = {"°C", "°F"}


@dataclass
class Location:
    """Geocoding match for a city query."""
    latitude: float
    longitude: float
    label: str


@dataclass
class WeatherRow:
    """One display row of the hourly forecast."""
    time: str
    temp: str
    summary: str


def _location_label(item: dict) -> str:
    """Build 'Name', 'Name (Country)' or 'Name, Region, Country'."""
    name = item.get("name", "")
    country = item.get("country") or ""
    admin1 = item.get("admin1") or ""
    if not country:
        return name
    if not admin1:
        return f"{name} ({country})"
    return f"{name}, {admin1}, {country}"


def geocode(query: str, *, timeout: float = 10) -> Location:
    """Resolve a city name to coordinates; raises LocationNotFound or FetchError."""
    params = {"name": query, "count": 1, "language": "en", "format": "json"}
    try:
        resp = session.get(OPEN_METEO_GEOCODING_URL, params=params, timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise FetchError(f"Geocoding failed for {query!r}: {exc}") from exc

    results = data.get("results") or []
    if not results:
        raise LocationNotFound(query)
    item = results[0]
    try:
        location = Location(
            latitude=float(item["latitude"]),
            longitude=float(item["longitude"]),
            label=_location_label(item),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise FetchError(f"Malformed geocoding result for {query!r}: {exc}") from exc
    logger.debug("Geocoded city", extra={"query": query, "label": location.label})
    return location


def _start_index(times: List[str], now_local: dt.datetime) -> int:
    """Index of the hour containing ``now_local`` (or the first later one)."""
    current_hour = now_local.replace(minute=0, second=0, microsecond=0)
    for i, t in enumerate(times):
        try:
            ts = dt.datetime.fromisoformat(t)
        except ValueError:
            continue
        if ts >= current_hour:
            return i
    return 0


def build_weather_rows(
    times: List[str],
    temperatures: List[float | None],
    *,
    now_local: dt.datetime,
    hours: int,
    symbol: str,
) -> List[WeatherRow]:
    """Turn Open-Meteo hourly arrays into display rows, first row labelled 'Now'."""
    start = _start_index(times, now_local)
    rows: List[WeatherRow] = []
    for i in range(start, min(start + hours, len(times))):
        label = "Now" if i == start else (times[i].split("T")[1] if "T" in times[i] else times[i])
        temp = temperatures[i] if i < len(temperatures) else None
        rows.append(
            WeatherRow(
                time=label,
                temp=f"{temp:.0f}{symbol}" if temp is not None else "--",
                summary="Hourly",
            )
        )
    return rows


def fetch_hourly_weather(
    latitude: float,
    longitude: float,
    units: Units,
    *,
    hours: int = 8,
    timeout: float = 10,
    now: dt.datetime | None = None,
) -> dict:
    """Fetch the next ``hours`` hourly temperatures as a cacheable payload."""
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "hourly": "temperature_2m",
        "timezone": "auto",
        "forecast_days": 2,
        "temperature_unit": units.temperature_unit,
    }
    try:
        resp = session.get(OPEN_METEO_WEATHER_URL, params=params, timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
        hourly = data["hourly"]
        times = hourly["time"]
        temperatures = hourly["temperature_2m"]
    except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
        raise FetchError(f"Weather fetch failed: {exc}") from exc

    unit = (data.get("hourly_units") or {}).get("temperature_2m")
    if unit and unit not in EXPECTED_TEMPERATURE_UNITS:
        logger.warning("Unexpected Open-Meteo unit", extra={"field": "temperature_2m", "unit": unit})

    # API times are local to the location; shift "now" by the reported offset
    offset = dt.timedelta(seconds=int(data.get("utc_offset_seconds") or 0))
    now_utc = now or dt.datetime.now(dt.timezone.utc)
    now_local = (now_utc.astimezone(dt.timezone.utc) + offset).replace(tzinfo=None)

    rows = build_weather_rows(times, temperatures, now_local=now_local, hours=hours, symbol=units.symbol)
    logger.info("Fetched hourly weather", extra={"rows": len(rows), "latitude": latitude, "longitude": longitude})
    return {
        "units": units.value,
        "timezone": data.get("timezone"),
        "rows": [asdict(r) for r in rows],
    }
