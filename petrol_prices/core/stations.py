"""Station loading with a Baserow primary source and a GeoJSON snapshot fallback."""

import json
import logging
import time
from pathlib import Path
from typing import List, Optional, Tuple

import requests

from petrol_prices.core.config import Settings, get_settings
from petrol_prices.core.models import Station
from petrol_prices.etl.transform import from_geojson, merge_stations_with_prices
from petrol_prices.vendors import baserow

logger = logging.getLogger(__name__)

_cache: Optional[Tuple[float, List[Station]]] = None


class StationDataUnavailable(RuntimeError):
    """Raised when no configured source produced any stations."""


def fetch_from_baserow(settings: Settings) -> List[Station]:
    """Fetch the station and price tables and join prices onto stations."""
    if settings.stations_table_id is None:
        return []

    auth = dict(
        token=settings.baserow_token or None,
        public_token=settings.baserow_public_token or None,
        timeout=settings.request_timeout,
    )
    station_rows = baserow.fetch_all_rows(settings.baserow_api_url, settings.stations_table_id, **auth)
    price_rows = []
    if settings.prices_table_id is not None:
        price_rows = baserow.fetch_all_rows(settings.baserow_api_url, settings.prices_table_id, **auth)

    stations = merge_stations_with_prices(station_rows, price_rows)
    logger.info("Merged %d stations with %d price rows from Baserow", len(stations), len(price_rows))
    return stations


def load_from_geojson(path: str) -> List[Station]:
    if not path:
        return []
    geojson_path = Path(path)
    if not geojson_path.is_file():
        logger.warning("GeoJSON snapshot %s does not exist", path)
        return []
    with geojson_path.open("r", encoding="utf-8") as fh:
        collection = json.load(fh)
    stations = from_geojson(collection)
    logger.info("Loaded %d stations from GeoJSON snapshot %s", len(stations), path)
    return stations


def load_stations(settings: Optional[Settings] = None, *, force_refresh: bool = False) -> List[Station]:
    """Return the cached station list, refreshing it once the TTL has passed."""
    global _cache
    settings = settings or get_settings()

    now = time.monotonic()
    if not force_refresh and _cache is not None:
        loaded_at, cached = _cache
        if now - loaded_at < settings.cache_ttl_seconds:
            return cached

    stations: List[Station] = []
    try:
        stations = fetch_from_baserow(settings)
    except (requests.RequestException, baserow.BaserowError) as exc:
        logger.error("Baserow fetch failed, falling back to GeoJSON: %s", exc)

    if not stations:
        try:
            stations = load_from_geojson(settings.stations_geojson_path)
        except (OSError, ValueError) as exc:
            logger.error("Failed to read GeoJSON snapshot %s: %s", settings.stations_geojson_path, exc)

    if not stations:
        if _cache is not None:
            logger.warning("All station sources failed; serving %d stale stations", len(_cache[1]))
            return _cache[1]
        raise StationDataUnavailable("No station data could be loaded from Baserow or the GeoJSON snapshot")

    _cache = (now, stations)
    return stations


def clear_cache() -> None:
    global _cache
    _cache = None


def find_station(stations: List[Station], station_id: str) -> Optional[Station]:
    for station in stations:
        if str(station.id) == str(station_id):
            return station
    return None
