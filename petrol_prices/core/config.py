"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_BASEROW_API_URL = "https://api.baserow.io/api"


class ConfigError(RuntimeError):
    """Raised when a configuration value cannot be parsed."""


@dataclass(frozen=True)
class Settings:
    baserow_api_url: str = DEFAULT_BASEROW_API_URL
    baserow_public_token: str = ""
    baserow_token: str = ""
    stations_table_id: Optional[int] = None
    prices_table_id: Optional[int] = None
    stations_geojson_path: str = ""
    cache_ttl_seconds: int = 300
    default_page_size: int = 12
    preferences_path: str = ""
    request_timeout: int = 15
    port: int = 8080


def _get_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    baserow_api_url = (os.getenv("BASEROW_API_URL") or DEFAULT_BASEROW_API_URL).rstrip("/")
    baserow_public_token = os.getenv("BASEROW_PUBLIC_TOKEN", "")
    baserow_token = os.getenv("BASEROW_TOKEN", "")
    stations_table_id = _get_int("BASEROW_STATIONS_TABLE_ID", None)
    prices_table_id = _get_int("BASEROW_PRICES_TABLE_ID", None)
    stations_geojson_path = os.getenv("STATIONS_GEOJSON_PATH", "")
    cache_ttl_seconds = _get_int("STATIONS_CACHE_TTL", 300)
    default_page_size = _get_int("DEFAULT_PAGE_SIZE", 12)
    preferences_path = os.getenv("PREFERENCES_PATH", "")
    request_timeout = _get_int("REQUEST_TIMEOUT", 15)
    port = _get_int("PORT", 8080)

    if default_page_size <= 0:
        raise ConfigError("DEFAULT_PAGE_SIZE must be positive")

    if stations_table_id is None:
        logger.warning("BASEROW_STATIONS_TABLE_ID is not set; stations will load from the GeoJSON snapshot only.")
    if stations_table_id is not None and not (baserow_public_token or baserow_token):
        logger.warning("Neither BASEROW_PUBLIC_TOKEN nor BASEROW_TOKEN is configured; Baserow requests will fail.")
    if prices_table_id is None:
        logger.warning("BASEROW_PRICES_TABLE_ID is not set; stations will be served without fuel prices.")

    return Settings(
        baserow_api_url=baserow_api_url,
        baserow_public_token=baserow_public_token,
        baserow_token=baserow_token,
        stations_table_id=stations_table_id,
        prices_table_id=prices_table_id,
        stations_geojson_path=stations_geojson_path,
        cache_ttl_seconds=cache_ttl_seconds,
        default_page_size=default_page_size,
        preferences_path=preferences_path,
        request_timeout=request_timeout,
        port=port,
    )
