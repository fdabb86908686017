"""Utilities for transforming upstream station and price rows into Station objects.

This is the only place that knows about alternate upstream field names
(``Latitude`` vs ``lat``, ``City`` vs ``suburb`` and so on).
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from petrol_prices.core.geo import is_valid_coordinate
from petrol_prices.core.models import FuelPriceEntry, Station

logger = logging.getLogger(__name__)

# Baserow single-select option ids for the "Fuel Type" and "Price Trend" columns.
FUEL_TYPE_OPTIONS = {
    3812408: "unleaded",
    3812409: "premium98",
    3812410: "diesel",
    3812411: "lpg",
    3812412: "premium95",
}
TREND_OPTIONS = {
    3812413: "increasing",
    3812414: "stable",
    3812415: "decreasing",
}

FUEL_TYPE_ALIASES = {
    "unleaded": "unleaded",
    "unleaded 91": "unleaded",
    "unleaded91": "unleaded",
    "ulp": "unleaded",
    "u91": "unleaded",
    "regular": "unleaded",
    "premium": "premium95",
    "premium 95": "premium95",
    "premium95": "premium95",
    "unleaded95": "premium95",
    "unleaded 95": "premium95",
    "p95": "premium95",
    "u95": "premium95",
    "premium 98": "premium98",
    "premium98": "premium98",
    "unleaded98": "premium98",
    "p98": "premium98",
    "u98": "premium98",
    "diesel": "diesel",
    "premium diesel": "diesel",
    "lpg": "lpg",
    "autogas": "lpg",
    "e10": "e10",
}

BRAND_ALIASES = (
    ("7-ELEVEN", "7-Eleven"),
    ("7 ELEVEN", "7-Eleven"),
    ("BP", "BP"),
    ("SHELL", "Shell"),
    ("CALTEX", "Caltex"),
    ("AMPOL", "Ampol"),
    ("MOBIL", "Mobil"),
    ("UNITED", "United"),
    ("LIBERTY", "Liberty"),
    ("COSTCO", "Costco"),
    ("PUMA", "Puma"),
)

# Below this a price is taken to be dollars per litre rather than cents.
_DOLLAR_PRICE_CEILING = 10.0


def _first(row: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = row.get(name)
        if value not in (None, ""):
            return value
    return None


def _strip_or_empty(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        value = value.get("value") or value.get("name") or ""
    return str(value).strip()


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        number = float(value)
    except (TypeError, ValueError):
        return None
    # NaN and infinities would poison sorting and JSON output.
    return number if math.isfinite(number) else None


def _safe_int(value: Any) -> Optional[int]:
    number = _safe_float(value)
    return int(number) if number is not None else None


def _select_value(value: Any) -> Any:
    """Baserow single selects arrive as an option id or as ``{"id": .., "value": ..}``."""
    if isinstance(value, dict):
        return value.get("value") or value.get("id")
    return value


def _link_ids(value: Any) -> List[Any]:
    """Baserow link-row fields are lists of ids or of ``{"id": .., "value": ..}``."""
    if not isinstance(value, list):
        return []
    ids = []
    for item in value:
        ids.append(item.get("id") if isinstance(item, dict) else item)
    return [item for item in ids if item is not None]


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable timestamp %r", value)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_fuel_type(value: Any) -> str:
    value = _select_value(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return FUEL_TYPE_OPTIONS.get(value, "unknown")
    label = _strip_or_empty(value).lower()
    if not label:
        return "unknown"
    return FUEL_TYPE_ALIASES.get(label, label)


def normalize_price(value: Any) -> Optional[float]:
    """Cents per litre; dollar amounts are converted, non-positive values become None."""
    price = _safe_float(value)
    if price is None or price <= 0:
        return None
    if price < _DOLLAR_PRICE_CEILING:
        price = price * 100
    return round(price, 1)


def normalize_brand(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(_strip_or_empty(item) for item in value if _strip_or_empty(item))
    raw = _strip_or_empty(value)
    upper = raw.upper()
    for needle, brand in BRAND_ALIASES:
        if needle in upper.split() or (len(needle) > 2 and needle in upper):
            return brand
    return raw


def _coordinate_pair(row: Mapping[str, Any]) -> tuple:
    latitude = _safe_float(_first(row, "latitude", "Latitude", "lat"))
    longitude = _safe_float(_first(row, "longitude", "Longitude", "lng", "lon"))
    if not is_valid_coordinate(latitude, longitude):
        return None, None
    return latitude, longitude


def to_fuel_price_entry(row: Mapping[str, Any]) -> FuelPriceEntry:
    trend = _select_value(_first(row, "trend", "priceTrend", "Price Trend"))
    if isinstance(trend, int) and not isinstance(trend, bool):
        trend = TREND_OPTIONS.get(trend)
    return FuelPriceEntry(
        fuel_type=normalize_fuel_type(_first(row, "fuelType", "fuel_type", "Fuel Type", "type")),
        price=normalize_price(_first(row, "price", "pricePerLiter", "Price Per Liter", "price_cpl")),
        trend=_strip_or_empty(trend) or None,
        last_updated=parse_timestamp(_first(row, "lastUpdated", "last_updated", "Last Updated")),
    )


def _fuel_prices_from(row: Mapping[str, Any]) -> List[FuelPriceEntry]:
    listed = row.get("fuelPrices") or row.get("fuel_prices")
    if isinstance(listed, list):
        return [to_fuel_price_entry(item) for item in listed if isinstance(item, Mapping)]

    keyed = row.get("prices")
    if isinstance(keyed, Mapping):
        entries = []
        for fuel_type, price in keyed.items():
            if fuel_type in ("lastUpdated", "last_updated"):
                continue
            entries.append(FuelPriceEntry(fuel_type=normalize_fuel_type(fuel_type), price=normalize_price(price)))
        return entries
    return []


def to_station(row: Mapping[str, Any], index: int = 0) -> Station:
    """Map one raw station row (Baserow, legacy JSON or flattened GeoJSON) to a Station."""
    latitude, longitude = _coordinate_pair(row)
    station_id = _first(row, "id", "Id", "ID", "objectid", "site_id")
    if station_id is None:
        station_id = index + 1

    postal_code = _first(row, "postalCode", "postal_code", "Postal Code", "postcode", "station_postcode")
    if isinstance(postal_code, float) and postal_code.is_integer():
        postal_code = int(postal_code)

    return Station(
        id=station_id,
        name=_strip_or_empty(_first(row, "name", "Station Name", "station_name")) or "Unknown Station",
        brand=normalize_brand(_first(row, "brand", "Brand", "station_owner")),
        address=_strip_or_empty(_first(row, "address", "Address", "station_address", "gnaf_formatted_address")),
        suburb=_strip_or_empty(_first(row, "suburb", "city", "City", "Suburb", "station_suburb", "gnaf_suburb")),
        postal_code=_strip_or_empty(postal_code),
        latitude=latitude,
        longitude=longitude,
        fuel_prices=_fuel_prices_from(row),
        last_updated=parse_timestamp(
            _first(row, "lastUpdated", "last_updated", "Last Updated", "station_revised_date")
        ),
        rating=_safe_float(_first(row, "rating", "Rating")),
        review_count=_safe_int(_first(row, "reviewCount", "review_count", "user_ratings_total")),
        state=_strip_or_empty(_first(row, "state", "State", "Region", "station_state")) or "VIC",
    )


def group_prices_by_station(price_rows: Iterable[Mapping[str, Any]]) -> Dict[Any, List[FuelPriceEntry]]:
    """Index Baserow price rows by every station they link to."""
    grouped: Dict[Any, List[FuelPriceEntry]] = {}
    for row in price_rows:
        entry = to_fuel_price_entry(row)
        for station_id in _link_ids(_first(row, "Petrol Station", "stationIds", "station_ids")):
            grouped.setdefault(station_id, []).append(entry)
    return grouped


def merge_stations_with_prices(
    station_rows: Iterable[Mapping[str, Any]],
    price_rows: Iterable[Mapping[str, Any]],
) -> List[Station]:
    prices_by_station = group_prices_by_station(price_rows)
    stations = []
    for index, row in enumerate(station_rows):
        station = to_station(row, index)
        linked = prices_by_station.get(station.id)
        if linked:
            station.fuel_prices = list(linked)
        if station.last_updated is None:
            stamps = [entry.last_updated for entry in station.fuel_prices if entry.last_updated]
            station.last_updated = max(stamps) if stamps else None
        stations.append(station)
    return stations


def from_geojson(collection: Mapping[str, Any]) -> List[Station]:
    """Stations from a FeatureCollection with ``[lng, lat]`` point geometry."""
    features = collection.get("features")
    if not isinstance(features, list):
        raise ValueError("Invalid GeoJSON: missing features array")

    stations = []
    for index, feature in enumerate(features):
        if not isinstance(feature, Mapping):
            continue
        props = dict(feature.get("properties") or {})
        coords = (feature.get("geometry") or {}).get("coordinates") or []
        if len(coords) >= 2:
            props.setdefault("longitude", coords[0])
            props.setdefault("latitude", coords[1])
        stations.append(to_station(props, index))
    return stations


def to_geojson(stations: Iterable[Station]) -> Dict[str, Any]:
    """Inverse of ``from_geojson`` for snapshot exports. Stations without a location get null geometry."""
    features = []
    for station in stations:
        geometry = None
        if station.has_location:
            geometry = {"type": "Point", "coordinates": [station.longitude, station.latitude]}
        properties = station.to_dict()
        properties.pop("latitude")
        properties.pop("longitude")
        features.append({"type": "Feature", "geometry": geometry, "properties": properties})
    return {"type": "FeatureCollection", "features": features}
