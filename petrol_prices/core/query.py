"""Station query engine: filter, sort and paginate an in-memory station list.

``query`` is a pure function of its inputs. Stages run in a fixed order:
region, text search, fuel type, brand, price range, sort, pagination.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from petrol_prices.core.geo import haversine_km, is_valid_coordinate
from petrol_prices.core.models import (
    ALL,
    DEFAULT_PAGE_SIZE,
    SORT_DISTANCE,
    SORT_NAME,
    SORT_OPTIONS,
    SORT_PRICE_HIGH,
    SORT_PRICE_LOW,
    SORT_RECENTLY_UPDATED,
    SORT_SUBURB,
    SORT_TOP_RATED,
    FilterSpec,
    LatLng,
    QueryResult,
    Station,
)
from petrol_prices.core.pricing import average_price
from petrol_prices.core.regions import RegionClassifier, default_classifier

logger = logging.getLogger(__name__)


def query(
    stations: Sequence[Station],
    spec: FilterSpec,
    classifier: Optional[RegionClassifier] = None,
) -> QueryResult:
    """Run the full pipeline and return one page of results."""
    ordered = filter_and_sort(stations, spec, classifier)
    return paginate(ordered, spec.page, spec.page_size)


def filter_and_sort(
    stations: Sequence[Station],
    spec: FilterSpec,
    classifier: Optional[RegionClassifier] = None,
) -> List[Station]:
    classifier = classifier or default_classifier
    result = list(stations)
    result = filter_by_region(result, spec.region, classifier)
    result = filter_by_search(result, spec.search)
    result = filter_by_fuel_type(result, spec.fuel_type)
    result = filter_by_brand(result, spec.brand)
    result = filter_by_price_range(result, spec.price_min, spec.price_max)
    return sort_stations(result, spec.sort_by, spec.user_location)


def _is_all(value: Optional[str]) -> bool:
    return value is None or value.strip() == "" or value.strip().lower() == ALL


def filter_by_region(stations: List[Station], region: str, classifier: RegionClassifier) -> List[Station]:
    if _is_all(region):
        return stations
    wanted = region.strip().lower()
    return [station for station in stations if classifier.classify_station(station).id == wanted]


def filter_by_search(stations: List[Station], search: str) -> List[Station]:
    term = (search or "").strip().lower()
    if not term:
        return stations

    def matches(station: Station) -> bool:
        fields = (station.name, station.address, station.suburb, station.brand, station.postal_code)
        return any(term in (value or "").lower() for value in fields)

    return [station for station in stations if matches(station)]


def filter_by_fuel_type(stations: List[Station], fuel_type: str) -> List[Station]:
    if _is_all(fuel_type):
        return stations
    wanted = fuel_type.strip().lower()
    return [
        station
        for station in stations
        if any(entry.fuel_type.lower() == wanted for entry in station.fuel_prices)
    ]


def filter_by_brand(stations: List[Station], brand: str) -> List[Station]:
    if _is_all(brand):
        return stations
    wanted = brand.strip().lower()
    return [station for station in stations if station.brand and wanted in station.brand.lower()]


def filter_by_price_range(
    stations: List[Station],
    price_min: Optional[float],
    price_max: Optional[float],
) -> List[Station]:
    """Keep stations whose mean price lies in [min, max]; a no-op when neither bound is set."""
    if price_min is None and price_max is None:
        return stations

    low = price_min if price_min is not None else -math.inf
    high = price_max if price_max is not None else math.inf
    kept = []
    for station in stations:
        mean = average_price(station.fuel_prices)
        if mean is not None and low <= mean <= high:
            kept.append(station)
    return kept


def _sort_with_missing_last(
    stations: List[Station],
    key: Callable[[Station], Any],
    reverse: bool = False,
) -> List[Station]:
    # list.sort is stable, including with reverse=True.
    present = []
    missing = []
    for station in stations:
        value = key(station)
        if value is None:
            missing.append(station)
        else:
            present.append((value, station))
    present.sort(key=lambda pair: pair[0], reverse=reverse)
    return [station for _, station in present] + missing


def _distance_key(user_location: LatLng) -> Callable[[Station], Optional[float]]:
    user_lat, user_lng = user_location

    def key(station: Station) -> Optional[float]:
        if not station.has_location:
            return None
        return haversine_km(user_lat, user_lng, station.latitude, station.longitude)

    return key


def sort_stations(
    stations: List[Station],
    sort_by: str,
    user_location: Optional[LatLng] = None,
) -> List[Station]:
    """Stable sort. Stations lacking the sort value always go last."""
    sort_by = (sort_by or SORT_NAME).strip().lower()

    if sort_by == SORT_PRICE_LOW:
        return _sort_with_missing_last(stations, lambda s: average_price(s.fuel_prices))
    if sort_by == SORT_PRICE_HIGH:
        return _sort_with_missing_last(stations, lambda s: average_price(s.fuel_prices), reverse=True)
    if sort_by == SORT_DISTANCE and user_location is not None:
        return _sort_with_missing_last(stations, _distance_key(user_location))
    if sort_by == SORT_RECENTLY_UPDATED:
        return _sort_with_missing_last(stations, lambda s: s.last_updated, reverse=True)
    if sort_by == SORT_SUBURB:
        return _sort_with_missing_last(stations, lambda s: s.suburb.casefold() if s.suburb else None)
    if sort_by == SORT_TOP_RATED:
        return _sort_with_missing_last(stations, lambda s: s.rating, reverse=True)

    if sort_by == SORT_DISTANCE:
        logger.debug("Distance sort requested without a user location; sorting by name")
    return sorted(stations, key=lambda s: (s.name or "").casefold())


def paginate(stations: List[Station], page: int, page_size: int) -> QueryResult:
    """Slice one page. Out-of-range page numbers clamp to the first or last page."""
    if page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE
    total_count = len(stations)
    total_pages = max(1, math.ceil(total_count / page_size))
    current_page = min(max(page, 1), total_pages)
    start = (current_page - 1) * page_size
    return QueryResult(
        stations=stations[start:start + page_size],
        current_page=current_page,
        total_pages=total_pages,
        total_count=total_count,
    )


# ---------- Wire format ----------


def _parse_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _parse_int(value: Any, default: int) -> int:
    number = _parse_float(value)
    if number is None:
        return default
    return int(number)


def _parse_choice(value: Any) -> str:
    if value is None:
        return ALL
    text = str(value).strip()
    return text if text else ALL


def _parse_location(payload: Mapping[str, Any]) -> Optional[LatLng]:
    near = payload.get("near")
    if isinstance(near, str) and "," in near:
        lat_raw, lng_raw = near.split(",", 1)
    else:
        lat_raw = payload.get("lat", payload.get("latitude"))
        lng_raw = payload.get("lng", payload.get("longitude"))
    latitude = _parse_float(lat_raw)
    longitude = _parse_float(lng_raw)
    if not is_valid_coordinate(latitude, longitude):
        return None
    return latitude, longitude


def parse_filter_spec(payload: Optional[Mapping[str, Any]], default_page_size: int = DEFAULT_PAGE_SIZE) -> FilterSpec:
    """Build a FilterSpec from the client's key/value form.

    Accepts ``priceRange: {min, max}`` or flat ``priceMin``/``priceMax``.
    Unknown sort keys fall back to name order and unparseable numbers to
    "unset", so this never raises on user input.
    """
    payload = payload or {}

    price_range = payload.get("priceRange")
    if not isinstance(price_range, Mapping):
        price_range = {}
    price_min = _parse_float(price_range.get("min", payload.get("priceMin")))
    price_max = _parse_float(price_range.get("max", payload.get("priceMax")))

    sort_by = str(payload.get("sortBy") or SORT_NAME).strip().lower()
    if sort_by not in SORT_OPTIONS:
        logger.debug("Unknown sortBy %r; using name", sort_by)
        sort_by = SORT_NAME

    page_size = _parse_int(payload.get("pageSize"), default_page_size)
    if page_size <= 0:
        page_size = default_page_size

    return FilterSpec(
        search=str(payload.get("search") or ""),
        fuel_type=_parse_choice(payload.get("fuelType")),
        brand=_parse_choice(payload.get("brand")),
        region=_parse_choice(payload.get("region")),
        price_min=price_min,
        price_max=price_max,
        sort_by=sort_by,
        page=_parse_int(payload.get("page"), 1),
        page_size=page_size,
        user_location=_parse_location(payload),
    )


def filter_spec_summary(spec: FilterSpec) -> Dict[str, Any]:
    """Active (non-default) filters, used in log lines and response metadata."""
    summary: Dict[str, Any] = {}
    if spec.search.strip():
        summary["search"] = spec.search.strip()
    for name in ("fuel_type", "brand", "region"):
        value = getattr(spec, name)
        if not _is_all(value):
            summary[name] = value
    if spec.price_min is not None:
        summary["price_min"] = spec.price_min
    if spec.price_max is not None:
        summary["price_max"] = spec.price_max
    return summary
