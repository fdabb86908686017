"""Core data models shared by the station query pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from shapely.geometry import Polygon

StationId = Union[int, str]
LatLng = Tuple[float, float]

ALL = "all"

SORT_NAME = "name"
SORT_PRICE_LOW = "price-low"
SORT_PRICE_HIGH = "price-high"
SORT_DISTANCE = "distance"
SORT_RECENTLY_UPDATED = "recently-updated"
SORT_SUBURB = "suburb"
SORT_TOP_RATED = "top-rated"

SORT_OPTIONS = (
    SORT_NAME,
    SORT_PRICE_LOW,
    SORT_PRICE_HIGH,
    SORT_DISTANCE,
    SORT_RECENTLY_UPDATED,
    SORT_SUBURB,
    SORT_TOP_RATED,
)

DEFAULT_PAGE_SIZE = 12


@dataclass(slots=True)
class FuelPriceEntry:
    """One fuel type's price at a station, in cents per litre."""

    fuel_type: str
    price: Optional[float] = None
    trend: Optional[str] = None
    last_updated: Optional[datetime] = None

    @property
    def has_price(self) -> bool:
        return self.price is not None and self.price > 0


@dataclass(slots=True)
class Station:
    """Canonical station record produced by the normalization boundary."""

    id: StationId
    name: str = ""
    brand: str = ""
    address: str = ""
    suburb: str = ""
    postal_code: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    fuel_prices: List[FuelPriceEntry] = field(default_factory=list)
    last_updated: Optional[datetime] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    state: str = "VIC"

    @property
    def has_location(self) -> bool:
        if self.latitude is None or self.longitude is None:
            return False
        return not (self.latitude == 0 and self.longitude == 0)

    @property
    def location(self) -> Optional[LatLng]:
        if not self.has_location:
            return None
        return self.latitude, self.longitude

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase JSON shape the web client reads."""
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "address": self.address,
            "suburb": self.suburb,
            "postalCode": self.postal_code,
            "state": self.state,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "fuelPrices": [
                {
                    "fuelType": entry.fuel_type,
                    "price": entry.price,
                    "trend": entry.trend,
                    "lastUpdated": entry.last_updated.isoformat() if entry.last_updated else None,
                }
                for entry in self.fuel_prices
            ],
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
            "rating": self.rating,
            "reviewCount": self.review_count,
        }


@dataclass(frozen=True)
class Region:
    """Named subdivision of Greater Melbourne used for browsing."""

    id: str
    name: str
    description: str = ""
    color: str = "#9CA3AF"
    icon: str = ""
    suburbs: Tuple[str, ...] = ()
    polygon: Optional[Polygon] = None
    centroid: Optional[LatLng] = None
    radius_km: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
        }


@dataclass(slots=True)
class FilterSpec:
    """User-selected filter, sort and paging criteria."""

    search: str = ""
    fuel_type: str = ALL
    brand: str = ALL
    region: str = ALL
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    sort_by: str = SORT_NAME
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    user_location: Optional[LatLng] = None


@dataclass(slots=True)
class QueryResult:
    """One page of query output plus pagination metadata."""

    stations: List[Station]
    current_page: int
    total_pages: int
    total_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [station.to_dict() for station in self.stations],
            "pagination": {
                "currentPage": self.current_page,
                "totalPages": self.total_pages,
                "totalCount": self.total_count,
            },
        }
