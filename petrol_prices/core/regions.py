"""Melbourne region table and the classifier that buckets stations into it.

Coordinates are tested against each region's shape in priority order and the
first match wins. When the coordinates are missing or fall outside every
shape, the suburb name is looked up instead. Anything left over lands in
``UNCLASSIFIED`` so every station belongs to exactly one region.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, Optional, Sequence, Tuple

from petrol_prices.core.geo import bbox_polygon, haversine_km, is_valid_coordinate, point_in_polygon
from petrol_prices.core.models import Region, Station

logger = logging.getLogger(__name__)

MELBOURNE_INNER = Region(
    id="melbourne_inner",
    name="Melbourne Inner",
    description="CBD, Carlton, Fitzroy, South Yarra, Richmond",
    color="#FFD93D",
    icon="🏙️",
    suburbs=(
        "Melbourne", "CBD", "Carlton", "Fitzroy", "Collingwood", "Richmond", "South Yarra",
        "Prahran", "St Kilda", "Port Melbourne", "South Melbourne", "Albert Park", "Middle Park",
        "Parkville", "North Melbourne", "Southbank", "Docklands", "East Melbourne", "Jolimont",
        "Cremorne", "Abbotsford",
    ),
    polygon=bbox_polygon(-37.87, -37.78, 144.93, 145.05),
)

NORTHERN = Region(
    id="northern",
    name="Northern Suburbs",
    description="Preston, Coburg, Essendon, Tullamarine, Sunbury",
    color="#7B68B6",
    icon="🌆",
    suburbs=(
        "Preston", "Coburg", "Brunswick", "Essendon", "Airport West", "Tullamarine", "Sunbury",
        "Keilor", "Niddrie", "Strathmore", "Moonee Ponds", "Ascot Vale", "Flemington",
        "Kensington", "Glenroy", "Oak Park", "Pascoe Vale", "Brunswick West", "Reservoir",
        "Thornbury", "Northcote", "Fairfield", "Ivanhoe",
    ),
    polygon=bbox_polygon(-37.75, -37.6, 144.85, 145.05),
)

WESTERN = Region(
    id="western",
    name="Western Suburbs",
    description="Footscray, Sunshine, Werribee, Point Cook",
    color="#FF6B6B",
    icon="🌅",
    suburbs=(
        "Footscray", "Sunshine", "Werribee", "Point Cook", "Altona", "Williamstown", "Newport",
        "Yarraville", "Seddon", "Hoppers Crossing", "Tarneit", "Truganina", "Caroline Springs",
        "Deer Park", "St Albans", "Melton", "Laverton",
    ),
    polygon=bbox_polygon(-37.95, -37.7, 144.7, 144.85),
)

EASTERN = Region(
    id="eastern",
    name="Eastern Suburbs",
    description="Doncaster, Box Hill, Ringwood, Glen Waverley",
    color="#4ECDC4",
    icon="🏞️",
    suburbs=(
        "Doncaster", "Box Hill", "Ringwood", "Templestowe", "Bulleen", "Balwyn", "Kew",
        "Camberwell", "Hawthorn", "Surrey Hills", "Blackburn", "Mitcham", "Nunawading",
        "Vermont", "Forest Hill", "Croydon", "Lilydale", "Chirnside Park", "Glen Waverley",
        "Mount Waverley", "Wheelers Hill", "Burwood",
    ),
    polygon=bbox_polygon(-37.92, -37.7, 145.05, 145.3),
)

SOUTH_EASTERN = Region(
    id="south_eastern",
    name="South Eastern Suburbs",
    description="Frankston, Dandenong, Cranbourne, Clayton",
    color="#6BCB77",
    icon="🌳",
    suburbs=(
        "Frankston", "Dandenong", "Cranbourne", "Mordialloc", "Chelsea", "Carrum", "Seaford",
        "Mentone", "Parkdale", "Cheltenham", "Springvale", "Noble Park", "Keysborough",
        "Hampton Park", "Narre Warren", "Berwick", "Pakenham", "Endeavour Hills", "Hallam",
        "Lyndhurst", "Lynbrook", "Clayton", "Oakleigh", "Malvern", "Caulfield", "Carnegie",
        "Murrumbeena", "Hughesdale", "Bentleigh",
    ),
    polygon=bbox_polygon(-38.2, -37.82, 145.0, 145.3),
)

UNCLASSIFIED = Region(
    id="unclassified",
    name="Other Areas",
    description="Stations outside the mapped Melbourne regions",
    color="#9CA3AF",
    icon="📍",
)

# Priority order. Several boxes overlap, the earlier entry wins.
MELBOURNE_REGIONS: Tuple[Region, ...] = (MELBOURNE_INNER, NORTHERN, WESTERN, EASTERN, SOUTH_EASTERN)


def _normalize_suburb(value: str) -> str:
    return " ".join(value.lower().split())


class RegionClassifier:
    """Assigns exactly one region to a coordinate pair and/or suburb name."""

    def __init__(self, regions: Sequence[Region] = MELBOURNE_REGIONS, unclassified: Region = UNCLASSIFIED) -> None:
        self.regions: Tuple[Region, ...] = tuple(regions)
        self.unclassified = unclassified
        self._by_id: Dict[str, Region] = {region.id: region for region in self.regions}
        self._by_id[unclassified.id] = unclassified

        # Earlier regions win when a suburb name appears twice.
        self._suburb_lookup: Dict[str, Region] = {}
        for region in self.regions:
            for suburb in region.suburbs:
                self._suburb_lookup.setdefault(_normalize_suburb(suburb), region)

        # Longest names first so "Brunswick West" is tried before "Brunswick".
        self._suburb_patterns = [
            (re.compile(rf"\b{re.escape(name)}\b"), region)
            for name, region in sorted(self._suburb_lookup.items(), key=lambda item: -len(item[0]))
        ]

    @property
    def all_regions(self) -> Tuple[Region, ...]:
        return self.regions + (self.unclassified,)

    def get(self, region_id: str) -> Optional[Region]:
        return self._by_id.get(region_id.strip().lower()) if region_id else None

    def classify(
        self,
        latitude: Optional[float],
        longitude: Optional[float],
        suburb: Optional[str] = None,
    ) -> Region:
        if is_valid_coordinate(latitude, longitude):
            region = self._match_coordinates(latitude, longitude)
            if region is not None:
                return region

        if suburb:
            region = self._match_suburb(suburb)
            if region is not None:
                return region

        return self.unclassified

    def classify_station(self, station: Station) -> Region:
        return self.classify(station.latitude, station.longitude, station.suburb)

    def region_counts(self, stations: Iterable[Station]) -> Dict[str, int]:
        """Count stations per region id. Every region, unclassified included, is present."""
        counts = {region.id: 0 for region in self.all_regions}
        for station in stations:
            counts[self.classify_station(station).id] += 1
        return counts

    def _match_coordinates(self, latitude: float, longitude: float) -> Optional[Region]:
        for region in self.regions:
            if region.polygon is not None and point_in_polygon(latitude, longitude, region.polygon):
                return region
            if region.centroid is not None and region.radius_km is not None:
                if haversine_km(latitude, longitude, *region.centroid) <= region.radius_km:
                    return region
        return None

    def _match_suburb(self, suburb: str) -> Optional[Region]:
        key = _normalize_suburb(suburb)
        if not key:
            return None
        region = self._suburb_lookup.get(key)
        if region is not None:
            return region
        for pattern, candidate in self._suburb_patterns:
            if pattern.search(key):
                logger.debug("Suburb %r matched region %s by partial name", suburb, candidate.id)
                return candidate
        return None


default_classifier = RegionClassifier()
