"""Per-station fuel price aggregation."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from petrol_prices.core.models import FuelPriceEntry, Station


def valid_prices(entries: Iterable[FuelPriceEntry]) -> List[float]:
    """Positive prices only; missing, zero and negative prices mean "no data"."""
    return [entry.price for entry in entries if entry.has_price]


def best_price(entries: Sequence[FuelPriceEntry]) -> Optional[float]:
    prices = valid_prices(entries)
    return min(prices) if prices else None


def average_price(entries: Sequence[FuelPriceEntry]) -> Optional[float]:
    prices = valid_prices(entries)
    if not prices:
        return None
    return sum(prices) / len(prices)


def price_for(entries: Sequence[FuelPriceEntry], fuel_type: str) -> Optional[float]:
    """Best positive price for a single fuel type, matched case-insensitively."""
    wanted = fuel_type.strip().lower()
    return best_price([entry for entry in entries if entry.fuel_type.lower() == wanted])


def price_summary(stations: Iterable[Station]) -> Dict[str, Dict[str, float]]:
    """Min/max/average/count per fuel type across all stations."""
    buckets: Dict[str, List[float]] = {}
    for station in stations:
        for entry in station.fuel_prices:
            if entry.has_price:
                buckets.setdefault(entry.fuel_type.lower(), []).append(entry.price)

    summary: Dict[str, Dict[str, float]] = {}
    for fuel_type in sorted(buckets):
        prices = buckets[fuel_type]
        summary[fuel_type] = {
            "min": min(prices),
            "max": max(prices),
            "average": round(sum(prices) / len(prices), 1),
            "count": len(prices),
        }
    return summary


def lowest_prices(stations: Iterable[Station], fuel_type: str, limit: Optional[int] = None) -> List[Station]:
    """Stations selling ``fuel_type`` ordered cheapest first; ties keep input order."""
    priced = []
    for station in stations:
        price = price_for(station.fuel_prices, fuel_type)
        if price is not None:
            priced.append((price, station))
    priced.sort(key=lambda pair: pair[0])
    ranked = [station for _, station in priced]
    if limit is not None:
        return ranked[: max(limit, 0)]
    return ranked
