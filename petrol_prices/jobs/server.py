"""HTTP entrypoint serving filtered station listings to the web client."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from petrol_prices.core.config import get_settings
from petrol_prices.core.preferences import PreferenceError, PreferenceStore
from petrol_prices.core.pricing import lowest_prices, price_for, price_summary
from petrol_prices.core.query import filter_spec_summary, parse_filter_spec, query
from petrol_prices.core.regions import default_classifier
from petrol_prices.core.stations import StationDataUnavailable, find_station, load_stations

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & preferences ----------
app = Flask(__name__)
_preferences: Optional[PreferenceStore] = None

MAX_LOWEST_LIMIT = 50


def get_preferences() -> PreferenceStore:
    global _preferences
    if _preferences is None:
        _preferences = PreferenceStore(get_settings().preferences_path or None)
    return _preferences


@app.errorhandler(StationDataUnavailable)
def station_data_unavailable(exc: StationDataUnavailable) -> Any:
    logger.error("Station data unavailable: %s", exc)
    return jsonify({"error": "station data is temporarily unavailable"}), 503


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; does not touch Baserow."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "baserow_configured": settings.stations_table_id is not None,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/api/stations")
def list_stations() -> Any:
    """Filtered, sorted and paginated station listing driven by query parameters."""
    settings = get_settings()
    spec = parse_filter_spec(request.args, default_page_size=settings.default_page_size)
    stations = load_stations(settings)

    result = query(stations, spec, default_classifier)
    logger.info(
        "Station query filters=%s sort=%s -> %d results",
        filter_spec_summary(spec),
        spec.sort_by,
        result.total_count,
    )
    return jsonify(result.to_dict()), 200


@app.get("/api/stations/<station_id>")
def get_station(station_id: str) -> Any:
    station = find_station(load_stations(), station_id)
    if station is None:
        return jsonify({"error": "station not found"}), 404

    payload = station.to_dict()
    payload["region"] = default_classifier.classify_station(station).id
    logo = get_preferences().brand_logo(station.brand) if station.brand else None
    if logo:
        payload["brandLogo"] = logo
    return jsonify({"data": payload}), 200


@app.get("/api/regions")
def list_regions() -> Any:
    stations = load_stations()
    counts = default_classifier.region_counts(stations)
    regions = [
        {**region.to_dict(), "stationCount": counts.get(region.id, 0)}
        for region in default_classifier.all_regions
    ]
    return jsonify({"data": regions, "totalStations": len(stations)}), 200


@app.get("/api/prices/lowest")
def list_lowest_prices() -> Any:
    fuel_type = (request.args.get("fuelType") or "unleaded").strip().lower()
    limit_raw = request.args.get("limit", "5")
    try:
        limit = int(limit_raw)
    except (TypeError, ValueError):
        return jsonify({"error": "limit must be numeric"}), 400
    if limit <= 0:
        return jsonify({"error": "limit must be positive"}), 400
    limit = min(limit, MAX_LOWEST_LIMIT)

    ranked = lowest_prices(load_stations(), fuel_type, limit)
    data = [{**station.to_dict(), "price": price_for(station.fuel_prices, fuel_type)} for station in ranked]
    return jsonify({"fuelType": fuel_type, "count": len(data), "data": data}), 200


@app.get("/api/prices/summary")
def get_price_summary() -> Any:
    return jsonify({"data": price_summary(load_stations())}), 200


@app.get("/api/preferences/<key>")
def read_preference(key: str) -> Any:
    store = get_preferences()
    value = store.get(key)
    if value is None:
        return jsonify({"error": f"preference {key} is not set"}), 404
    return jsonify({"data": {"key": key, "value": value}}), 200


@app.put("/api/preferences/<key>")
def write_preference(key: str) -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    if "value" not in payload:
        return jsonify({"error": "value is required"}), 400

    try:
        get_preferences().set(key, payload["value"])
    except PreferenceError as exc:
        return jsonify({"error": str(exc)}), 400

    logger.info("Preference %s updated", key)
    return jsonify({"data": {"key": key, "value": payload["value"]}}), 200


def main() -> None:
    """Bind on 0.0.0.0 using PORT (defaults to 8080)."""
    port = get_settings().port
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    get_preferences()
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
