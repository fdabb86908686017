"""CLI job to query stations, or export them as a GeoJSON snapshot."""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from petrol_prices.core.config import ConfigError, get_settings
from petrol_prices.core.models import SORT_OPTIONS
from petrol_prices.core.query import parse_filter_spec, query
from petrol_prices.core.stations import StationDataUnavailable, load_stations
from petrol_prices.etl.transform import to_geojson

logger = logging.getLogger(__name__)


def run_query_job(args: argparse.Namespace) -> Dict[str, Any]:
    settings = get_settings()
    if args.geojson:
        # Explicit snapshot: skip Baserow entirely.
        settings = replace(settings, stations_table_id=None, stations_geojson_path=args.geojson)

    stations = load_stations(settings, force_refresh=True)
    logger.info("Loaded %d stations", len(stations))

    if args.export:
        export_path = Path(args.export)
        export_path.parent.mkdir(parents=True, exist_ok=True)
        with export_path.open("w", encoding="utf-8") as fh:
            json.dump(to_geojson(stations), fh, ensure_ascii=False, indent=2)
        logger.info("Exported %d stations to %s", len(stations), export_path)
        return {"exported": len(stations), "path": str(export_path)}

    spec = parse_filter_spec(_filter_payload(args), default_page_size=settings.default_page_size)
    return query(stations, spec).to_dict()


def _filter_payload(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "search": args.search,
        "fuelType": args.fuel_type,
        "brand": args.brand,
        "region": args.region,
        "priceMin": args.min_price,
        "priceMax": args.max_price,
        "sortBy": args.sort,
        "page": args.page,
        "pageSize": args.page_size,
        "near": args.near,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query Melbourne petrol stations")
    parser.add_argument("--search", default="", help="Text matched against name, address, suburb, brand and postcode")
    parser.add_argument("--fuel-type", dest="fuel_type", default="all", help="Fuel type, e.g. unleaded or diesel")
    parser.add_argument("--brand", default="all", help="Brand name (substring match)")
    parser.add_argument("--region", default="all", help="Region id, e.g. northern or melbourne_inner")
    parser.add_argument("--min-price", dest="min_price", help="Minimum average price in cents per litre")
    parser.add_argument("--max-price", dest="max_price", help="Maximum average price in cents per litre")
    parser.add_argument("--sort", default="name", choices=SORT_OPTIONS, help="Sort order")
    parser.add_argument("--page", type=int, default=1, help="Page number")
    parser.add_argument(
        "--page-size",
        dest="page_size",
        type=int,
        default=get_settings().default_page_size,
        help="Number of stations per page",
    )
    parser.add_argument("--near", help="User location as 'lat,lng' for distance sorting")
    parser.add_argument("--geojson", help="Read stations from this GeoJSON snapshot instead of Baserow")
    parser.add_argument("--export", help="Write the loaded stations to this GeoJSON path and exit")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        output = run_query_job(args)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except StationDataUnavailable as exc:
        logger.error("Station query failed: %s", exc)
        return 1

    json.dump(output, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
