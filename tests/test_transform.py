from datetime import datetime, timezone

import pytest

from petrol_prices.etl import transform


def test_to_station_maps_baserow_fields():
    row = {
        "id": 42,
        "Station Name": " Shell Coles Express Preston ",
        "Address": "123 High St",
        "City": "Preston",
        "Postal Code": "3072",
        "Latitude": "-37.745",
        "Longitude": "145.003",
        "brand": ["Shell"],
        "Last Updated": "2024-05-01T10:00:00Z",
    }

    station = transform.to_station(row)

    assert station.id == 42
    assert station.name == "Shell Coles Express Preston"
    assert station.brand == "Shell"
    assert station.suburb == "Preston"
    assert station.postal_code == "3072"
    assert station.latitude == pytest.approx(-37.745)
    assert station.longitude == pytest.approx(145.003)
    assert station.last_updated == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_to_station_is_permissive_with_missing_fields():
    station = transform.to_station({"Latitude": "not a number", "Longitude": 0}, index=4)

    assert station.id == 5
    assert station.name == "Unknown Station"
    assert station.address == ""
    assert station.latitude is None and station.longitude is None
    assert station.has_location is False
    assert station.fuel_prices == []


@pytest.mark.parametrize("bad", ["nan", "NaN", "inf", "-Infinity", float("nan"), float("inf")])
def test_to_station_drops_non_finite_numbers(bad):
    row = {"id": 7, "reviewCount": bad, "user_ratings_total": bad, "rating": bad, "lat": bad, "lng": 144.9}

    station = transform.to_station(row)

    assert station.review_count is None
    assert station.rating is None
    assert station.latitude is None
    assert station.has_location is False


def test_normalize_price_drops_non_finite():
    assert transform.normalize_price("inf") is None
    assert transform.normalize_price(float("nan")) is None


def test_zero_coordinates_mean_no_location():
    station = transform.to_station({"id": 1, "lat": 0, "lng": 0})
    assert station.location is None


def test_to_station_reads_keyed_prices_in_dollars():
    row = {"id": 1, "name": "BP Yarra", "prices": {"unleaded": 1.95, "diesel": 1.92, "lastUpdated": "x"}}

    station = transform.to_station(row)

    prices = {entry.fuel_type: entry.price for entry in station.fuel_prices}
    assert prices == {"unleaded": 195.0, "diesel": 192.0}


def test_normalize_price_drops_non_positive():
    assert transform.normalize_price(0) is None
    assert transform.normalize_price("-3") is None
    assert transform.normalize_price(None) is None
    assert transform.normalize_price("185.9") == 185.9


def test_normalize_fuel_type_handles_options_and_aliases():
    assert transform.normalize_fuel_type(3812410) == "diesel"
    assert transform.normalize_fuel_type({"id": 1, "value": "Premium 98"}) == "premium98"
    assert transform.normalize_fuel_type("ULP") == "unleaded"
    assert transform.normalize_fuel_type("E85") == "e85"
    assert transform.normalize_fuel_type(None) == "unknown"


def test_normalize_brand_canonicalises_owner_names():
    assert transform.normalize_brand("7-ELEVEN STORES PTY LTD") == "7-Eleven"
    assert transform.normalize_brand("BP AUSTRALIA") == "BP"
    assert transform.normalize_brand("Bpm Motors") == "Bpm Motors"
    assert transform.normalize_brand(["Shell", "Coles"]) == "Shell, Coles"
    assert transform.normalize_brand(None) == ""


def test_merge_stations_with_prices_joins_linked_rows():
    stations = [
        {"id": 1, "Station Name": "Shell CBD", "City": "Melbourne"},
        {"id": 2, "Station Name": "BP Yarra", "City": "Richmond"},
    ]
    prices = [
        {
            "id": 10,
            "Petrol Station": [{"id": 1, "value": "Shell CBD"}],
            "Fuel Type": 3812408,
            "Price Per Liter": "185.9",
            "Price Trend": 3812414,
            "Last Updated": "2024-05-02T08:00:00+10:00",
        },
        {"id": 11, "Petrol Station": [2], "Fuel Type": {"id": 3812410, "value": "Diesel"}, "Price Per Liter": 176.8},
    ]

    merged = transform.merge_stations_with_prices(stations, prices)

    assert [s.name for s in merged] == ["Shell CBD", "BP Yarra"]
    shell_entry = merged[0].fuel_prices[0]
    assert shell_entry.fuel_type == "unleaded"
    assert shell_entry.price == 185.9
    assert shell_entry.trend == "stable"
    assert merged[0].last_updated == shell_entry.last_updated
    assert merged[1].fuel_prices[0].fuel_type == "diesel"
    assert merged[1].last_updated is None


def test_from_geojson_reads_lng_lat_order():
    collection = {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [144.963, -37.814]},
                "properties": {
                    "objectid": 7,
                    "station_name": "UNITED FLINDERS ST",
                    "station_owner": "UNITED PETROLEUM",
                    "station_suburb": "MELBOURNE",
                    "station_postcode": 3000.0,
                },
            }
        ],
    }

    (station,) = transform.from_geojson(collection)

    assert station.id == 7
    assert station.brand == "United"
    assert station.latitude == pytest.approx(-37.814)
    assert station.longitude == pytest.approx(144.963)
    assert station.postal_code == "3000"


def test_from_geojson_rejects_missing_features():
    with pytest.raises(ValueError):
        transform.from_geojson({"type": "FeatureCollection"})


def test_to_geojson_keeps_stations_without_location():
    stations = [transform.to_station({"id": 1, "name": "Nowhere"})]

    collection = transform.to_geojson(stations)

    feature = collection["features"][0]
    assert feature["geometry"] is None
    assert feature["properties"]["name"] == "Nowhere"
