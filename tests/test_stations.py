import json

import pytest
import requests

from petrol_prices.core import stations as loader
from petrol_prices.core.config import Settings
from petrol_prices.core.models import Station

GEOJSON = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [144.99, -37.82]},
            "properties": {"objectid": 1, "station_name": "SHELL RICHMOND", "station_owner": "SHELL"},
        }
    ],
}


@pytest.fixture(autouse=True)
def reset_cache():
    loader.clear_cache()
    yield
    loader.clear_cache()


@pytest.fixture
def geojson_path(tmp_path):
    path = tmp_path / "stations.geojson"
    path.write_text(json.dumps(GEOJSON), encoding="utf-8")
    return str(path)


def make_settings(**overrides):
    values = dict(
        baserow_api_url="https://api.baserow.io/api",
        baserow_public_token="pub",
        stations_table_id=623329,
        prices_table_id=623330,
        cache_ttl_seconds=300,
    )
    values.update(overrides)
    return Settings(**values)


def test_fetch_from_baserow_merges_tables(monkeypatch):
    calls = []

    def fake_fetch_all_rows(base_url, table_id, token=None, public_token=None, timeout=15):
        calls.append((table_id, public_token))
        if table_id == 623329:
            return [{"id": 1, "Station Name": "BP Yarra", "City": "Richmond"}]
        return [{"id": 9, "Petrol Station": [1], "Fuel Type": 3812410, "Price Per Liter": "176.8"}]

    monkeypatch.setattr(loader.baserow, "fetch_all_rows", fake_fetch_all_rows)

    (station,) = loader.fetch_from_baserow(make_settings())

    assert calls == [(623329, "pub"), (623330, "pub")]
    assert station.name == "BP Yarra"
    assert station.fuel_prices[0].fuel_type == "diesel"
    assert station.fuel_prices[0].price == 176.8


def test_fetch_from_baserow_skips_when_unconfigured(monkeypatch):
    monkeypatch.setattr(loader.baserow, "fetch_all_rows", lambda *a, **k: pytest.fail("should not fetch"))
    assert loader.fetch_from_baserow(make_settings(stations_table_id=None)) == []


def test_load_stations_falls_back_to_geojson(monkeypatch, geojson_path, caplog):
    def failing_fetch(settings):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(loader, "fetch_from_baserow", failing_fetch)

    with caplog.at_level("ERROR"):
        stations = loader.load_stations(make_settings(stations_geojson_path=geojson_path))

    assert [s.name for s in stations] == ["SHELL RICHMOND"]
    assert stations[0].brand == "Shell"
    assert "Baserow fetch failed" in " ".join(caplog.messages)


def test_load_stations_uses_cache_until_ttl(monkeypatch):
    fetched = []

    def fake_fetch(settings):
        fetched.append(1)
        return [Station(id=len(fetched), name="Station")]

    monkeypatch.setattr(loader, "fetch_from_baserow", fake_fetch)
    clock = {"now": 1000.0}
    monkeypatch.setattr(loader.time, "monotonic", lambda: clock["now"])
    settings = make_settings(cache_ttl_seconds=60)

    first = loader.load_stations(settings)
    clock["now"] += 30
    assert loader.load_stations(settings) is first
    clock["now"] += 31
    refreshed = loader.load_stations(settings)

    assert refreshed is not first
    assert len(fetched) == 2
    assert loader.load_stations(settings, force_refresh=True)[0].id == 3


def test_load_stations_serves_stale_data_when_sources_fail(monkeypatch):
    results = [[Station(id=1, name="Cached")], []]
    monkeypatch.setattr(loader, "fetch_from_baserow", lambda settings: results.pop(0))

    first = loader.load_stations(make_settings())
    again = loader.load_stations(make_settings(), force_refresh=True)

    assert again is first


def test_load_stations_raises_when_nothing_loads(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "fetch_from_baserow", lambda settings: [])
    settings = make_settings(stations_geojson_path=str(tmp_path / "missing.geojson"))

    with pytest.raises(loader.StationDataUnavailable):
        loader.load_stations(settings)


def test_load_stations_handles_corrupt_geojson(monkeypatch, tmp_path):
    path = tmp_path / "broken.geojson"
    path.write_text("{not json", encoding="utf-8")
    monkeypatch.setattr(loader, "fetch_from_baserow", lambda settings: [])

    with pytest.raises(loader.StationDataUnavailable):
        loader.load_stations(make_settings(stations_geojson_path=str(path)))


def test_load_stations_keeps_snapshot_with_non_finite_fields(monkeypatch, tmp_path):
    collection = json.loads(json.dumps(GEOJSON))
    collection["features"].append(
        {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [145.12, -37.81]},
            "properties": {"objectid": 2, "station_name": "BP BOX HILL", "user_ratings_total": float("nan")},
        }
    )
    path = tmp_path / "stations.geojson"
    # json.dumps writes the bare NaN token, as a sloppy upstream export would.
    path.write_text(json.dumps(collection), encoding="utf-8")
    monkeypatch.setattr(loader, "fetch_from_baserow", lambda settings: [])

    stations = loader.load_stations(make_settings(stations_geojson_path=str(path)))

    assert [station.id for station in stations] == [1, 2]
    assert stations[1].review_count is None


def test_find_station_compares_ids_as_strings():
    stations = [Station(id=1, name="One"), Station(id="abc", name="Abc")]

    assert loader.find_station(stations, "1").name == "One"
    assert loader.find_station(stations, "abc").name == "Abc"
    assert loader.find_station(stations, "2") is None
