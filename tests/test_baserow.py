import pytest

from petrol_prices.vendors import baserow


class DummyResponse:
    def __init__(self, status_code=200, payload=None, json_error=False):
        self.status_code = status_code
        self._payload = payload or {}
        self._json_error = json_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError("http error")

    def json(self):
        if self._json_error:
            raise ValueError("not json")
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []
        self.responses = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, params, headers, timeout))
        return self.responses.pop(0)


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(baserow, "_SESSION", session)
    return session


def test_list_rows_uses_public_token(patch_session):
    patch_session.responses = [DummyResponse(payload={"count": 1, "next": None, "results": [{"id": 1}]})]

    payload = baserow.list_rows("https://api.baserow.io/api/", 623329, public_token="pub", timeout=5)

    assert payload["results"] == [{"id": 1}]
    url, params, headers, timeout = patch_session.calls[0]
    assert url == "https://api.baserow.io/api/database/rows/table/623329/"
    assert params["public_token"] == "pub"
    assert params["user_field_names"] == "true"
    assert params["size"] == baserow.PAGE_SIZE
    assert headers == {}
    assert timeout == 5


def test_list_rows_uses_token_header(patch_session):
    patch_session.responses = [DummyResponse(payload={"results": []})]

    baserow.list_rows("https://api.baserow.io/api", 1, token="secret")

    _, params, headers, _ = patch_session.calls[0]
    assert headers == {"Authorization": "Token secret"}
    assert "public_token" not in params


def test_list_rows_requires_credentials():
    with pytest.raises(baserow.BaserowError):
        baserow.list_rows("https://api.baserow.io/api", 1)


def test_list_rows_rejects_malformed_payload(patch_session):
    patch_session.responses = [DummyResponse(payload={"detail": "nope"})]
    with pytest.raises(baserow.BaserowError):
        baserow.list_rows("https://api.baserow.io/api", 1, token="t")


def test_list_rows_rejects_non_json(patch_session):
    patch_session.responses = [DummyResponse(json_error=True)]
    with pytest.raises(baserow.BaserowError):
        baserow.list_rows("https://api.baserow.io/api", 1, token="t")


def test_list_rows_propagates_http_errors(patch_session):
    patch_session.responses = [DummyResponse(status_code=500)]
    with pytest.raises(RuntimeError):
        baserow.list_rows("https://api.baserow.io/api", 1, token="t")


def test_fetch_all_rows_follows_pages(patch_session):
    patch_session.responses = [
        DummyResponse(payload={"next": "https://api.baserow.io/api/...&page=2", "results": [{"id": 1}, {"id": 2}]}),
        DummyResponse(payload={"next": None, "results": [{"id": 3}]}),
    ]

    rows = baserow.fetch_all_rows("https://api.baserow.io/api", 5, public_token="pub")

    assert [row["id"] for row in rows] == [1, 2, 3]
    assert [call[1]["page"] for call in patch_session.calls] == [1, 2]


def test_fetch_all_rows_stops_at_max_pages(patch_session, caplog):
    patch_session.responses = [
        DummyResponse(payload={"next": "more", "results": [{"id": n}]}) for n in range(3)
    ]

    with caplog.at_level("WARNING"):
        rows = baserow.fetch_all_rows("https://api.baserow.io/api", 5, token="t", max_pages=2)

    assert len(rows) == 2
    assert "Stopped paging table 5" in " ".join(caplog.messages)
