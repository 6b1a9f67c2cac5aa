import pytest

from gbp_audit.vendors import google_places


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError("http error")

    def json(self):
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        return self.response


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(google_places, "_SESSION", session)
    return session


def test_nearby_search_success(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OK", "results": [{"name": "Acme"}]})

    payload = google_places.nearby_search(40.7, -74.0, "plumber", "key", radius=5000)

    assert payload["results"][0]["name"] == "Acme"
    url, params, timeout = patch_session.calls[0]
    assert "nearbysearch" in url
    assert params["location"] == "40.7,-74.0"
    assert params["keyword"] == "plumber"
    assert params["rankby"] == "prominence"
    assert params["radius"] == 5000
    assert timeout == 10


def test_nearby_search_distance_ranking_omits_radius(patch_session):
    patch_session.response = DummyResponse(payload={"status": "ZERO_RESULTS", "results": []})

    payload = google_places.nearby_search(1.0, 2.0, "cafe", "key", rankby="distance", radius=5000)

    assert payload["status"] == "ZERO_RESULTS"
    _, params, _ = patch_session.calls[0]
    assert "radius" not in params


def test_nearby_search_error_status(patch_session):
    patch_session.response = DummyResponse(payload={"status": "REQUEST_DENIED", "error_message": "bad key"})

    with pytest.raises(google_places.GooglePlacesError, match="bad key"):
        google_places.nearby_search(1.0, 2.0, "cafe", "key")


def test_nearby_search_http_error(patch_session):
    patch_session.response = DummyResponse(status_code=500)

    with pytest.raises(RuntimeError):
        google_places.nearby_search(1.0, 2.0, "cafe", "key")
