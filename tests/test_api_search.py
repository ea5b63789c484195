from fastapi.testclient import TestClient

from school_finder.api.app import app, health
from school_finder.api.routes.search import get_executor
from school_finder.executor import QueryExecutor
from school_finder.records import DistrictRecord, SchoolRecord
from school_finder.sources import SourceError


class _FakeExecutor:
    def __init__(self):
        self.calls = []

    async def search_districts(self, text, source_log=None):
        self.calls.append(("district", text))
        if len(text) < 2:
            return []
        return [
            DistrictRecord(lea_id="4900420", name="Ogden City District", state_code="UT"),
        ]

    async def search_schools(self, text, district_id=None, source_log=None):
        self.calls.append(("school", text, district_id))
        if len(text) < 2 and not district_id:
            return []
        return [
            SchoolRecord(
                nces_id="111",
                name="Lincoln",
                street="1 Main St",
                city="Ogden",
                state="UT",
                zip="84401",
                latitude=41.2,
                longitude=-111.9,
            ),
            SchoolRecord(nces_id="222", name="Nowhere Academy"),
        ]


def _client(fake):
    async def _override():
        yield fake

    app.dependency_overrides[get_executor] = _override
    return TestClient(app)


def teardown_function(_fn):
    app.dependency_overrides.clear()


def test_routes_exist():
    paths = {route.path for route in app.routes}
    assert "/health" in paths
    assert "/api/districts" in paths
    assert "/api/schools" in paths
    assert "/api/map" in paths
    assert health() == {"status": "ok"}


def test_district_search():
    fake = _FakeExecutor()
    response = _client(fake).get("/api/districts", params={"q": " Ogden "})
    assert response.status_code == 200
    payload = response.json()
    assert payload["query"] == "Ogden"
    assert payload["count"] == 1
    assert payload["results"][0]["label"] == "Ogden City District (UT)"
    assert fake.calls == [("district", "Ogden")]


def test_repeated_search_served_from_cache():
    fake = _FakeExecutor()
    client = _client(fake)
    client.get("/api/schools", params={"q": "Lincoln", "district_id": "49"})
    client.get("/api/schools", params={"q": "Lincoln ", "district_id": "49"})
    assert fake.calls == [("school", "Lincoln", "49")]


def test_short_school_query_is_empty():
    response = _client(_FakeExecutor()).get("/api/schools", params={"q": "L"})
    assert response.status_code == 200
    assert response.json() == {
        "query": "L",
        "district_id": None,
        "count": 0,
        "results": [],
    }


def test_school_fields_are_nullable():
    response = _client(_FakeExecutor()).get("/api/schools", params={"district_id": "49"})
    results = response.json()["results"]
    assert results[0]["address"] == "1 Main St, Ogden, UT 84401"
    assert results[1]["latitude"] is None
    assert results[1]["address"] == ""


def test_map_view_for_school(monkeypatch):
    monkeypatch.setenv("MAPS_API_KEY", "key")
    from school_finder.settings import reset_settings_cache

    reset_settings_cache()
    response = _client(_FakeExecutor()).get(
        "/api/map", params={"nces_id": "111", "q": "Lincoln"}
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["center"] == {"lat": 41.2, "lng": -111.9}
    assert payload["zoom"] == 14
    assert payload["markers"] == [
        {"id": "111", "lat": 41.2, "lng": -111.9, "label": "Lincoln"}
    ]
    assert payload["api_key_configured"] is True


def test_map_view_errors():
    client = _client(_FakeExecutor())
    missing = client.get("/api/map", params={"nces_id": "999", "q": "Lincoln"})
    assert missing.status_code == 404
    assert missing.json()["detail"] == "school not found"
    no_coords = client.get("/api/map", params={"nces_id": "222", "q": "Lincoln"})
    assert no_coords.status_code == 404
    assert no_coords.json()["detail"] == "school has no coordinates"


def test_query_length_is_validated():
    response = _client(_FakeExecutor()).get("/api/districts", params={"q": "x" * 201})
    assert response.status_code == 422


class _FlakySource:
    def __init__(self, name, features):
        self.name = name
        self.features = features
        self.calls = 0

    async def query(self, where, limit):
        self.calls += 1
        if self.calls == 1:
            raise SourceError(self.name, "HTTP 503")
        return list(self.features)

    async def aclose(self):
        pass


def test_upstream_outage_is_not_cached():
    private = _FlakySource(
        "private", [{"attributes": {"LEAID": "4900420", "LEA_NAME": "Ogden City District"}}]
    )
    public = _FlakySource("public", [])
    client = _client(QueryExecutor(private, public))

    first = client.get("/api/districts", params={"q": "Ogden"})
    second = client.get("/api/districts", params={"q": "Ogden"})
    third = client.get("/api/districts", params={"q": "Ogden"})
    assert first.json()["count"] == 0
    assert second.json()["count"] == 1
    assert third.json()["count"] == 1
    assert private.calls == 2
