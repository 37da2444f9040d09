from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from trip_planner import main
from trip_planner.errors import CommunicationError, ConfigurationError, PlaceNotFound, UpstreamError
from trip_planner.main import app
from trip_planner.orchestrator import TravelLegOrchestrator
from trip_planner.schemas import Coordinates, TravelTime


class FakeGeocoder:
    async def geocode(self, query):
        return Coordinates(lat=35.0, lng=135.0)


class FakeRouteLookup:
    requires_coordinates = True
    supported_modes = frozenset({"driving", "walking", "cycling"})
    default_mode = "driving"

    async def lookup(self, origin, destination, mode):
        return TravelTime(duration="1時間0分", distance="2.0 km")


def _sample_trip() -> dict:
    return {"destination": " 京都 ", "start_date": "2025-06-01", "end_date": "2025-06-03", "transport": "新幹線"}


def _client(monkeypatch) -> TestClient:
    monkeypatch.setattr(
        main.store,
        "orchestrator_factory",
        lambda: TravelLegOrchestrator(route_lookup=FakeRouteLookup(), geocoder=FakeGeocoder()),
    )
    return TestClient(app)


def _query_orchestrator(monkeypatch, travel_time: AsyncMock) -> None:
    fake = TravelLegOrchestrator(route_lookup=FakeRouteLookup(), geocoder=FakeGeocoder())
    monkeypatch.setattr(fake, "travel_time", travel_time)
    monkeypatch.setattr(main, "get_query_orchestrator", lambda: fake)


def test_travel_time_endpoint(monkeypatch):
    client = TestClient(app)
    travel_time = AsyncMock(return_value=TravelTime(duration="1時間0分", distance="2.0 km"))
    _query_orchestrator(monkeypatch, travel_time)

    response = client.get("/api/travel-time", params={"origin": "Tokyo Station", "destination": "Narita Airport"})

    assert response.status_code == 200
    assert response.json() == {"duration": "1時間0分", "distance": "2.0 km"}
    travel_time.assert_awaited_once_with("Tokyo Station", "Narita Airport", None)


def test_travel_time_requires_both_ends(monkeypatch):
    client = TestClient(app)
    travel_time = AsyncMock()
    _query_orchestrator(monkeypatch, travel_time)

    response = client.get("/api/travel-time", params={"origin": "Tokyo Station"})

    assert response.status_code == 400
    assert response.json() == {"error": "origin と destination は必須です"}
    travel_time.assert_not_awaited()


def test_travel_time_error_statuses(monkeypatch):
    client = TestClient(app)
    cases = [
        (PlaceNotFound("x"), 404, "場所が見つかりません"),
        (UpstreamError("OVER_QUERY_LIMIT"), 404, "ルート取得失敗 (OVER_QUERY_LIMIT)"),
        (CommunicationError(), 404, "通信エラーが発生しました"),
        (ConfigurationError("GOOGLE_MAPS_API_KEY が設定されていません"), 500, "GOOGLE_MAPS_API_KEY が設定されていません"),
    ]
    for error, status, message in cases:
        _query_orchestrator(monkeypatch, AsyncMock(side_effect=error))
        response = client.get("/api/travel-time", params={"origin": "A", "destination": "B", "mode": "walking"})
        assert response.status_code == status
        assert response.json() == {"error": message}


def test_unknown_session_points_back_to_trip_creation(monkeypatch):
    client = _client(monkeypatch)

    response = client.get("/api/trips/nope")

    assert response.status_code == 404
    assert response.json()["detail"]["redirect"] == "/"


def test_trip_creation_validates_dates(monkeypatch):
    client = _client(monkeypatch)

    response = client.post("/api/trips", json={**_sample_trip(), "end_date": "2025-05-01"})
    assert response.status_code == 400

    response = client.post("/api/trips", json={**_sample_trip(), "destination": "   "})
    assert response.status_code == 400


def test_planning_flow(monkeypatch):
    client = _client(monkeypatch)

    created = client.post("/api/trips", json=_sample_trip())
    assert created.status_code == 201
    state = created.json()
    sid = state["session_id"]
    assert state["trip"]["destination"] == "京都"
    assert state["groups"] == []

    assert client.put(f"/api/trips/{sid}/departure", json={"location": "東京駅"}).status_code == 200
    a = client.post(f"/api/trips/{sid}/spots", json={"name": "A", "visit_date": "2025-06-02"}).json()
    b = client.post(f"/api/trips/{sid}/spots", json={"name": "B", "visit_date": "2025-06-01"}).json()
    c = client.post(f"/api/trips/{sid}/spots", json={"name": "C"}).json()
    assert client.post(f"/api/trips/{sid}/spots", json={"name": "  "}).status_code == 400

    state = client.get(f"/api/trips/{sid}").json()
    assert [(g["date"], [s["name"] for s in g["spots"]]) for g in state["groups"]] == [
        ("2025-06-01", ["B"]),
        ("2025-06-02", ["A"]),
        ("", ["C"]),
    ]
    legs = [(v["leg"]["origin_id"], v["leg"]["destination_id"]) for v in state["legs"]]
    assert legs == [("departure", b["id"]), (b["id"], a["id"]), (a["id"], c["id"])]
    assert all(v["info"]["status"] == "idle" and v["can_fetch"] for v in state["legs"])

    fetched = client.post(f"/api/trips/{sid}/legs/departure/{b['id']}/fetch").json()
    assert fetched["info"]["status"] == "ready"
    assert fetched["info"]["duration"] == "1時間0分"
    assert fetched["info"]["loading"] is False

    switched = client.put(f"/api/trips/{sid}/legs/departure/{b['id']}/mode", json={"mode": "walking"}).json()
    assert switched["info"] == {
        "origin_id": "departure",
        "destination_id": b["id"],
        "mode": "walking",
        "status": "idle",
        "duration": None,
        "distance": None,
        "error": None,
        "loading": False,
    }
    unsupported = client.put(f"/api/trips/{sid}/legs/departure/{b['id']}/mode", json={"mode": "transit"})
    assert unsupported.status_code == 400

    assert client.post(f"/api/trips/{sid}/legs/{c['id']}/{a['id']}/fetch").status_code == 404

    assert client.delete(f"/api/trips/{sid}/spots/{b['id']}").status_code == 204
    assert client.delete(f"/api/trips/{sid}/spots/{b['id']}").status_code == 204
    state = client.get(f"/api/trips/{sid}").json()
    assert [(v["leg"]["origin_id"], v["leg"]["destination_id"]) for v in state["legs"]] == [
        ("departure", a["id"]),
        (a["id"], c["id"]),
    ]


def test_editing_lock_over_http(monkeypatch):
    client = _client(monkeypatch)
    sid = client.post("/api/trips", json={**_sample_trip(), "with_samples": True}).json()["session_id"]
    spots = client.get(f"/api/trips/{sid}").json()["groups"][0]["spots"]
    first, second = spots[0]["id"], spots[1]["id"]

    assert client.post(f"/api/trips/{sid}/spots/{first}/edit").status_code == 200
    assert client.get(f"/api/trips/{sid}").json()["reorder_locked"] is True
    blocked = client.post(f"/api/trips/{sid}/spots/{second}/move", json={"target_id": first})
    assert blocked.status_code == 400

    saved = client.patch(f"/api/trips/{sid}/spots/{first}", json={"memo": "変更"})
    assert saved.status_code == 200
    assert saved.json()["memo"] == "変更"
    assert client.get(f"/api/trips/{sid}").json()["reorder_locked"] is False

    moved = client.post(f"/api/trips/{sid}/spots/{second}/move", json={"target_id": first}).json()
    assert [s["id"] for s in moved["groups"][0]["spots"][:2]] == [second, first]

    assert client.patch(f"/api/trips/{sid}/spots/missing", json={"name": "x"}).status_code == 404


def test_departure_form_round_trip(monkeypatch):
    client = _client(monkeypatch)
    sid = client.post("/api/trips", json=_sample_trip()).json()["session_id"]

    assert client.put(f"/api/trips/{sid}/departure", json={"location": "  "}).status_code == 400
    client.put(
        f"/api/trips/{sid}/departure",
        json={"location_undecided": True, "datetime": "2025-06-01T08:00", "datetime_undecided": True},
    )

    form = client.get(f"/api/trips/{sid}/departure/form").json()
    assert form == {"location": "", "datetime": "", "location_undecided": True, "datetime_undecided": True}
    assert client.get(f"/api/trips/{sid}").json()["departure"]["location"] == "未定"


def test_ending_a_trip_forgets_the_session(monkeypatch):
    client = _client(monkeypatch)
    sid = client.post("/api/trips", json=_sample_trip()).json()["session_id"]

    assert client.delete(f"/api/trips/{sid}").status_code == 204
    assert client.get(f"/api/trips/{sid}").status_code == 404
    assert main.store.load_trip(sid) is None


def test_map_endpoint_uses_display_geocoder(monkeypatch):
    from trip_planner.agents.map_view import MapViewBuilder

    client = _client(monkeypatch)
    monkeypatch.setattr(main.store, "map_builder", MapViewBuilder(FakeGeocoder()))
    sid = client.post("/api/trips", json=_sample_trip()).json()["session_id"]
    client.put(f"/api/trips/{sid}/departure", json={"location": "京都駅"})
    client.post(f"/api/trips/{sid}/spots", json={"name": "金閣寺", "category": "観光"})

    view = client.get(f"/api/trips/{sid}/map").json()

    assert view["destination_center"]["zoom"] == 11
    assert [m["label"] for m in view["markers"]] == ["出発: 京都駅", "金閣寺"]
    assert view["viewport"]["padding"] == 40


def test_error_statuses_outside_the_travel_time_query():
    cases = [
        (CommunicationError(), 500),
        (ConfigurationError(), 500),
        (PlaceNotFound("x"), 404),
        (UpstreamError("UNKNOWN_ERROR"), 404),
    ]
    for error, status in cases:
        http_error = main._http_error(error)
        assert http_error.status_code == status
        assert http_error.detail == error.message
