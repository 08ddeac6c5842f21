from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.schemas import DEFAULT_WEATHER
from datastore.threshold_store import ThresholdConfigStore
from integrations.sensor_api import SensorDataError
from services.dashboard import DashboardService

READINGS = [
    {"timestamp": "2024-01-02T06:00:00Z", "sensor1": 10, "sensor2": 40, "humidity": 55},
    {"timestamp": "2024-01-02T18:00:00Z", "sensor1": 30, "sensor2": 60},
    {"timestamp": "2024-01-09T12:00:00Z", "sensor1": 15, "sensor2": 45, "batteryLevel": 91},
    {"timestamp": "bogus", "sensor1": 1, "sensor2": 1},
]


class FakeSensors:
    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)

    async def fetch_readings(self) -> List[Dict[str, Any]]:
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class FakeWeather:
    async def fetch_snapshot(self):
        return DEFAULT_WEATHER.model_copy()


@pytest.fixture
def make_client(tmp_path, monkeypatch) -> Iterator[Callable[..., TestClient]]:
    clients: List[TestClient] = []
    dashboards: List[DashboardService] = []

    def build_test_dashboard() -> DashboardService:
        return dashboards[-1]

    def cache_clear() -> None:
        pass

    build_test_dashboard.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_dashboard", build_test_dashboard)
    monkeypatch.setattr("app.api.build_default_dashboard", build_test_dashboard)
    monkeypatch.setattr("services.dashboard.build_default_dashboard", build_test_dashboard)

    def factory(*responses: Any) -> TestClient:
        dashboards.append(
            DashboardService(
                sensor_source=FakeSensors(*(responses or (READINGS,))),
                weather_source=FakeWeather(),
                store=ThresholdConfigStore(persistence_path=tmp_path / "thresholds.json"),
                now=lambda: datetime(2024, 1, 20, tzinfo=timezone.utc),
            )
        )
        client = TestClient(create_app())
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def api_client(make_client) -> TestClient:
    return make_client()


def test_health_and_root(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_dashboard_status_after_startup_load(api_client: TestClient) -> None:
    response = api_client.get("/dashboard/status")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ready"
    assert body["error"] is None
    assert body["reading_count"] == 3
    assert body["day_count"] == 2
    assert body["default_month"] == "2024-0"
    assert body["loaded_at"] is not None


def test_current_snapshot(api_client: TestClient) -> None:
    response = api_client.get("/dashboard/current")

    assert response.status_code == 200
    body = response.json()
    assert body["reading"]["moisture1"] == 15.0
    assert body["reading"]["battery_level"] == 91.0
    assert body["reading"]["temperature"] == DEFAULT_WEATHER.temperature
    assert body["evaluation"]["decision"] == {
        "active": True,
        "reason": "sensor1 moisture 15% below irrigation threshold 20%",
        "priority": "sensor1",
    }
    assert body["evaluation"]["alerts"] == {"sensor1": True, "sensor2": False}
    assert body["evaluation"]["soil"]["sensor1"]["status"] == "critical"
    assert body["weather"]["condition"] == "unavailable"
    assert body["pump_state"] == "active"


def test_history_defaults_and_filters(api_client: TestClient) -> None:
    default = api_client.get("/history").json()

    assert default["selection"] == {
        "month_key": "2024-0",
        "week_key": "2024-0-Week1",
        "day_key": "current",
    }
    assert [bucket["day_key"] for bucket in default["day_buckets"]] == ["2024-01-02"]
    assert default["day_buckets"][0]["moisture1"] == 20.0
    assert default["day_buckets"][0]["humidity"] == 55.0
    assert [week["label"] for week in default["month_week_buckets"]] == ["Week 1", "Week 2"]
    assert len(default["readings"]) == 3

    filtered = api_client.get(
        "/history", params={"month": "2024-0", "week": "2024-0-Week2", "day": "2024-01-09"}
    ).json()

    assert [bucket["day_key"] for bucket in filtered["day_buckets"]] == ["2024-01-09"]
    assert [reading["moisture1"] for reading in filtered["readings"]] == [15.0]
    assert [day["id"] for day in filtered["days"]] == ["2024-01-02", "2024-01-09"]


def test_history_ignores_malformed_keys(api_client: TestClient) -> None:
    response = api_client.get("/history", params={"week": "garbage", "day": "someday"})

    assert response.status_code == 200
    body = response.json()
    assert len(body["day_buckets"]) == 2
    assert len(body["readings"]) == 3


def test_history_months(api_client: TestClient) -> None:
    response = api_client.get("/history/months")

    assert response.json() == [{"id": "2024-0", "name": "January 2024"}]


def test_settings_round_trip(api_client: TestClient) -> None:
    config = api_client.get("/settings").json()
    assert config["selected_crop_id"] == "custom"

    config["sensor1"]["irrigation_threshold"] = 12
    config["sensor1"]["optimal_min"] = 10
    config["irrigation"]["sensor_priority"] = "both"
    response = api_client.put("/settings", json=config)

    assert response.status_code == 200
    assert api_client.get("/settings").json()["sensor1"]["irrigation_threshold"] == 12
    decision = api_client.get("/dashboard/current").json()["evaluation"]["decision"]
    assert decision["priority"] == "both"
    assert decision["active"] is False


def test_invalid_settings_return_unprocessable_entity(api_client: TestClient) -> None:
    config = api_client.get("/settings").json()
    config["sensor2"]["alert_threshold"] = 10
    config["irrigation"]["duration"] = 0

    response = api_client.put("/settings", json=config)

    assert response.status_code == 422
    assert response.json()["detail"] == [
        "Sensor 2: Irrigation threshold must be lower than alert threshold",
        "Irrigation duration must be between 1 and 60 minutes",
    ]


def test_crop_profiles(api_client: TestClient) -> None:
    profiles = api_client.get("/crop-profiles").json()
    assert [profile["id"] for profile in profiles] == ["tomatoes", "lettuce", "peppers", "herbs"]

    response = api_client.post("/settings/crop-profile/lettuce")

    assert response.status_code == 200
    assert response.json()["irrigation"]["sensor_priority"] == "sensor2"
    assert api_client.get("/settings").json()["selected_crop_id"] == "lettuce"


def test_unknown_crop_profile_returns_not_found(api_client: TestClient) -> None:
    response = api_client.post("/settings/crop-profile/cactus")

    assert response.status_code == 404
    assert "cactus" in response.json()["detail"]


def test_failed_load_reports_error_and_reload_recovers(make_client) -> None:
    client = make_client(SensorDataError("Sensor API returned status 503."), READINGS)

    status = client.get("/dashboard/status").json()
    assert status["status"] == "failed"
    assert status["error"] == "Sensor API returned status 503."

    current = client.get("/dashboard/current")
    assert current.status_code == 503
    assert current.json()["detail"] == "Sensor API returned status 503."

    reloaded = client.post("/dashboard/reload").json()
    assert reloaded["status"] == "ready"
    assert client.get("/dashboard/current").status_code == 200


def test_lifespan_starts_and_stops_refresh(monkeypatch) -> None:
    dashboard = DashboardService(
        sensor_source=FakeSensors(READINGS),
        weather_source=FakeWeather(),
        store=ThresholdConfigStore(),
    )
    cleared: List[bool] = []

    def build_test_dashboard() -> DashboardService:
        return dashboard

    build_test_dashboard.cache_clear = lambda: cleared.append(True)  # type: ignore[attr-defined]
    monkeypatch.setattr("app.main.build_default_dashboard", build_test_dashboard)

    with TestClient(create_app()):
        assert dashboard.refresh.running is True
        assert dashboard.current() is not None

    assert dashboard.refresh.running is False
    assert cleared == [True]
