from datetime import datetime, timedelta, timezone

import pytest
from django.test import Client

from parkprice.api import views
from parkprice.core.health import HealthRegistry


@pytest.fixture()
def registry() -> HealthRegistry:
    registry = HealthRegistry()
    now = datetime(2024, 1, 10, 12, 30, tzinfo=timezone.utc)
    registry.record_sensor_heartbeat("A1", now)
    registry.record_sensor_heartbeat("A2", now - timedelta(minutes=5))
    registry.record_provider_error("here-traffic")
    registry.record_provider_error("openweather", increment=3)
    registry.set_cache_stats({"hits": 42, "misses": 3, "keys": 7})
    return registry


def test_health_endpoint_returns_expected_payload(registry: HealthRegistry, monkeypatch) -> None:
    monkeypatch.setattr(views, "get_health_registry", lambda: registry)

    response = Client().get("/api/admin/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["providers"] == {"openweather": 3, "here-traffic": 1}
    assert payload["cache"] == {"hits": 42, "misses": 3, "keys": 7}
    assert payload["sensors"]["A1"] == "2024-01-10T12:30:00+00:00"
    assert set(payload["sensors"]) == {"A1", "A2"}


def test_health_endpoint_rejects_post(registry: HealthRegistry, monkeypatch) -> None:
    monkeypatch.setattr(views, "get_health_registry", lambda: registry)

    response = Client().post("/api/admin/health")

    assert response.status_code == 405


def test_provider_errors_can_be_drained(registry: HealthRegistry) -> None:
    drained = registry.drain_provider_errors()
    assert drained == {"here-traffic": 1, "openweather": 3}
    assert registry.snapshot()["providers"] == {}


def test_naive_heartbeat_is_treated_as_utc() -> None:
    registry = HealthRegistry()
    registry.record_sensor_heartbeat("A1", datetime(2024, 1, 10, 12, 30))

    assert registry.snapshot()["sensors"]["A1"] == "2024-01-10T12:30:00+00:00"


def test_invalid_inputs_are_rejected() -> None:
    registry = HealthRegistry()
    with pytest.raises(ValueError):
        registry.record_sensor_heartbeat("")
    with pytest.raises(ValueError):
        registry.record_provider_error("openweather", increment=0)
    registry.set_cache_stats(None)
    assert registry.snapshot()["cache"] == {"hits": 0, "misses": 0, "keys": 0}
