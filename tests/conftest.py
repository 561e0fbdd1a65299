from __future__ import annotations

from datetime import datetime, timezone

import pytest

from parkprice.core import models
from parkprice.core.cache import SignalCache
from parkprice.core.health import HealthRegistry
from parkprice.core.services.pipeline import DerivationPipeline
from parkprice.core.timezones import FixedTimezoneResolver

from stubs import StubTrafficProvider, StubWeatherProvider, TimeController


@pytest.fixture()
def session_factory(tmp_path) -> models.SessionFactory:
    return models.configure_engine(f"sqlite:///{tmp_path / 'parkprice.db'}")


@pytest.fixture()
def clock() -> TimeController:
    return TimeController()


@pytest.fixture()
def weather_provider() -> StubWeatherProvider:
    return StubWeatherProvider()


@pytest.fixture()
def traffic_provider() -> StubTrafficProvider:
    return StubTrafficProvider()


@pytest.fixture()
def health() -> HealthRegistry:
    return HealthRegistry()


@pytest.fixture()
def signal_cache(weather_provider, traffic_provider, clock, health):
    cache = SignalCache(
        weather_provider=weather_provider,
        traffic_provider=traffic_provider,
        clock=clock,
        health=health,
    )
    yield cache
    cache.close()


@pytest.fixture()
def fixed_now() -> datetime:
    return datetime(2024, 3, 11, 9, 30, tzinfo=timezone.utc)


@pytest.fixture()
def pipeline(session_factory, signal_cache, health, fixed_now) -> DerivationPipeline:
    return DerivationPipeline(
        signal_cache=signal_cache,
        timezone_resolver=FixedTimezoneResolver("UTC"),
        session_factory=session_factory,
        health=health,
        now_func=lambda: fixed_now,
    )
