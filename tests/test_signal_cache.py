from __future__ import annotations

import threading
import time

import pytest

from parkprice.core.abstractions import UNKNOWN_WEATHER, Weather
from parkprice.core.cache import (
    FailurePolicy,
    SignalCache,
    TrafficFetchError,
    WeatherFetchError,
)
from parkprice.core.providers import ProviderError

from stubs import StubTrafficProvider, StubWeatherProvider


def test_returns_identical_entry_within_ttl(signal_cache, weather_provider, traffic_provider, clock):
    first = signal_cache.get_or_fetch("g1", 44.43, 26.10)
    clock.advance(SignalCache.DEFAULT_TTL - 1)
    second = signal_cache.get_or_fetch("g1", 44.43, 26.10)

    assert first is second
    assert len(weather_provider.calls) == 1
    assert len(traffic_provider.calls) == 1


def test_refetches_exactly_once_after_expiry(signal_cache, weather_provider, traffic_provider, clock):
    signal_cache.get_or_fetch("g1", 44.43, 26.10)
    clock.advance(SignalCache.DEFAULT_TTL)

    refreshed = signal_cache.get_or_fetch("g1", 44.43, 26.10)
    again = signal_cache.get_or_fetch("g1", 44.43, 26.10)

    assert refreshed is again
    assert refreshed.fetched_at == SignalCache.DEFAULT_TTL
    assert len(weather_provider.calls) == 2
    assert len(traffic_provider.calls) == 2


def test_entries_are_keyed_by_group(signal_cache, weather_provider):
    signal_cache.get_or_fetch("g1", 44.43, 26.10)
    signal_cache.get_or_fetch("g2", 45.00, 25.00)

    assert weather_provider.calls == [(44.43, 26.10), (45.00, 25.00)]
    assert signal_cache.stats() == {"hits": 0, "misses": 2, "keys": 2}


def test_entry_carries_both_signals(signal_cache):
    entry = signal_cache.get_or_fetch("g1", 1.0, 2.0)

    assert entry.group_id == "g1"
    assert entry.jam_factor == 1.0
    assert entry.weather == Weather(temperature=12.0, condition="clear")


def test_weather_failure_raises_by_default(clock, health):
    cache = SignalCache(
        weather_provider=StubWeatherProvider(error=ProviderError("down")),
        traffic_provider=StubTrafficProvider(),
        clock=clock,
        health=health,
    )
    try:
        with pytest.raises(WeatherFetchError):
            cache.get_or_fetch("g1", 1.0, 2.0)
    finally:
        cache.close()

    assert cache.get("g1") is None
    assert health.snapshot()["providers"] == {"stub-weather": 1}


def test_traffic_fallback_is_cached_for_the_full_ttl(clock):
    weather = StubWeatherProvider()
    traffic = StubTrafficProvider(error=ProviderError("timeout"))
    cache = SignalCache(weather_provider=weather, traffic_provider=traffic, clock=clock)
    try:
        first = cache.get_or_fetch("g1", 1.0, 2.0)
        clock.advance(SignalCache.DEFAULT_TTL - 1)
        second = cache.get_or_fetch("g1", 1.0, 2.0)
        clock.advance(1)
        refreshed = cache.get_or_fetch("g1", 1.0, 2.0)
    finally:
        cache.close()

    assert first.jam_factor == 0.0
    assert first is second
    assert refreshed is not first
    assert len(weather.calls) == 2
    assert len(traffic.calls) == 2


def test_policies_are_configurable_per_signal(clock):
    cache = SignalCache(
        weather_provider=StubWeatherProvider(error=ProviderError("down")),
        traffic_provider=StubTrafficProvider(error=ProviderError("down")),
        clock=clock,
        weather_policy=FailurePolicy.FALLBACK,
        traffic_policy="raise",
    )
    try:
        with pytest.raises(TrafficFetchError):
            cache.get_or_fetch("g1", 1.0, 2.0)
    finally:
        cache.close()


def test_weather_fallback_uses_unknown_condition(clock):
    cache = SignalCache(
        weather_provider=StubWeatherProvider(error=RuntimeError("boom")),
        traffic_provider=StubTrafficProvider(jam_factor=3.0),
        clock=clock,
        weather_policy=FailurePolicy.FALLBACK,
    )
    try:
        entry = cache.get_or_fetch("g1", 1.0, 2.0)
    finally:
        cache.close()

    assert entry.weather == UNKNOWN_WEATHER
    assert entry.jam_factor == 3.0


class _SlowWeatherProvider(StubWeatherProvider):
    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()

    def get_weather(self, latitude, longitude):
        self.release.wait(timeout=5)
        return super().get_weather(latitude, longitude)


def test_concurrent_callers_share_one_fetch(clock):
    weather = _SlowWeatherProvider()
    traffic = StubTrafficProvider()
    cache = SignalCache(weather_provider=weather, traffic_provider=traffic, clock=clock)
    results = []

    def worker():
        results.append(cache.get_or_fetch("g1", 1.0, 2.0))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    try:
        for thread in threads:
            thread.start()
        time.sleep(0.05)
        weather.release.set()
        for thread in threads:
            thread.join(timeout=5)
    finally:
        cache.close()

    assert len(results) == 4
    assert all(result is results[0] for result in results)
    assert len(weather.calls) == 1
    assert len(traffic.calls) == 1
