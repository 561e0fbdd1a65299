"""Time-bounded cache for the per-group traffic and weather signals."""
from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

from parkprice.core.abstractions import UNKNOWN_WEATHER, TrafficProvider, Weather, WeatherProvider
from parkprice.core.health import HealthRegistry

logger = logging.getLogger(__name__)


class FailurePolicy(str, enum.Enum):
    """What the cache does when a provider call fails."""

    RAISE = "raise"
    FALLBACK = "fallback"


class SignalFetchError(RuntimeError):
    """Raised when a signal is required but its provider failed."""


class WeatherFetchError(SignalFetchError):
    pass


class TrafficFetchError(SignalFetchError):
    pass


@dataclass(frozen=True)
class CachedSignal:
    group_id: str
    jam_factor: float
    weather: Weather
    fetched_at: float


class SignalCache:
    """Cache ``(jam_factor, weather)`` per group for ``ttl`` seconds.

    On a miss both providers are called concurrently and joined before the
    entry is stored.  Callers racing on the same group wait for the fetch that
    is already running instead of starting their own.  A result that carries a
    fallback value is stored like any other and lives for the full ``ttl``.
    """

    DEFAULT_TTL = 5 * 60

    def __init__(
        self,
        *,
        weather_provider: WeatherProvider,
        traffic_provider: TrafficProvider,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
        weather_policy: FailurePolicy = FailurePolicy.RAISE,
        traffic_policy: FailurePolicy = FailurePolicy.FALLBACK,
        fallback_weather: Weather = UNKNOWN_WEATHER,
        fallback_jam_factor: float = 0.0,
        health: Optional[HealthRegistry] = None,
    ) -> None:
        self.weather_provider = weather_provider
        self.traffic_provider = traffic_provider
        self.ttl = ttl
        self.weather_policy = FailurePolicy(weather_policy)
        self.traffic_policy = FailurePolicy(traffic_policy)
        self.fallback_weather = fallback_weather
        self.fallback_jam_factor = fallback_jam_factor
        self._clock = clock
        self._health = health
        self._entries: Dict[str, CachedSignal] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="signal-fetch")

    # Public API ---------------------------------------------------------
    def get(self, group_id: str) -> Optional[CachedSignal]:
        """Return the fresh entry for ``group_id`` without fetching."""
        with self._lock:
            entry = self._entries.get(group_id)
        if entry is None or not self._is_fresh(entry):
            return None
        return entry

    def get_or_fetch(self, group_id: str, latitude: float, longitude: float) -> CachedSignal:
        entry = self._hit(group_id)
        if entry is not None:
            return entry

        with self._key_lock(group_id):
            entry = self._hit(group_id)
            if entry is not None:
                return entry
            with self._lock:
                self._misses += 1
            signal = self._fetch(group_id, latitude, longitude)
            with self._lock:
                self._entries[group_id] = signal
            return signal

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "keys": len(self._entries)}

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    # Helpers ------------------------------------------------------------
    def _is_fresh(self, entry: CachedSignal) -> bool:
        return self._clock() - entry.fetched_at < self.ttl

    def _hit(self, group_id: str) -> Optional[CachedSignal]:
        entry = self.get(group_id)
        if entry is not None:
            with self._lock:
                self._hits += 1
        return entry

    def _key_lock(self, group_id: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(group_id)
            if lock is None:
                lock = self._key_locks[group_id] = threading.Lock()
            return lock

    def _fetch(self, group_id: str, latitude: float, longitude: float) -> CachedSignal:
        fetched_at = self._clock()
        weather_future = self._executor.submit(self.weather_provider.get_weather, latitude, longitude)
        traffic_future = self._executor.submit(self.traffic_provider.get_jam_factor, latitude, longitude)
        wait([weather_future, traffic_future])

        jam_factor = self._settle(
            traffic_future,
            self.traffic_provider,
            self.traffic_policy,
            self.fallback_jam_factor,
            TrafficFetchError,
            group_id,
        )
        weather = self._settle(
            weather_future,
            self.weather_provider,
            self.weather_policy,
            self.fallback_weather,
            WeatherFetchError,
            group_id,
        )
        return CachedSignal(
            group_id=group_id,
            jam_factor=float(jam_factor),
            weather=weather,
            fetched_at=fetched_at,
        )

    def _settle(
        self,
        future: Future,
        provider: Any,
        policy: FailurePolicy,
        fallback: Any,
        error_cls: Type[SignalFetchError],
        group_id: str,
    ) -> Any:
        exc = future.exception()
        if exc is None:
            return future.result()

        name = getattr(provider, "name", provider.__class__.__name__)
        if self._health is not None:
            self._health.record_provider_error(name)
        if policy is FailurePolicy.RAISE:
            raise error_cls(f"{name} failed for group {group_id}") from exc
        logger.warning("Provider %s failed for group %s, using %r: %s", name, group_id, fallback, exc)
        return fallback


__all__ = [
    "CachedSignal",
    "FailurePolicy",
    "SignalCache",
    "SignalFetchError",
    "TrafficFetchError",
    "WeatherFetchError",
]
