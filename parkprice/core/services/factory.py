"""Build the pipeline from Django settings."""
from __future__ import annotations

from functools import lru_cache

from django.conf import settings

from parkprice.core.cache import FailurePolicy, SignalCache
from parkprice.core.clustering import ProximityClusterer, TieBreak
from parkprice.core.health import HealthRegistry
from parkprice.core.providers import HereTrafficProvider, OpenWeatherProvider, RequestConfig
from parkprice.core.services.pipeline import DerivationPipeline
from parkprice.core.timezones import CoordinateTimezoneResolver, FixedTimezoneResolver


@lru_cache(maxsize=1)
def get_health_registry() -> HealthRegistry:
    return HealthRegistry()


def get_request_config() -> RequestConfig:
    return RequestConfig(
        timeout=settings.PROVIDER_TIMEOUT,
        retries=settings.PROVIDER_RETRIES,
        backoff_factor=settings.PROVIDER_BACKOFF_FACTOR,
    )


def get_timezone_resolver():
    if settings.PARKING_TIME_ZONE_LOOKUP:
        return CoordinateTimezoneResolver(fallback_zone=settings.PARKING_TIME_ZONE)
    return FixedTimezoneResolver(settings.PARKING_TIME_ZONE)


@lru_cache(maxsize=1)
def get_pipeline() -> DerivationPipeline:
    request_config = get_request_config()
    health = get_health_registry()
    cache = SignalCache(
        weather_provider=OpenWeatherProvider(api_key=settings.OPENWEATHER_API_KEY, request_config=request_config),
        traffic_provider=HereTrafficProvider(api_key=settings.HERE_API_KEY, request_config=request_config),
        ttl=settings.SIGNAL_CACHE_TTL,
        weather_policy=FailurePolicy(settings.WEATHER_FAILURE_POLICY),
        traffic_policy=FailurePolicy(settings.TRAFFIC_FAILURE_POLICY),
        health=health,
    )
    return DerivationPipeline(
        signal_cache=cache,
        timezone_resolver=get_timezone_resolver(),
        clusterer=ProximityClusterer(
            tolerance=settings.PARKING_CLUSTER_TOLERANCE,
            tie_break=TieBreak(settings.PARKING_CLUSTER_TIE_BREAK),
        ),
        base_price=settings.PARKING_BASE_PRICE,
        prune_stale_groups=settings.PARKING_PRUNE_STALE_GROUPS,
        health=health,
    )


__all__ = ["get_health_registry", "get_pipeline", "get_request_config", "get_timezone_resolver"]
