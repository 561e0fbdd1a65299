"""Orchestrates ingestion, re-clustering and price quoting."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Union

from parkprice.core import models
from parkprice.core.abstractions import PriceQuote, SpotGroup, TimezoneResolver
from parkprice.core.cache import SignalCache, SignalFetchError
from parkprice.core.clustering import ProximityClusterer
from parkprice.core.health import HealthRegistry
from parkprice.core.occupancy import occupancy_rate
from parkprice.core.pricing import calculate_price
from parkprice.ingest.schemas import SensorBatch

logger = logging.getLogger(__name__)

DEFAULT_BASE_PRICE = Decimal("10")


@dataclass
class IngestResult:
    stored: int = 0
    failed: int = 0
    groups: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DerivationPipeline:
    """Keep spot groups in sync with the event log and quote per-spot prices.

    Every ingested batch triggers one full re-clustering pass over the latest
    coordinate of every known spot.  Group ids derive from the centroid, so a
    moving centroid yields a new id; groups the current pass no longer
    produces are pruned unless ``prune_stale_groups`` is off.
    """

    def __init__(
        self,
        *,
        signal_cache: SignalCache,
        timezone_resolver: TimezoneResolver,
        session_factory: Optional[models.SessionFactory] = None,
        clusterer: Optional[ProximityClusterer] = None,
        base_price: Union[Decimal, int, float, str] = DEFAULT_BASE_PRICE,
        prune_stale_groups: bool = True,
        health: Optional[HealthRegistry] = None,
        now_func: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.signal_cache = signal_cache
        self.timezone_resolver = timezone_resolver
        self.clusterer = clusterer or ProximityClusterer()
        self.base_price = Decimal(str(base_price))
        self.prune_stale_groups = prune_stale_groups
        self.health = health
        self._session_factory = session_factory
        self._now = now_func

    # Ingestion ----------------------------------------------------------
    def ingest(self, batch: SensorBatch) -> IngestResult:
        result = IngestResult()
        for reading in batch.parking_status:
            try:
                with models.session_scope(self._session_factory) as session:
                    models.insert_event(
                        session,
                        spot_id=reading.id,
                        latitude=reading.lat,
                        longitude=reading.lon,
                        status=reading.status,
                        timestamp=batch.timestamp,
                    )
            except models.PersistenceError:
                logger.exception("Error logging event for spot %s", reading.id)
                result.failed += 1
                continue
            result.stored += 1
            logger.debug("Event logged for spot %s", reading.id)
            if self.health is not None:
                self.health.record_sensor_heartbeat(reading.id, batch.timestamp)

        if result.stored:
            try:
                result.groups = len(self.recluster())
            except models.PersistenceError:
                logger.exception("Re-clustering after ingest failed")
        logger.info(
            "Ingested batch: %s stored, %s failed, %s groups",
            result.stored,
            result.failed,
            result.groups,
        )
        return result

    # Clustering ---------------------------------------------------------
    def recluster(self) -> List[SpotGroup]:
        with models.session_scope(self._session_factory) as session:
            spots = models.spot_coordinates(session)
        groups = self.clusterer.cluster(spots, now=self._now())

        failures = 0
        seen: Dict[str, SpotGroup] = {}
        for group in groups:
            if group.group_id in seen:
                logger.warning("Clusters share group id %s; the later one replaces the earlier", group.group_id)
            seen[group.group_id] = group
            try:
                with models.session_scope(self._session_factory) as session:
                    models.upsert_group(session, group)
            except models.PersistenceError:
                logger.exception("Failed to upsert group %s", group.group_id)
                failures += 1

        if self.prune_stale_groups and not failures:
            try:
                with models.session_scope(self._session_factory) as session:
                    removed = models.delete_groups_except(session, seen.keys())
            except models.PersistenceError:
                logger.exception("Failed to prune stale groups")
            else:
                if removed:
                    logger.info("Pruned %s stale group(s)", removed)
        return groups

    # Quoting ------------------------------------------------------------
    def quote_prices(self) -> List[PriceQuote]:
        now = self._now()
        with models.session_scope(self._session_factory) as session:
            groups = models.list_groups(session)

        quotes: List[PriceQuote] = []
        for group in groups:
            try:
                quotes.extend(self._quote_group(group, now))
            except SignalFetchError as exc:
                logger.error("Skipping group %s: %s", group.group_id, exc)
            except models.PersistenceError:
                logger.exception("Skipping group %s: store unavailable", group.group_id)

        if self.health is not None:
            self.health.set_cache_stats(self.signal_cache.stats())
        return quotes

    def _quote_group(self, group: SpotGroup, now: datetime) -> List[PriceQuote]:
        latitude, longitude = group.center.latitude, group.center.longitude
        signal = self.signal_cache.get_or_fetch(group.group_id, latitude, longitude)
        local_time = now.astimezone(self.timezone_resolver.resolve(latitude, longitude))

        quotes: List[PriceQuote] = []
        with models.session_scope(self._session_factory) as session:
            for spot_id in group.members:
                events = models.events_for_spot(session, spot_id)
                if not events:
                    logger.warning("Group %s lists spot %s without events", group.group_id, spot_id)
                    continue
                rate = occupancy_rate(events)
                latest = events[-1]
                quotes.append(
                    PriceQuote(
                        spot_id=spot_id,
                        latitude=latest.latitude,
                        longitude=latest.longitude,
                        status=latest.status,
                        price=calculate_price(
                            self.base_price,
                            rate,
                            local_time.hour,
                            signal.weather.condition,
                            signal.jam_factor,
                        ),
                        weather=signal.weather,
                        jam_factor=signal.jam_factor,
                        occupancy_rate=rate,
                        local_time=local_time,
                        group_id=group.group_id,
                    )
                )
        return quotes


__all__ = ["DEFAULT_BASE_PRICE", "DerivationPipeline", "IngestResult"]
