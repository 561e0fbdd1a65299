"""Greedy proximity clustering of spot coordinates.

Spots are visited once, in input order, and compared against the centroids of
the clusters built so far (in creation order).  Distances are planar and
measured in raw degrees, so the tolerance shrinks in metres towards the poles.
"""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Set

from parkprice.core.abstractions import Coordinate, SpotCoordinate, SpotGroup

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.01


class TieBreak(str, enum.Enum):
    """How a spot picks among several clusters within tolerance."""

    FIRST_MATCH = "first_match"
    NEAREST = "nearest"


_GROUP_ID_STEP = Decimal("0.0001")


def _round_coordinate(value: float) -> Decimal:
    # exact binary value, ties away from zero; ``+ 0`` folds negative zero
    return Decimal(value).quantize(_GROUP_ID_STEP, rounding=ROUND_HALF_UP) + 0


def make_group_id(latitude: float, longitude: float) -> str:
    return f"{_round_coordinate(latitude)}_{_round_coordinate(longitude)}"


def degree_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return math.sqrt((lat1 - lat2) ** 2 + (lon1 - lon2) ** 2)


@dataclass
class _Cluster:
    latitude: float
    longitude: float
    members: List[str] = field(default_factory=list)

    def distance_to(self, spot: SpotCoordinate) -> float:
        return degree_distance(self.latitude, self.longitude, spot.latitude, spot.longitude)

    def add(self, spot: SpotCoordinate) -> None:
        self.members.append(spot.spot_id)
        n = len(self.members)
        self.latitude = (self.latitude * (n - 1) + spot.latitude) / n
        self.longitude = (self.longitude * (n - 1) + spot.longitude) / n


class ProximityClusterer:
    """Group spots whose coordinates lie within ``tolerance`` of a running centroid."""

    def __init__(
        self,
        tolerance: float = DEFAULT_TOLERANCE,
        tie_break: TieBreak = TieBreak.FIRST_MATCH,
    ) -> None:
        if tolerance < 0:
            raise ValueError("tolerance must be non-negative")
        self.tolerance = tolerance
        self.tie_break = TieBreak(tie_break)

    def cluster(
        self,
        spots: Iterable[SpotCoordinate],
        now: Optional[datetime] = None,
    ) -> List[SpotGroup]:
        """Return one group per cluster, in creation order.

        The result depends on the order of ``spots``; feed the same order to get
        the same groups back.
        """
        clusters: List[_Cluster] = []
        seen: Set[str] = set()
        for spot in spots:
            if spot.spot_id in seen:
                logger.debug("Ignoring repeated coordinate for spot %s", spot.spot_id)
                continue
            seen.add(spot.spot_id)
            target = self._select(clusters, spot)
            if target is None:
                clusters.append(_Cluster(spot.latitude, spot.longitude, [spot.spot_id]))
            else:
                target.add(spot)

        stamp = now or datetime.now(timezone.utc)
        return [
            SpotGroup(
                group_id=make_group_id(c.latitude, c.longitude),
                center=Coordinate(c.latitude, c.longitude),
                members=tuple(c.members),
                last_updated=stamp,
            )
            for c in clusters
        ]

    def _select(self, clusters: List[_Cluster], spot: SpotCoordinate) -> Optional[_Cluster]:
        best: Optional[_Cluster] = None
        best_distance = math.inf
        for candidate in clusters:
            distance = candidate.distance_to(spot)
            if distance > self.tolerance:
                continue
            if self.tie_break is TieBreak.FIRST_MATCH:
                return candidate
            if distance < best_distance:
                best, best_distance = candidate, distance
        return best


__all__ = ["DEFAULT_TOLERANCE", "ProximityClusterer", "TieBreak", "degree_distance", "make_group_id"]
