"""Local time lookup for group centroids."""
from __future__ import annotations

import logging
import threading
from datetime import tzinfo
from typing import Dict, Optional
from zoneinfo import ZoneInfo

from timezonefinder import TimezoneFinder

logger = logging.getLogger(__name__)


class FixedTimezoneResolver:
    """Resolve every coordinate to one configured IANA zone."""

    def __init__(self, zone_name: str = "UTC") -> None:
        self.zone_name = zone_name
        self._zone = ZoneInfo(zone_name)

    def resolve(self, latitude: float, longitude: float) -> tzinfo:
        return self._zone


class CoordinateTimezoneResolver:
    """Resolve a coordinate to the IANA zone whose boundary contains it.

    Points the boundary data cannot place resolve to ``fallback_zone``.
    """

    def __init__(self, fallback_zone: str = "UTC", finder: Optional[TimezoneFinder] = None) -> None:
        self.fallback = FixedTimezoneResolver(fallback_zone)
        self._finder = finder or TimezoneFinder()
        self._zones: Dict[str, tzinfo] = {}
        self._lock = threading.Lock()

    def resolve(self, latitude: float, longitude: float) -> tzinfo:
        with self._lock:
            name = self._finder.timezone_at(lng=longitude, lat=latitude)
            if name is None:
                logger.debug("No zone for %s,%s; using %s", latitude, longitude, self.fallback.zone_name)
                return self.fallback.resolve(latitude, longitude)
            zone = self._zones.get(name)
            if zone is None:
                zone = self._zones[name] = ZoneInfo(name)
            return zone


__all__ = ["CoordinateTimezoneResolver", "FixedTimezoneResolver"]
