"""HERE traffic flow provider.

The jam factor of a coordinate is the mean ``currentFlow.jamFactor`` of all
road segments inside a square box around it.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, List, Optional

from parkprice.core.providers.base import HttpProvider, ProviderError

METERS_PER_DEGREE = 111320.0
DEFAULT_RADIUS_M = 200.0


@dataclass(frozen=True)
class BoundingBox:
    west: float
    south: float
    east: float
    north: float

    def as_param(self) -> str:
        return f"bbox:{self.west},{self.south},{self.east},{self.north}"


def bounding_box(latitude: float, longitude: float, radius_m: float = DEFAULT_RADIUS_M) -> BoundingBox:
    lat_delta = radius_m / METERS_PER_DEGREE
    lon_delta = radius_m / (METERS_PER_DEGREE * math.cos(math.radians(latitude)))
    return BoundingBox(
        west=longitude - lon_delta,
        south=latitude - lat_delta,
        east=longitude + lon_delta,
        north=latitude + lat_delta,
    )


class HereTrafficProvider(HttpProvider):
    name = "here-traffic"
    base_url = "https://data.traffic.hereapi.com/v7/flow"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: Optional[str] = None,
        radius_m: float = DEFAULT_RADIUS_M,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url or self.base_url
        self.radius_m = radius_m

    def get_jam_factor(self, latitude: float, longitude: float) -> float:
        box = bounding_box(latitude, longitude, self.radius_m)
        params = {
            "in": box.as_param(),
            "apiKey": self.api_key,
            "locationReferencing": "shape",
        }
        response = self._request("GET", self.base_url, params=params)
        data = self._json(response)
        if not isinstance(data, dict):
            raise ProviderError(f"{self.name}: unexpected payload")

        factors: List[float] = []
        for result in data.get("results") or []:
            flow = result.get("currentFlow") or {}
            value = flow.get("jamFactor")
            if value is not None:
                factors.append(float(value))
        if not factors:
            return 0.0
        return sum(factors) / len(factors)


__all__ = ["BoundingBox", "HereTrafficProvider", "bounding_box"]
