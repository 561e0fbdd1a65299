"""Core abstractions for the parking pricing domain."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Dict, Optional, Protocol, Tuple

FREE = "free"
OCCUPIED = "occupied"
STATUSES = (FREE, OCCUPIED)


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class ParkingEvent:
    """A single sensor reading as stored in the append-only event log."""

    event_id: str
    spot_id: str
    latitude: float
    longitude: float
    status: str
    timestamp: datetime

    @property
    def is_occupied(self) -> bool:
        return self.status == OCCUPIED


@dataclass(frozen=True)
class SpotCoordinate:
    """Most recent known position of a spot."""

    spot_id: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class SpotGroup:
    group_id: str
    center: Coordinate
    members: Tuple[str, ...]
    last_updated: datetime


@dataclass(frozen=True)
class Weather:
    """Normalized weather snapshot.

    ``temperature`` is in Celsius, ``condition`` a lower-case word such as
    ``clear``, ``cloudy``, ``rainy`` or ``snowy``.
    """

    temperature: Optional[float]
    condition: str

    def as_dict(self) -> Dict[str, object]:
        return {"temperature": self.temperature, "condition": self.condition}


UNKNOWN_WEATHER = Weather(temperature=None, condition="unknown")


@dataclass(frozen=True)
class PriceQuote:
    spot_id: str
    latitude: float
    longitude: float
    status: str
    price: Decimal
    weather: Weather
    jam_factor: float
    occupancy_rate: float
    local_time: datetime
    group_id: Optional[str] = field(default=None, compare=False)

    def as_dict(self) -> Dict[str, object]:
        return {
            "spot_id": self.spot_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "status": self.status,
            "price": f"{self.price:.2f}",
            "weather": self.weather.as_dict(),
            "jam_factor": f"{self.jam_factor:.2f}",
            "occupancy_rate": f"{self.occupancy_rate * 100:.2f}",
            "local_time": self.local_time.isoformat(),
        }


class WeatherProvider(Protocol):
    """A data source returning the current weather for a coordinate."""

    name: str

    def get_weather(self, latitude: float, longitude: float) -> Weather:
        ...


class TrafficProvider(Protocol):
    """A data source returning a congestion score between 0 and 10."""

    name: str

    def get_jam_factor(self, latitude: float, longitude: float) -> float:
        ...


class TimezoneResolver(Protocol):
    def resolve(self, latitude: float, longitude: float) -> tzinfo:
        ...


__all__ = [
    "Coordinate",
    "FREE",
    "OCCUPIED",
    "ParkingEvent",
    "PriceQuote",
    "STATUSES",
    "SpotCoordinate",
    "SpotGroup",
    "TimezoneResolver",
    "TrafficProvider",
    "UNKNOWN_WEATHER",
    "Weather",
    "WeatherProvider",
]
