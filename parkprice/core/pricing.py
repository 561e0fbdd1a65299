"""Dynamic price rules.

Every surcharge is a fraction of the base price and they are summed, so the
order in which rules are evaluated never changes the result.  No cap applies.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Union

Number = Union[int, float, Decimal, str]

HIGH_OCCUPANCY_THRESHOLD = 0.7
PEAK_HOURS = ((8, 10), (17, 19))
WET_CONDITIONS = frozenset({"rainy", "snowy"})
MODERATE_JAM = 2.0
HEAVY_JAM = 4.0

OCCUPANCY_SURCHARGE = Decimal("0.20")
PEAK_SURCHARGE = Decimal("0.15")
WEATHER_SURCHARGE = Decimal("0.10")
MODERATE_JAM_SURCHARGE = Decimal("0.10")
HEAVY_JAM_SURCHARGE = Decimal("0.20")

CENT = Decimal("0.01")


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def is_peak_hour(hour: int) -> bool:
    return any(start <= hour <= end for start, end in PEAK_HOURS)


def surcharges(
    base_price: Number,
    occupancy_rate: float,
    local_hour: int,
    weather_condition: Optional[str],
    jam_factor: float,
) -> Dict[str, Decimal]:
    """Return the surcharges that apply, keyed by rule name."""
    base = _to_decimal(base_price)
    applied: Dict[str, Decimal] = {}
    if occupancy_rate > HIGH_OCCUPANCY_THRESHOLD:
        applied["occupancy"] = base * OCCUPANCY_SURCHARGE
    if is_peak_hour(local_hour):
        applied["peak_hour"] = base * PEAK_SURCHARGE
    if (weather_condition or "").lower() in WET_CONDITIONS:
        applied["weather"] = base * WEATHER_SURCHARGE
    if MODERATE_JAM <= jam_factor < HEAVY_JAM:
        applied["traffic"] = base * MODERATE_JAM_SURCHARGE
    elif jam_factor >= HEAVY_JAM:
        applied["traffic"] = base * HEAVY_JAM_SURCHARGE
    return applied


def calculate_price(
    base_price: Number,
    occupancy_rate: float,
    local_hour: int,
    weather_condition: Optional[str],
    jam_factor: float,
) -> Decimal:
    base = _to_decimal(base_price)
    extra = sum(
        surcharges(base, occupancy_rate, local_hour, weather_condition, jam_factor).values(),
        Decimal("0"),
    )
    return (base + extra).quantize(CENT, rounding=ROUND_HALF_UP)


def format_price(price: Decimal) -> str:
    return f"{price.quantize(CENT, rounding=ROUND_HALF_UP):.2f}"


__all__ = ["calculate_price", "format_price", "is_peak_hour", "surcharges"]
