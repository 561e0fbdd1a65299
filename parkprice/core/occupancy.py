"""Utilization estimate from a spot's status-change history."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from parkprice.core.abstractions import ParkingEvent


def occupancy_rate(events: Sequence[ParkingEvent], until: Optional[datetime] = None) -> float:
    """Return the fraction of observed time the spot spent occupied.

    ``events`` must be sorted by timestamp.  Each interval between two
    consecutive events is attributed to the status of the earlier one.  The
    interval after the last event is left out unless ``until`` is given, in
    which case it is counted up to that instant.
    """
    if not events:
        return 0.0

    total = 0.0
    occupied = 0.0
    for previous, current in zip(events, events[1:]):
        elapsed = (current.timestamp - previous.timestamp).total_seconds()
        total += elapsed
        if previous.is_occupied:
            occupied += elapsed

    last = events[-1]
    if until is not None and until > last.timestamp:
        elapsed = (until - last.timestamp).total_seconds()
        total += elapsed
        if last.is_occupied:
            occupied += elapsed

    if total <= 0:
        return 0.0
    return occupied / total


__all__ = ["occupancy_rate"]
