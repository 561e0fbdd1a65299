from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from parkprice.core.abstractions import FREE, OCCUPIED, ParkingEvent
from parkprice.core.occupancy import occupancy_rate

T0 = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def event(seconds: float, status: str) -> ParkingEvent:
    return ParkingEvent(
        event_id=f"evt_{seconds}",
        spot_id="spot-1",
        latitude=44.43,
        longitude=26.10,
        status=status,
        timestamp=T0 + timedelta(seconds=seconds),
    )


def test_interval_takes_status_of_earlier_event():
    events = [event(0, FREE), event(100, OCCUPIED), event(300, FREE)]

    assert occupancy_rate(events) == pytest.approx(200 / 300)
    assert round(occupancy_rate(events), 4) == 0.6667


@pytest.mark.parametrize("events", [[], [event(0, OCCUPIED)]])
def test_fewer_than_two_events_is_zero(events):
    assert occupancy_rate(events) == 0


def test_open_interval_is_not_counted_by_default():
    events = [event(0, OCCUPIED), event(60, FREE)]

    assert occupancy_rate(events) == 1.0


def test_open_interval_counted_until_given_instant():
    events = [event(0, OCCUPIED), event(60, FREE)]

    assert occupancy_rate(events, until=T0 + timedelta(seconds=120)) == pytest.approx(0.5)


def test_until_before_last_event_is_ignored():
    events = [event(0, OCCUPIED), event(60, FREE)]

    assert occupancy_rate(events, until=T0) == 1.0


def test_repeated_timestamps_give_zero():
    events = [event(0, OCCUPIED), event(0, FREE)]

    assert occupancy_rate(events) == 0


def test_always_free_spot():
    events = [event(0, FREE), event(50, FREE), event(90, OCCUPIED)]

    assert occupancy_rate(events) == 0
