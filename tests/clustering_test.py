from __future__ import annotations

from datetime import datetime, timezone

import pytest

from parkprice.core.abstractions import SpotCoordinate
from parkprice.core.clustering import ProximityClusterer, TieBreak, degree_distance, make_group_id

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def spot(spot_id: str, lat: float, lon: float) -> SpotCoordinate:
    return SpotCoordinate(spot_id=spot_id, latitude=lat, longitude=lon)


def test_two_close_spots_form_one_group():
    groups = ProximityClusterer().cluster([spot("a", 45.0, 25.0), spot("b", 45.005, 25.0)], now=NOW)

    assert len(groups) == 1
    assert groups[0].members == ("a", "b")
    assert groups[0].center.latitude == pytest.approx(45.0025)
    assert groups[0].center.longitude == pytest.approx(25.0)
    assert groups[0].last_updated == NOW


def test_two_distant_spots_form_two_singletons():
    groups = ProximityClusterer().cluster([spot("a", 45.0, 25.0), spot("b", 45.02, 25.0)], now=NOW)

    assert [g.members for g in groups] == [("a",), ("b",)]
    assert groups[1].group_id == "45.0200_25.0000"


def test_distance_equal_to_tolerance_joins():
    clusterer = ProximityClusterer(tolerance=0.5)
    groups = clusterer.cluster([spot("a", 0.0, 0.0), spot("b", 0.5, 0.0)], now=NOW)

    assert len(groups) == 1


def test_every_spot_lands_in_exactly_one_group():
    spots = [spot(f"s{i}", 45.0 + (i % 7) * 0.004, 25.0 + (i // 7) * 0.013) for i in range(40)]
    spots.append(spot("s3", 10.0, 10.0))

    groups = ProximityClusterer().cluster(spots, now=NOW)

    members = [m for g in groups for m in g.members]
    assert sorted(members) == sorted(f"s{i}" for i in range(40))


def test_centroid_is_arithmetic_mean():
    points = [spot("a", 45.0, 25.0), spot("b", 45.004, 25.002), spot("c", 45.002, 24.999), spot("d", 45.001, 25.003)]

    (group,) = ProximityClusterer().cluster(points, now=NOW)

    assert group.center.latitude == pytest.approx(sum(p.latitude for p in points) / 4, abs=1e-12)
    assert group.center.longitude == pytest.approx(sum(p.longitude for p in points) / 4, abs=1e-12)


def test_first_match_prefers_earliest_cluster_over_nearest():
    # c is within tolerance of both clusters but closer to the second one
    spots = [spot("a", 0.0, 0.0), spot("b", 0.0, 0.015), spot("c", 0.0, 0.009)]

    groups = ProximityClusterer(tie_break=TieBreak.FIRST_MATCH).cluster(spots, now=NOW)

    assert groups[0].members == ("a", "c")
    assert groups[1].members == ("b",)


def test_nearest_tie_break_picks_closest_centroid():
    spots = [spot("a", 0.0, 0.0), spot("b", 0.0, 0.015), spot("c", 0.0, 0.009)]

    groups = ProximityClusterer(tie_break="nearest").cluster(spots, now=NOW)

    assert groups[0].members == ("a",)
    assert groups[1].members == ("b", "c")


def test_result_depends_on_input_order():
    forward = [spot("a", 0.0, 0.0), spot("b", 0.0, 0.008), spot("c", 0.0, 0.016)]

    first = ProximityClusterer().cluster(forward, now=NOW)
    second = ProximityClusterer().cluster(list(reversed(forward)), now=NOW)

    assert [g.members for g in first] == [("a", "b"), ("c",)]
    assert [g.members for g in second] == [("c", "b"), ("a",)]


def test_reclustering_same_input_is_idempotent():
    spots = [spot(f"s{i}", 44.4 + i * 0.003, 26.1 - i * 0.002) for i in range(12)]
    clusterer = ProximityClusterer()

    first = clusterer.cluster(spots, now=NOW)
    second = clusterer.cluster(spots, now=NOW)

    assert [(g.group_id, g.center, g.members) for g in first] == [(g.group_id, g.center, g.members) for g in second]


def test_group_id_rounds_to_four_decimals():
    assert make_group_id(44.43251, 26.10449) == "44.4325_26.1045"
    assert make_group_id(-0.0, -0.0) == "0.0000_0.0000"
    assert make_group_id(-33.86881, 151.20929) == "-33.8688_151.2093"
    assert make_group_id(45.03125, 26.09375) == "45.0313_26.0938"
    assert make_group_id(-45.03125, -26.09375) == "-45.0313_-26.0938"


def test_degree_distance_is_planar():
    assert degree_distance(0.0, 0.0, 3.0, 4.0) == pytest.approx(5.0)


def test_negative_tolerance_is_rejected():
    with pytest.raises(ValueError):
        ProximityClusterer(tolerance=-1)
