"""Tests for day_split.py."""

import pytest

import day_split
import geo
import procedural


def _straight_line(n_segments, segment_km=1.0):
    points = [(0.0, 0.0)]
    for _ in range(n_segments):
        points.append(geo.destination(points[-1], 90, segment_km))
    return points


def test_single_day_has_no_breaks():
    assert day_split.split_days(_straight_line(10), 1) == []


def test_single_day_loop_has_no_breaks():
    loop = procedural.build_route((45.0, 7.0), 12, "hike", 1)
    assert day_split.split_days(loop, 1) == []


def test_two_days_break_at_midpoint():
    assert day_split.split_days(_straight_line(10), 2) == [5]


def test_three_days_pick_closest_points():
    # Boundaries at 3.33 km and 6.67 km.
    assert day_split.split_days(_straight_line(10), 3) == [3, 7]


@pytest.mark.parametrize("activity", ["hike", "bike"])
@pytest.mark.parametrize("day_count", [2, 3, 5, 7, 30])
def test_breaks_are_strictly_increasing_and_in_bounds(activity, day_count):
    route = procedural.build_route(
        (-33.9, 18.4), procedural.target_distance_km(activity, day_count), activity, day_count
    )
    breaks = day_split.split_days(route, day_count)
    assert len(breaks) == day_count - 1
    assert all(a < b for a, b in zip(breaks, breaks[1:]))
    assert all(0 < i < len(route) - 1 for i in breaks)


def test_uneven_spacing_collapsing_breaks_are_pushed_forward():
    # One long segment followed by tiny ones: every boundary is closest to
    # index 1, so later breaks must shift forward.
    points = [(0.0, 0.0), (0.0, 1.0)]
    for _ in range(5):
        points.append(geo.destination(points[-1], 90, 0.01))
    breaks = day_split.split_days(points, 4)
    assert len(breaks) == 3
    assert all(a < b for a, b in zip(breaks, breaks[1:]))
    assert breaks[-1] <= len(points) - 2


def test_exactly_enough_points_uses_every_interior_index():
    assert day_split.split_days(_straight_line(4), 4) == [1, 2, 3]


def test_sparse_polyline_clamps_to_last_index():
    points = _straight_line(2)
    breaks = day_split.split_days(points, 5)
    assert len(breaks) == 4
    assert all(0 < i <= len(points) - 1 for i in breaks)
    assert breaks == sorted(breaks)


def test_too_few_points_repeat_the_last_index():
    # Three points, four days.
    assert day_split.split_days(_straight_line(2), 4) == [1, 2, 2]


def test_degenerate_polyline_still_returns_breaks():
    points = [(1.0, 1.0)] * 6
    breaks = day_split.split_days(points, 3)
    assert breaks == [1, 2]


def test_day_distances_sum_to_reported_total():
    points = _straight_line(10)
    breaks = day_split.split_days(points, 2)
    # A routing service reporting 12 km for a 10 km great-circle path.
    distances = day_split.day_distances(points, breaks, 12.0)
    assert distances == pytest.approx([6.0, 6.0])


def test_day_distances_single_day():
    points = _straight_line(3)
    assert day_split.day_distances(points, [], 3.0) == pytest.approx([3.0])
