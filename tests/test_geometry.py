"""Tests for geometry helpers."""

import math

import pytest

from brainstorm.geometry import (
    Bounds,
    Point,
    Rect,
    bounding_box,
    find_free_position,
    point_in_rect,
    quadratic_point,
    rect_edge_point,
    rects_intersect,
    rects_overlap,
    sample_quadratic,
    segment_distance,
)


class TestRectEdgePoint:
    def test_exits_right_side(self):
        point = rect_edge_point((0, 0), (100, 0), 80, 40, padding=0)
        assert point == Point(40, 0)

    def test_exits_bottom_side(self):
        point = rect_edge_point((0, 0), (0, 100), 80, 40, padding=0)
        assert point == Point(0, 20)

    def test_padding_grows_the_box(self):
        point = rect_edge_point((0, 0), (-100, 0), 80, 40, padding=4)
        assert point == Point(-44, 0)

    def test_diagonal_hits_nearer_side(self):
        # 80x40 box: a 45 degree ray reaches y=20 before x=40
        point = rect_edge_point((10, 10), (110, 110), 80, 40, padding=0)
        assert point.x == pytest.approx(30)
        assert point.y == pytest.approx(30)

    def test_coincident_target_returns_center(self):
        assert rect_edge_point((5, 7), (5, 7), 80, 40) == Point(5, 7)


class TestPointInRect:
    def test_inside(self):
        assert point_in_rect((10, 5), Rect(0, 0, 80, 40))

    def test_boundary_is_inside(self):
        assert point_in_rect((40, 20), Rect(0, 0, 80, 40))

    def test_outside(self):
        assert not point_in_rect((41, 0), Rect(0, 0, 80, 40))


class TestSegmentDistance:
    def test_perpendicular(self):
        assert segment_distance((5, 3), (0, 0), (10, 0)) == pytest.approx(3)

    def test_beyond_endpoint(self):
        assert segment_distance((13, 4), (0, 0), (10, 0)) == pytest.approx(5)

    def test_degenerate_segment(self):
        assert segment_distance((3, 4), (0, 0), (0, 0)) == pytest.approx(5)


class TestBoundingBox:
    def test_empty_is_none(self):
        assert bounding_box([]) is None

    def test_covers_all_rects(self):
        bounds = bounding_box([Rect(0, 0, 80, 40), Rect(200, 100, 100, 60)])
        assert bounds == Bounds(-40, -20, 250, 130)
        assert bounds.width == 290
        assert bounds.height == 150

    def test_padding(self):
        bounds = bounding_box([Rect(0, 0, 20, 20)], padding=5)
        assert bounds == Bounds(-15, -15, 15, 15)
        assert bounds.center == Point(0, 0)


class TestOverlap:
    def test_rects_intersect(self):
        assert rects_intersect(Rect(0, 0, 80, 40), Rect(70, 0, 80, 40))
        assert not rects_intersect(Rect(0, 0, 80, 40), Rect(80, 0, 80, 40))

    def test_rects_overlap_honours_padding(self):
        assert rects_overlap(0, 0, 50, 50, 55, 0, 50, 50, padding=10)
        assert not rects_overlap(0, 0, 50, 50, 60, 0, 50, 50, padding=10)


class TestCurves:
    def test_quadratic_endpoints(self):
        assert quadratic_point((0, 0), (5, 10), (10, 0), 0) == Point(0, 0)
        assert quadratic_point((0, 0), (5, 10), (10, 0), 1) == Point(10, 0)

    def test_quadratic_midpoint(self):
        mid = quadratic_point((0, 0), (5, 10), (10, 0), 0.5)
        assert mid == Point(5, 5)

    def test_sample_count(self):
        samples = sample_quadratic((0, 0), (5, 10), (10, 0), segments=4)
        assert len(samples) == 5
        assert samples[0] == Point(0, 0)
        assert samples[-1] == Point(10, 0)


class TestFindFreePosition:
    def test_free_spot_is_kept(self):
        assert find_free_position((0, 0), 160, 44, []) == Point(0, 0)

    def test_moves_away_from_occupied(self):
        occupied = [Rect(0, 0, 160, 44)]
        pos = find_free_position((0, 0), 160, 44, occupied)
        assert pos != Point(0, 0)
        assert not rects_overlap(pos.x - 80, pos.y - 22, 160, 44,
                                 -80, -22, 160, 44, padding=10)
        assert math.hypot(pos.x, pos.y) > 0
