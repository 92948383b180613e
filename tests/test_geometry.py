"""Tests for geometry helpers and regions."""

import math

import numpy as np
import pytest

from storygesture.errors import UndefinedCoordinateError
from storygesture.frames import TrackedPoint
from storygesture.geometry import (
    Circle,
    Rect,
    bounding_box,
    centroid,
    distance,
    path_length,
    region_from_dict,
    rotate_by,
    scale_to,
    to_array,
    translate_to,
)


class TestDistance:
    def test_pythagorean(self):
        assert distance((0, 0), (3, 4)) == pytest.approx(5.0)

    def test_accepts_tracked_points_and_dicts(self):
        assert distance(TrackedPoint(1, 1), {"x": 4, "y": 5}) == pytest.approx(5.0)

    def test_undefined_coordinate_raises(self):
        with pytest.raises(UndefinedCoordinateError):
            distance(TrackedPoint(1, None), (0, 0))

    def test_nan_array_raises(self):
        with pytest.raises(UndefinedCoordinateError):
            to_array(np.array([[0.0, 0.0], [np.nan, 1.0]]))


class TestPointSets:
    def test_path_length(self):
        assert path_length([(0, 0), (3, 4), (3, 10)]) == pytest.approx(11.0)

    def test_path_length_single_point(self):
        assert path_length([(2, 2)]) == 0.0

    def test_centroid(self):
        np.testing.assert_allclose(centroid([(0, 0), (2, 0), (2, 2), (0, 2)]), [1, 1])

    def test_centroid_empty(self):
        with pytest.raises(ValueError):
            centroid([])

    def test_bounding_box(self):
        box = bounding_box([(1, 5), (4, 2), (3, 8)])
        assert box == Rect(1, 2, 3, 6)

    def test_bounding_box_empty(self):
        with pytest.raises(ValueError):
            bounding_box([])

    def test_rotate_about_centroid(self):
        pts = [(1, 0), (-1, 0)]
        rotated = rotate_by(pts, math.pi / 2)
        np.testing.assert_allclose(rotated, [[0, 1], [0, -1]], atol=1e-9)

    def test_scale_to_square(self):
        scaled = scale_to([(0, 0), (10, 5)], 250)
        box = bounding_box(scaled)
        assert box.width == pytest.approx(250)
        assert box.height == pytest.approx(250)

    def test_scale_leaves_flat_axis(self):
        scaled = scale_to([(0, 3), (10, 3)], 250)
        np.testing.assert_allclose(scaled[:, 1], [3, 3])
        assert bounding_box(scaled).width == pytest.approx(250)

    def test_translate_centroid(self):
        moved = translate_to([(10, 10), (20, 30)], (0, 0))
        np.testing.assert_allclose(moved.mean(axis=0), [0, 0], atol=1e-12)


class TestRegions:
    def test_rect_contains_is_strict(self):
        r = Rect(0, 0, 100, 50)
        assert r.contains((50, 25))
        assert not r.contains((0, 25))
        assert not r.contains((100, 25))
        assert not r.contains((50, 50))

    def test_rect_center(self):
        assert Rect(10, 20, 100, 50).center == (60, 45)

    def test_circle_contains(self):
        c = Circle(0, 0, 10)
        assert c.contains((3, 4))
        assert not c.contains((6, 8))

    def test_region_from_dict(self):
        assert region_from_dict({"x": 1, "y": 2, "radius": 3}) == Circle(1, 2, 3)
        assert region_from_dict({"x": 1, "y": 2, "width": 3, "height": 4}) == Rect(1, 2, 3, 4)

    def test_contains_undefined_raises(self):
        with pytest.raises(UndefinedCoordinateError):
            Rect(0, 0, 10, 10).contains(TrackedPoint())
