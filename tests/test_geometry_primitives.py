"""Tests for geometry_primitives module."""
import math

import numpy as np
import pytest

from geometry_primitives import (
    Plane,
    closest_axis,
    closest_points_on_lines,
    dowel_solid,
    filleted_rectangle,
    interpolate_planes,
    line_plane,
    loft_solid,
    plane_box,
    plane_plane,
    plane_plane_plane,
    prism_solid,
    rotate_vector,
    scaled_outline,
    sort_vectors_around,
    validate_solid,
)
from joint_errors import DegenerateGeometryError


def _square(size, z=0.0):
    h = size / 2.0
    return np.array([(h, h, z), (-h, h, z), (-h, -h, z), (h, -h, z)])


class TestPlane:
    """Test the oriented plane type."""

    def test_normal_is_x_cross_y(self):
        plane = Plane((0, 0, 0), (1, 0, 0), (0, 1, 0))
        np.testing.assert_allclose(plane.normal, [0, 0, 1])

    def test_y_axis_orthogonalised(self):
        plane = Plane((0, 0, 0), (2, 0, 0), (1, 1, 0))
        np.testing.assert_allclose(plane.x_axis, [1, 0, 0])
        np.testing.assert_allclose(plane.y_axis, [0, 1, 0], atol=1e-12)

    def test_from_normal(self):
        plane = Plane.from_normal((0, 0, 5), (0, 1, 0))
        np.testing.assert_allclose(plane.normal, [0, 1, 0], atol=1e-12)
        assert plane.signed_distance((3, 7, 1)) == pytest.approx(7.0)

    def test_flipped_reverses_normal(self):
        plane = Plane((0, 0, 0), (1, 0, 0), (0, 1, 0)).flipped()
        np.testing.assert_allclose(plane.normal, [0, 0, -1])

    def test_local_roundtrip(self):
        plane = Plane((10, 20, 30), (0, 1, 0), (0, 0, 1))
        pts = np.array([[1.0, 2.0, 3.0], [-4.0, 5.0, 6.0]])
        np.testing.assert_allclose(plane.to_local(plane.from_local(pts)), pts)

    def test_project(self):
        plane = Plane.from_normal((0, 0, 10), (0, 0, 1))
        np.testing.assert_allclose(plane.project((3, 4, 25)), [3, 4, 10])

    def test_interpolate_planes(self):
        a = Plane((0, 0, 0), (1, 0, 0), (0, 1, 0))
        b = Plane((10, 0, 0), (1, 0, 0), (0, 1, 0))
        np.testing.assert_allclose(interpolate_planes(a, b, 0.25).origin, [2.5, 0, 0])

    def test_zero_axis_rejected(self):
        with pytest.raises(DegenerateGeometryError):
            Plane((0, 0, 0), (0, 0, 0), (0, 1, 0))


class TestPlaneIntersections:
    """Test plane and line intersection helpers."""

    def test_three_planes(self):
        point = plane_plane_plane(
            Plane.from_normal((5, 0, 0), (1, 0, 0)),
            Plane.from_normal((0, -3, 0), (0, 1, 0)),
            Plane.from_normal((0, 0, 8), (0, 0, 1)),
        )
        np.testing.assert_allclose(point, [5, -3, 8], atol=1e-9)

    def test_parallel_planes_raise(self):
        with pytest.raises(DegenerateGeometryError):
            plane_plane_plane(
                Plane.from_normal((0, 0, 0), (1, 0, 0)),
                Plane.from_normal((5, 0, 0), (1, 0, 0)),
                Plane.from_normal((0, 0, 0), (0, 0, 1)),
            )

    def test_plane_plane_line(self):
        point, direction = plane_plane(
            Plane.from_normal((0, 0, 2), (0, 0, 1)),
            Plane.from_normal((4, 0, 0), (1, 0, 0)),
        )
        assert abs(direction[1]) == pytest.approx(1.0)
        assert point[0] == pytest.approx(4.0)
        assert point[2] == pytest.approx(2.0)

    def test_line_plane(self):
        point = line_plane((0, 0, 0), (1, 1, 0), Plane.from_normal((5, 0, 0), (1, 0, 0)))
        np.testing.assert_allclose(point, [5, 5, 0])

    def test_line_parallel_to_plane(self):
        with pytest.raises(DegenerateGeometryError):
            line_plane((0, 0, 0), (0, 1, 0), Plane.from_normal((5, 0, 0), (1, 0, 0)))

    def test_closest_points_on_skew_lines(self):
        a, b = closest_points_on_lines((0, 0, 0), (1, 0, 0), (0, 5, 3), (0, 1, 0))
        np.testing.assert_allclose(a, [0, 0, 0], atol=1e-12)
        np.testing.assert_allclose(b, [0, 0, 3], atol=1e-12)


class TestVectors:
    """Test axis picking, rotation and angular sorting."""

    def test_closest_axis_signed(self):
        plane = Plane((0, 0, 0), (1, 0, 0), (0, 1, 0))
        axis, index = closest_axis(plane, (-0.2, -0.9, 0.3))
        assert index == 1
        np.testing.assert_allclose(axis, [0, -1, 0])

    def test_closest_axis_tie_prefers_x(self):
        plane = Plane((0, 0, 0), (1, 0, 0), (0, 1, 0))
        _, index = closest_axis(plane, (1, 1, 0))
        assert index == 0

    def test_rotate_vector_quarter_turn(self):
        v = rotate_vector((1, 0, 0), (0, 0, 1), math.pi / 2)
        np.testing.assert_allclose(v, [0, 1, 0], atol=1e-12)

    def test_sort_vectors_around(self):
        vectors = [np.array(v, dtype=float) for v in [(0, -1, 0), (1, 0, 0), (-1, 0, 0), (0, 1, 0)]]
        order = sort_vectors_around((0, 0, 1), vectors)
        # counter-clockwise about +z, starting anywhere
        k = order.index(1)
        assert order[k:] + order[:k] == [1, 3, 2, 0]


class TestSolids:
    """Test lofted and primitive solids."""

    def test_loft_box(self):
        solid = loft_solid(_square(100), _square(100, z=50))
        assert solid.is_watertight
        assert solid.volume == pytest.approx(100 * 100 * 50)

    def test_loft_reversed_sweep_still_positive(self):
        solid = loft_solid(_square(100, z=50), _square(100))
        assert solid.volume == pytest.approx(100 * 100 * 50)

    def test_loft_non_convex_loop(self):
        # L-shaped outline
        loop = np.array([(0, 0, 0), (100, 0, 0), (100, 40, 0),
                         (40, 40, 0), (40, 100, 0), (0, 100, 0)], dtype=float)
        solid = prism_solid(loop, (0, 0, 0), (0, 0, 10))
        assert solid.is_watertight
        assert solid.volume == pytest.approx(6400 * 10)

    def test_loft_tapered(self):
        solid = loft_solid(_square(100), _square(120, z=10))
        assert solid.is_watertight
        assert 100 * 100 * 10 < solid.volume < 120 * 120 * 10

    def test_loft_mismatched_loops(self):
        with pytest.raises(DegenerateGeometryError):
            loft_solid(_square(100), _square(100)[:3])

    def test_flat_loft_rejected(self):
        with pytest.raises(DegenerateGeometryError):
            loft_solid(_square(100), _square(100))

    def test_plane_box(self):
        plane = Plane.from_normal((0, 0, 0), (1, 0, 0))
        solid = plane_box(plane, 10, 20, 0.0, -5.0)
        assert solid.volume == pytest.approx(20 * 40 * 5)
        assert solid.bounds[1][0] == pytest.approx(0.0)
        assert solid.bounds[0][0] == pytest.approx(-5.0)

    def test_dowel_solid(self):
        solid = dowel_solid((0, 0, 0), (0, 0, 2), 100.0, 20.0)
        assert solid.is_watertight
        assert solid.volume == pytest.approx(math.pi * 100 * 100, rel=0.02)
        np.testing.assert_allclose(solid.bounds[:, 2], [0, 100], atol=1e-9)

    def test_dowel_needs_size(self):
        with pytest.raises(DegenerateGeometryError):
            dowel_solid((0, 0, 0), (0, 0, 1), 0.0, 10.0)

    def test_validate_solid_open_mesh(self):
        solid = loft_solid(_square(10), _square(10, z=10))
        solid.faces = solid.faces[:-1]
        assert any("closed" in issue for issue in validate_solid(solid))


class TestOutlines:
    """Test filleted outlines used by the blind tenon."""

    def test_filleted_rectangle_area(self):
        outline = filleted_rectangle(40, 80, 8)
        exact = 40 * 80 - (4 - math.pi) * 8 * 8
        assert outline.area == pytest.approx(exact, rel=0.01)
        minx, miny, maxx, maxy = outline.bounds
        assert (maxx - minx, maxy - miny) == pytest.approx((40, 80))

    def test_zero_radius_is_plain_box(self):
        assert filleted_rectangle(40, 80, 0).area == pytest.approx(3200)

    def test_radius_too_large(self):
        with pytest.raises(DegenerateGeometryError):
            filleted_rectangle(40, 80, 20)

    def test_scaled_outline_keeps_vertex_count(self):
        outline = filleted_rectangle(40, 80, 8)
        scaled = scaled_outline(outline, 0.5, 0.5)
        assert len(scaled.exterior.coords) == len(outline.exterior.coords)
        assert scaled.area == pytest.approx(outline.area / 4)
