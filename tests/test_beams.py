"""Tests for the beam model and centreline intersection."""
import numpy as np
import pytest

from beams import Beam, find_intersections


def _beam(start, end, width=100.0, height=200.0):
    return Beam.from_points(start, end, width, height)


class TestBeam:
    """Test parametrisation and frames."""

    def test_length_and_points(self):
        b = _beam((0, 0, 0), (1000, 0, 0))
        assert b.length == pytest.approx(1000.0)
        assert b.mid_parameter == pytest.approx(500.0)
        np.testing.assert_allclose(b.point_at(250), [250, 0, 0])
        np.testing.assert_allclose(b.point_at(5000), [1000, 0, 0])

    def test_polyline_parameter(self):
        b = Beam(np.array([(0, 0, 0), (100, 0, 0), (100, 300, 0)], dtype=float), 50, 50)
        assert b.length == pytest.approx(400.0)
        np.testing.assert_allclose(b.point_at(250), [100, 150, 0])
        np.testing.assert_allclose(b.tangent_at(250), [0, 1, 0])
        assert b.closest_parameter((120, 200, 0)) == pytest.approx(300.0)

    def test_repeated_vertices_dropped(self):
        b = Beam(np.array([(0, 0, 0), (0, 0, 0), (10, 0, 0)], dtype=float), 5, 5)
        assert b.segment_count == 1

    def test_zero_length_rejected(self):
        with pytest.raises(ValueError):
            _beam((1, 1, 1), (1, 1, 1))

    def test_bad_section_rejected(self):
        with pytest.raises(ValueError):
            _beam((0, 0, 0), (1, 0, 0), width=0.0)

    def test_frame_orientation(self):
        frame = _beam((0, 0, 0), (1000, 0, 0)).frame_at(100)
        np.testing.assert_allclose(frame.normal, [1, 0, 0], atol=1e-12)
        np.testing.assert_allclose(frame.y_axis, [0, 0, 1], atol=1e-12)
        np.testing.assert_allclose(frame.x_axis, [0, 1, 0], atol=1e-12)
        np.testing.assert_allclose(frame.origin, [100, 0, 0])

    def test_frame_for_vertical_beam(self):
        frame = _beam((0, 0, 0), (0, 0, 1000)).frame_at(0)
        np.testing.assert_allclose(frame.normal, [0, 0, 1], atol=1e-12)
        assert abs(frame.y_axis @ np.array([0, 0, 1.0])) < 1e-12

    def test_dimension(self):
        b = _beam((0, 0, 0), (1, 0, 0), width=80, height=240)
        assert b.dimension(0) == 80
        assert b.dimension(1) == 240


class TestFindIntersections:
    """Test segment closest-point detection."""

    def test_crossing(self):
        hits = find_intersections(_beam((-500, 0, 0), (500, 0, 0)),
                                  _beam((0, -500, 0), (0, 500, 0)), radius=100)
        assert len(hits) == 1
        assert hits[0].parameter_a == pytest.approx(500.0)
        assert hits[0].parameter_b == pytest.approx(500.0)
        assert hits[0].distance == pytest.approx(0.0)

    def test_near_miss_within_radius(self):
        hits = find_intersections(_beam((-500, 0, 50), (500, 0, 50)),
                                  _beam((0, -500, 0), (0, 500, 0)), radius=100)
        assert len(hits) == 1
        assert hits[0].distance == pytest.approx(50.0)
        np.testing.assert_allclose(hits[0].midpoint, [0, 0, 25])

    def test_miss_outside_radius(self):
        hits = find_intersections(_beam((-500, 0, 150), (500, 0, 150)),
                                  _beam((0, -500, 0), (0, 500, 0)), radius=100)
        assert hits == []

    def test_collinear_touching_ends(self):
        hits = find_intersections(_beam((-1000, 0, 0), (0, 0, 0)),
                                  _beam((0, 0, 0), (1000, 0, 0)), radius=100)
        assert len(hits) == 1
        assert hits[0].parameter_a == pytest.approx(1000.0)
        assert hits[0].parameter_b == pytest.approx(0.0)
        assert hits[0].overlap is None

    def test_parallel_overlap(self):
        hits = find_intersections(_beam((0, 0, 0), (1000, 0, 0)),
                                  _beam((600, 0, 0), (1400, 0, 0)), radius=100)
        assert len(hits) == 1
        assert hits[0].parameter_a == pytest.approx(800.0)
        assert hits[0].parameter_b == pytest.approx(200.0)
        assert hits[0].overlap == pytest.approx((600.0, 1000.0))

    def test_shared_vertex_reported_once(self):
        bent = Beam(np.array([(-1000, 0, 0), (0, 0, 0), (0, 1000, 0)], dtype=float), 100, 200)
        hits = find_intersections(bent, _beam((500, -500, 0), (-500, 500, 0)), radius=10)
        assert len(hits) == 1
        assert hits[0].parameter_a == pytest.approx(1000.0)
