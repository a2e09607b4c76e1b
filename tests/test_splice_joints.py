"""Tests for the splice joints on the collinear fixture.

Beam 0 ends at the origin coming from -x, beam 1 starts there; the splice
normal is +x, its plane x axis is world y and its y axis world z.
"""
import math

import numpy as np
import pytest

from joint_errors import InvalidTopologyError
from joints import STATUS_DEGENERATE, STATUS_OK
from splice_joints import (
    BirdsMouthSpliceJoint,
    BlindTenonSpliceJoint,
    LappedSpliceJoint,
    SpliceJoint,
    SteppedScarfSpliceJoint,
)


@pytest.fixture
def splice(collinear_beams, single_condition):
    def _make(cls, **settings):
        joint = cls.from_condition(collinear_beams, single_condition(collinear_beams))
        joint.configure(settings)
        return joint.construct(collinear_beams)
    return _make


class TestSpliceFrame:

    def test_frame_axes(self, collinear_beams, single_condition):
        joint = SpliceJoint.from_condition(collinear_beams, single_condition(collinear_beams))
        plane, width, height = joint.splice_frame(collinear_beams)
        np.testing.assert_allclose(plane.normal, [1, 0, 0], atol=1e-12)
        np.testing.assert_allclose(plane.x_axis, [0, 1, 0], atol=1e-12)
        np.testing.assert_allclose(plane.origin, [0, 0, 0], atol=1e-9)
        assert (width, height) == (100.0, 200.0)

    def test_rejects_tee(self, tee_beams, single_condition):
        with pytest.raises(InvalidTopologyError):
            SpliceJoint.from_condition(tee_beams, single_condition(tee_beams))


class TestSpliceJoint:

    def test_trims_on_opposite_sides(self, splice):
        result = splice(SpliceJoint)
        assert result.status == STATUS_OK
        np.testing.assert_allclose(result.geometry[0][0].bounds[:, 0], [0, 300], atol=1e-6)
        np.testing.assert_allclose(result.geometry[1][0].bounds[:, 0], [-300, 0], atol=1e-6)


class TestBirdsMouthSpliceJoint:

    def test_profiles_and_dowels(self, splice):
        result = splice(BirdsMouthSpliceJoint)
        assert result.status == STATUS_OK
        slope = math.tan(math.radians(30.0))
        apex = slope * 100.0 / 2.0
        flank = apex - 110.0 * slope
        cutter0 = result.geometry[0][0]
        assert cutter0.is_watertight
        assert cutter0.bounds[0][0] == pytest.approx(flank, abs=1e-6)
        assert cutter0.bounds[1][0] == pytest.approx(apex + 300.0, abs=1e-6)
        assert len(result.dowels) == 2
        heights = sorted(d.centre[2] for d in result.dowels)
        assert heights == pytest.approx([-50.0, 50.0])
        assert all(abs(d.axis[0]) == pytest.approx(1.0) for d in result.dowels)

    def test_flat_angle_rejected(self, splice):
        assert splice(BirdsMouthSpliceJoint, angle=90).status == STATUS_DEGENERATE


class TestLappedSpliceJoint:

    def test_lap_cutter(self, splice):
        result = splice(LappedSpliceJoint)
        cutter0 = result.geometry[0][0]
        np.testing.assert_allclose(cutter0.bounds, [[-100, -60, -110], [400, 60, 110]], atol=1e-6)
        assert cutter0.volume == pytest.approx(10_560_000)
        cutter1 = result.geometry[1][0]
        np.testing.assert_allclose(cutter1.bounds[:, 0], [-400, 100], atol=1e-6)

    def test_end_dowels(self, splice):
        result = splice(LappedSpliceJoint)
        positions = sorted(d.centre[0] for d in result.dowels)
        assert positions == pytest.approx([-40.0, 40.0])
        assert all(d.length == pytest.approx(220.0) for d in result.dowels)
        assert all(abs(d.axis[2]) == pytest.approx(1.0) for d in result.dowels)

    def test_seam_follows_ratio(self, splice):
        result = splice(LappedSpliceJoint, lap_ratio=0.25)
        assert result.debug.values["seam"] == pytest.approx(-50.0)

    def test_bad_ratio(self, splice):
        assert splice(LappedSpliceJoint, lap_ratio=1.0).status == STATUS_DEGENERATE

    def test_dowel_offset_past_centre(self, splice):
        assert splice(LappedSpliceJoint, dowel_end_offset=150).status == STATUS_DEGENERATE


class TestSteppedScarfSpliceJoint:

    def test_default(self, splice):
        result = splice(SteppedScarfSpliceJoint)
        assert result.status == STATUS_OK
        expected = math.tan(math.radians(15.0)) * 200.0 + 20.0
        assert result.debug.values["drop"] == pytest.approx(expected)
        # cutter, pin slot and two dowel bores
        assert [len(g) for g in result.geometry] == [4, 4]
        assert all(s.is_watertight for g in result.geometry for s in g)

    def test_interface_staircase(self):
        points, risers = SteppedScarfSpliceJoint.interface(
            half=100.0, run=100.0, slope=0.1, drop=40.0, count=2, step_width=20.0)
        np.testing.assert_allclose(points, [(20, -100), (10, 0), (-10, 0), (-20, 100)])
        np.testing.assert_allclose(risers, [(10, -10, 0)])

    def test_without_pin(self, splice):
        result = splice(SteppedScarfSpliceJoint, pin_width=0)
        assert [len(g) for g in result.geometry] == [3, 3]

    def test_drop_exceeds_height(self, splice):
        result = splice(SteppedScarfSpliceJoint, step_count=4, step_width=60)
        assert result.status == STATUS_DEGENERATE


class TestBlindTenonSpliceJoint:

    def test_tenon_and_housing(self, splice):
        result = splice(BlindTenonSpliceJoint)
        assert result.status == STATUS_OK
        assert [len(g) for g in result.geometry] == [2, 3]
        assert [len(b) for b in result.bodies] == [1, 0]
        tenon = result.bodies[0][0]
        assert tenon.is_watertight
        np.testing.assert_allclose(tenon.bounds, [[0, -20, -40], [100, 20, 40]], atol=1e-6)
        np.testing.assert_allclose(result.geometry[1][0].bounds[:, 0], [-300, 0], atol=1e-6)

    def test_tenon_beam_trimmed_at_splice_plane(self, splice):
        result = splice(BlindTenonSpliceJoint)
        trim = result.geometry[0][0]
        np.testing.assert_allclose(trim.bounds[:, 0], [0, 300], atol=1e-6)
        assert trim.volume > result.bodies[0][0].volume

    def test_taper_shrinks_tip(self, splice):
        straight = splice(BlindTenonSpliceJoint).bodies[0][0]
        tapered = splice(BlindTenonSpliceJoint, taper=5).bodies[0][0]
        assert tapered.volume < straight.volume

    def test_dowel_across_width(self, splice):
        result = splice(BlindTenonSpliceJoint)
        dowel = result.dowels[0]
        np.testing.assert_allclose(dowel.centre, [50, 0, 0], atol=1e-9)
        assert abs(dowel.axis[1]) == pytest.approx(1.0)

    def test_tenon_wider_than_beam(self, splice):
        assert splice(BlindTenonSpliceJoint, tenon_width=150).status == STATUS_DEGENERATE
