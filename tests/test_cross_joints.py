"""Tests for the cross-lap joint family."""
import math

import numpy as np
import pytest

from beams import Beam
from cross_joints import (
    CrossLapDoubleBackcutJoint,
    CrossLapJoint,
    CrossLapSingleBackcutJoint,
    TaperedCrossLapJoint,
)
from joint_errors import InvalidTopologyError
from joints import STATUS_DEGENERATE, STATUS_OK


@pytest.fixture
def cross(crossing_beams, single_condition):
    def _make(cls, **settings):
        joint = cls.from_condition(crossing_beams, single_condition(crossing_beams))
        joint.configure(settings)
        return joint.construct(crossing_beams)
    return _make


class TestCrossLapJoint:
    """Plain half-lap on beams of equal depth."""

    def test_lap_at_mid_depth(self, cross):
        result = cross(CrossLapJoint)
        assert result.status == STATUS_OK
        assert result.debug.values["over_notch_depth"] == pytest.approx(100.0)
        assert result.debug.values["under_notch_depth"] == pytest.approx(100.0)
        np.testing.assert_allclose(result.debug.points["lap_origin"], [0, 0, 0], atol=1e-9)

    def test_under_notch(self, cross):
        notch = cross(CrossLapJoint).geometry[1][0]
        assert notch.is_watertight
        np.testing.assert_allclose(notch.bounds, [[-60, -50, 0], [60, 50, 210]], atol=1e-6)
        assert notch.volume == pytest.approx(2_520_000)

    def test_over_notch(self, cross):
        notch = cross(CrossLapJoint).geometry[0][0]
        np.testing.assert_allclose(notch.bounds, [[-50, -60, -210], [50, 60, 0]], atol=1e-6)

    def test_inset_narrows_notch(self, cross):
        notch = cross(CrossLapJoint, inset=5).geometry[1][0]
        np.testing.assert_allclose(notch.bounds[:, 1], [-45, 45], atol=1e-6)

    def test_inset_closing_notch(self, cross):
        assert cross(CrossLapJoint, inset=50).status == STATUS_DEGENERATE

    def test_lap_weighted_by_depth(self, part_at):
        beams = [
            Beam.from_points((-1000, 0, 100), (1000, 0, 100), 100, 100),
            Beam.from_points((0, -1000, 0), (0, 1000, 0), 100, 200),
        ]
        joint = CrossLapJoint([part_at(beams, 0, 1000.0), part_at(beams, 1, 1000.0)],
                              (0, 0, 50))
        result = joint.construct(beams)
        values = result.debug.values
        assert result.debug.points["lap_origin"][2] == pytest.approx(200.0 / 3.0)
        assert values["over_notch_depth"] == pytest.approx(50.0 / 3.0)
        assert values["under_notch_depth"] == pytest.approx(100.0 / 3.0)
        # together the notches remove exactly the overlap
        assert values["over_notch_depth"] + values["under_notch_depth"] == pytest.approx(50.0)

    def test_rejects_tee(self, tee_beams, single_condition):
        with pytest.raises(InvalidTopologyError):
            CrossLapJoint.from_condition(tee_beams, single_condition(tee_beams))


class TestBackcutVariants:
    """Flared walls."""

    def test_single_backcut_flares_over_notch_only(self, cross):
        result = cross(CrossLapSingleBackcutJoint)
        flare = 210 * math.tan(math.radians(3.0))
        over, under = result.geometry[0][0], result.geometry[1][0]
        assert over.bounds[1][0] == pytest.approx(50 + flare, abs=1e-6)
        assert under.bounds[1][1] == pytest.approx(50.0, abs=1e-6)
        assert result.debug.values["over_wall_offset"] == pytest.approx(flare)

    def test_double_backcut_flares_both(self, cross):
        result = cross(CrossLapDoubleBackcutJoint, taper_angle=5)
        flare = 210 * math.tan(math.radians(5.0))
        over, under = result.geometry[0][0], result.geometry[1][0]
        assert over.bounds[1][0] == pytest.approx(50 + flare, abs=1e-6)
        assert under.bounds[1][1] == pytest.approx(50 + flare, abs=1e-6)

    def test_backcut_solids_closed(self, cross):
        result = cross(CrossLapDoubleBackcutJoint)
        assert all(solid.is_watertight for part in result.geometry for solid in part)


class TestTaperedCrossLapJoint:
    """Fixed-offset tapered walls."""

    def test_default_offsets(self, cross):
        result = cross(TaperedCrossLapJoint)
        over, under = result.geometry[0][0], result.geometry[1][0]
        assert over.bounds[1][0] == pytest.approx(50.0, abs=1e-6)
        # 10 mm at the 100 mm notch depth, carried out to the 210 mm cutter end
        assert under.bounds[1][1] == pytest.approx(71.0, abs=1e-6)

    def test_both_offsets(self, cross):
        result = cross(TaperedCrossLapJoint, offset_x=5, offset_y=5)
        over, under = result.geometry[0][0], result.geometry[1][0]
        assert over.bounds[1][0] == pytest.approx(60.5, abs=1e-6)
        assert under.bounds[1][1] == pytest.approx(60.5, abs=1e-6)
