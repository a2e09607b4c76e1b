"""Tests for the branch joint on the Y fixture."""
import math

import pytest

from beams import Beam
from branch_joints import BranchJoint
from joint_errors import InvalidTopologyError
from joints import STATUS_OK


class TestBranchJoint:

    def test_equal_sections_keep_detected_order(self, branch_beams, single_condition):
        joint = BranchJoint.from_condition(branch_beams, single_condition(branch_beams))
        assert joint.element_indices == [0, 1]

    def test_branch_trimmed_at_main_face(self, branch_beams, single_condition):
        joint = BranchJoint.from_condition(branch_beams, single_condition(branch_beams))
        result = joint.construct(branch_beams)
        assert result.status == STATUS_OK
        assert result.geometry[0] == []
        trim = result.geometry[1][0]
        assert trim.is_watertight
        assert trim.bounds[1][1] == pytest.approx(50.0)
        assert result.debug.planes["main_face"].normal[1] == pytest.approx(1.0)

    def test_heavier_beam_becomes_main(self, single_condition):
        a = math.radians(20.0)
        beams = [
            Beam.from_points((-1000, 0, 0), (0, 0, 0), 100, 200),
            Beam.from_points((-1000 * math.cos(a), 1000 * math.sin(a), 0), (0, 0, 0), 200, 200),
        ]
        joint = BranchJoint.from_condition(beams, single_condition(beams))
        assert joint.element_indices == [1, 0]
        result = joint.construct(beams)
        assert result.ok
        assert result.geometry[0] == []
        assert len(result.geometry[1]) == 1

    def test_branch_must_end_at_node(self, crossing_beams, single_condition):
        with pytest.raises(InvalidTopologyError):
            BranchJoint.from_condition(crossing_beams, single_condition(crossing_beams))
