"""
Branch joint: a lighter beam forks off a main beam at a shallow angle (Y).
"""
import logging
from dataclasses import dataclass
from typing import List, Sequence

from beams import Beam
from joint_errors import InvalidTopologyError
from joint_parts import JointPart
from joints import (
    Joint,
    JointCategory,
    JointResult,
    beam_side,
    cutter_extent,
    face_plane,
    trim_solid,
)

logger = logging.getLogger(__name__)


@dataclass
class BranchConfig:
    added: float = 10.0
    cutter_size: float = 300.0


class BranchJoint(Joint):
    """Part 0 is the main beam, part 1 the branch trimmed against its face."""
    name = "BranchJoint"
    category = JointCategory.BRANCH
    config_class = BranchConfig

    @classmethod
    def order_parts(cls, parts: List[JointPart],
                    beams: Sequence[Beam]) -> List[JointPart]:
        if len(parts) != 2:
            return parts
        a, b = (beams[p.element_index] for p in parts)
        # the bigger section carries on; ties keep the detected order
        if b.width * b.height > a.width * a.height:
            return [parts[1], parts[0]]
        return parts

    def check_parts(self, parts: Sequence[JointPart]) -> None:
        super().check_parts(parts)
        if not parts[1].at_end:
            raise InvalidTopologyError(f"{self.name} needs the branch beam at an end")

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        (main, main_frame), (branch, _) = self.frames(beams)
        direction = self.parts[1].direction

        face = beam_side(main, main_frame, -direction)
        plane = face_plane(main_frame, face)
        size = cutter_extent([main, branch], cfg.cutter_size) + cfg.added
        result.add(1, trim_solid(plane, direction, size))
        result.debug.planes["main_face"] = plane
