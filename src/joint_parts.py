"""
Joint part case model.

A joint part records which beam takes part in a joint, where along the beam
the joint sits, and whether that is at one of the beam's ends or somewhere in
its span. The case is a two-bit mask:

    bit 0 (END1)    nearer end is End1 (only meaningful with AT_END)
    bit 1 (AT_END)  joint lies within end_tolerance of that end

so the valid values are 0 (AtMiddle), 2 (AtEnd, End0) and 3 (AtEnd, End1).
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import trimesh

from beams import Beam

logger = logging.getLogger(__name__)

END1 = 1
AT_END = 2
AT_MIDDLE = 0

VALID_CASES = (AT_MIDDLE, AT_END, AT_END | END1)


def is_at_end(case: int) -> bool:
    return bool(case & AT_END)


def is_at_middle(case: int) -> bool:
    return not is_at_end(case)


def end_index(case: int) -> Optional[int]:
    """0 or 1 for AtEnd cases, None for AtMiddle."""
    return (case & END1) if is_at_end(case) else None


def make_case(at_end: bool, end: int = 0) -> int:
    if not at_end:
        return AT_MIDDLE
    return AT_END | (END1 if end else 0)


def case_label(case: int) -> str:
    if is_at_middle(case):
        return "AtMiddle"
    return f"AtEnd{end_index(case)}"


@dataclass
class JointPart:
    """One beam's participation in a joint.

    Attributes:
        element_index: Index of the beam in the structure's beam list.
        case: AtMiddle / AtEnd bitmask (see module docstring).
        parameter: Arc-length parameter of the joint on the beam.
        direction: Unit tangent at parameter, pointing toward the nearer end.
        geometry: Solids produced for this beam by the last construction.
    """
    element_index: int
    case: int
    parameter: float
    direction: np.ndarray
    geometry: List[trimesh.Trimesh] = field(default_factory=list)

    def __post_init__(self):
        if self.case not in VALID_CASES:
            raise ValueError(f"Invalid joint part case {self.case!r}")
        self.direction = np.asarray(self.direction, dtype=float)

    @property
    def at_end(self) -> bool:
        return is_at_end(self.case)

    @property
    def at_middle(self) -> bool:
        return is_at_middle(self.case)

    @property
    def end(self) -> Optional[int]:
        return end_index(self.case)

    @property
    def key(self) -> Tuple[int, int]:
        """Identity used when merging conditions."""
        return self.element_index, self.case

    def copy(self) -> "JointPart":
        """Same beam, case and parameter with an empty geometry list."""
        return JointPart(self.element_index, self.case, self.parameter,
                         self.direction.copy())

    def demoted(self) -> "JointPart":
        """Copy reclassified as AtEnd/End0 (parallel mid-span overlaps)."""
        return JointPart(self.element_index, make_case(True, 0), self.parameter,
                         self.direction.copy())

    def __repr__(self) -> str:
        return (f"JointPart(beam={self.element_index}, {case_label(self.case)}, "
                f"t={self.parameter:.3f})")


def classify_position(beam: Beam, parameter: float,
                      end_tolerance: float) -> Tuple[int, np.ndarray]:
    """Case and outward direction for a joint at parameter on beam.

    The nearer end is End1 past the mid parameter, End0 otherwise (the exact
    midpoint counts as End0). The direction is the tangent flipped to point
    toward that end.
    """
    lo, hi = beam.domain
    t = float(np.clip(parameter, lo, hi))
    end = 1 if t > beam.mid_parameter else 0
    at_end = beam.arc_length(t, hi if end else lo) < end_tolerance
    tangent = beam.tangent_at(t)
    direction = tangent if end else -tangent
    return make_case(at_end, end), direction


def make_part(beam: Beam, element_index: int, parameter: float,
              end_tolerance: float) -> JointPart:
    case, direction = classify_position(beam, parameter, end_tolerance)
    return JointPart(element_index, case, float(parameter), direction)
