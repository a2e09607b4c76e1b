"""
Joint base class, shared construction helpers and condition classification.

A Joint owns its parts and per-type configuration. Construction is split in
two so joints can be built on worker threads:

    construct(beams) -> JointResult   pure, reads beams and parts only
    apply(result)    -> status        writes geometry back onto the parts

Status codes: 0 ok, 1 degenerate geometry, 2 invalid topology.
"""
import logging
import math
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import trimesh

from beams import Beam
from geometry_primitives import Plane, closest_axis, dowel_solid, plane_box
from joint_conditions import JointCondition
from joint_errors import DegenerateGeometryError, InvalidTopologyError
from joint_parts import JointPart

logger = logging.getLogger(__name__)

STATUS_OK = 0
STATUS_DEGENERATE = 1
STATUS_INVALID_TOPOLOGY = 2

# End-to-end classification: angles between the two beam lines (0-90 deg).
# Below the splice threshold the beams continue each other; below the branch
# threshold one forks off the other; anything steeper is a corner.
SPLICE_CORNER_THRESHOLD_DEG = 15.0
BRANCH_THRESHOLD_DEG = 30.0


class JointCategory(Enum):
    TENON = "tenon"
    CROSS = "cross"
    SPLICE = "splice"
    CORNER = "corner"
    BRANCH = "branch"
    VBEAM = "vbeam"
    FOUR_WAY = "four_way"

    @property
    def short_label(self) -> str:
        """Drawing label (E, T, X, L, Y, 3J, 4J)."""
        return _SHORT_LABELS[self]


_SHORT_LABELS = {
    JointCategory.SPLICE: "E",
    JointCategory.TENON: "T",
    JointCategory.CROSS: "X",
    JointCategory.CORNER: "L",
    JointCategory.BRANCH: "Y",
    JointCategory.VBEAM: "3J",
    JointCategory.FOUR_WAY: "4J",
}


# ─── Classification ──────────────────────────────────────────────────────────

def classify_end_to_end(
    d0,
    d1,
    splice_threshold_deg: Optional[float] = None,
    branch_threshold_deg: Optional[float] = None,
) -> JointCategory:
    """Splice, branch or corner for two beams meeting end to end.

    Compared in cosine space so both part orders give the same answer;
    an angle exactly on a threshold falls to the steeper category.
    """
    if splice_threshold_deg is None:
        splice_threshold_deg = SPLICE_CORNER_THRESHOLD_DEG
    if branch_threshold_deg is None:
        branch_threshold_deg = BRANCH_THRESHOLD_DEG
    dot = abs(float(np.dot(d0, d1)))
    if dot > math.cos(math.radians(splice_threshold_deg)):
        return JointCategory.SPLICE
    if dot > math.cos(math.radians(branch_threshold_deg)):
        return JointCategory.BRANCH
    return JointCategory.CORNER


def classify_condition(
    condition: JointCondition,
    splice_threshold_deg: Optional[float] = None,
    branch_threshold_deg: Optional[float] = None,
) -> JointCategory:
    """Joint category for a condition from its part count and cases.

    Raises:
        InvalidTopologyError: part count outside 2-4.
    """
    n = condition.part_count
    if n == 3:
        return JointCategory.VBEAM
    if n == 4:
        return JointCategory.FOUR_WAY
    if n != 2:
        raise InvalidTopologyError(f"Cannot classify a condition with {n} parts")

    p0, p1 = condition.parts
    if p0.at_end and p1.at_end:
        return classify_end_to_end(p0.direction, p1.direction,
                                   splice_threshold_deg, branch_threshold_deg)
    if p0.at_middle and p1.at_middle:
        return JointCategory.CROSS
    return JointCategory.TENON


# ─── Results ─────────────────────────────────────────────────────────────────

@dataclass
class Dowel:
    """A round pin bored through the engaged beams."""
    start: np.ndarray
    axis: np.ndarray
    length: float
    diameter: float

    def __post_init__(self):
        self.start = np.asarray(self.start, dtype=float)
        axis = np.asarray(self.axis, dtype=float)
        self.axis = axis / np.linalg.norm(axis)

    @classmethod
    def centred(cls, centre, axis, length: float, diameter: float) -> "Dowel":
        axis = np.asarray(axis, dtype=float)
        axis = axis / np.linalg.norm(axis)
        return cls(np.asarray(centre, dtype=float) - axis * length / 2.0,
                   axis, length, diameter)

    @property
    def end(self) -> np.ndarray:
        return self.start + self.axis * self.length

    @property
    def centre(self) -> np.ndarray:
        return self.start + self.axis * (self.length / 2.0)

    def solid(self) -> trimesh.Trimesh:
        return dowel_solid(self.start, self.axis, self.length, self.diameter)


@dataclass
class JointDebug:
    """Construction aids kept for inspection; never used for cutting."""
    planes: Dict[str, Plane] = field(default_factory=dict)
    points: Dict[str, np.ndarray] = field(default_factory=dict)
    lines: List[Tuple[np.ndarray, np.ndarray]] = field(default_factory=list)
    values: Dict[str, float] = field(default_factory=dict)


@dataclass
class JointResult:
    """Output of one Joint.construct call.

    geometry[i] holds the cutting solids for joint part i and bodies[i] the
    positive solids (tenons, tails) to be added to it. A finished part is
    (beam - geometry) + bodies.
    """
    geometry: List[List[trimesh.Trimesh]]
    status: int = STATUS_OK
    dowels: List[Dowel] = field(default_factory=list)
    placeholders: List[trimesh.Trimesh] = field(default_factory=list)
    debug: JointDebug = field(default_factory=JointDebug)
    errors: List[str] = field(default_factory=list)
    bodies: List[List[trimesh.Trimesh]] = field(default_factory=list)

    def __post_init__(self):
        if not self.bodies:
            self.bodies = [[] for _ in self.geometry]

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def add(self, part_index: int, solid: trimesh.Trimesh) -> None:
        self.geometry[part_index].append(solid)

    def add_body(self, part_index: int, solid: trimesh.Trimesh) -> None:
        self.bodies[part_index].append(solid)

    def add_dowel(self, dowel: Dowel, part_indices: Sequence[int]) -> None:
        """Record a dowel and add its bore to every listed part."""
        self.dowels.append(dowel)
        bore = dowel.solid()
        for index in part_indices:
            self.geometry[index].append(bore)

    @classmethod
    def failed(cls, part_count: int, status: int, message: str,
               debug: Optional[JointDebug] = None) -> "JointResult":
        return cls(
            geometry=[[] for _ in range(part_count)],
            status=status,
            debug=debug if debug is not None else JointDebug(),
            errors=[message],
        )


# ─── Configuration ───────────────────────────────────────────────────────────

@dataclass
class JointConfig:
    """Base for per-variant settings dataclasses."""


def apply_settings(config, values: Mapping[str, float]) -> List[str]:
    """Set dataclass fields from a loose mapping.

    Keys match field names ignoring case and underscores ("BlindOffset" sets
    blind_offset). Values are coerced to the type of the field's current
    value. Unknown keys are ignored.

    Returns:
        Names of the fields that were set.
    """
    lookup = {_normalise_key(f.name): f.name for f in fields(config)}
    applied = []
    for key, value in values.items():
        name = lookup.get(_normalise_key(key))
        if name is None:
            logger.debug("%s ignores unknown setting %r", type(config).__name__, key)
            continue
        current = getattr(config, name)
        setattr(config, name, type(current)(value))
        applied.append(name)
    return applied


def _normalise_key(key) -> str:
    return str(key).replace("_", "").lower()


# ─── Shared geometry helpers ─────────────────────────────────────────────────

@dataclass
class BeamSide:
    """A beam's section seen from one direction at a frame.

    axis is the frame axis closest to the reference direction, signed toward
    it; other is the remaining section axis.
    """
    axis: np.ndarray
    other: np.ndarray
    width: float    # section size along axis
    depth: float    # section size along other
    index: int


def beam_side(beam: Beam, frame: Plane, reference) -> BeamSide:
    axis, index = closest_axis(frame, reference)
    if index == 0:
        return BeamSide(axis, frame.y_axis, beam.width, beam.height, 0)
    return BeamSide(axis, frame.x_axis, beam.height, beam.width, 1)


def face_plane(frame: Plane, side: BeamSide, offset: float = 0.0) -> Plane:
    """Plane of the beam face on the side.axis side, pushed out by offset."""
    return Plane.from_normal(frame.origin + side.axis * (side.width / 2.0 + offset),
                             side.axis)


def trim_solid(plane: Plane, direction, size: float) -> trimesh.Trimesh:
    """Box of half-size `size` starting at plane, on the side direction points to."""
    sign = 1.0 if float(np.dot(direction, plane.normal)) >= 0 else -1.0
    return plane_box(plane, size, size, 0.0, sign * size)


def cutter_extent(beams: Sequence[Beam], base: float) -> float:
    """Half-size for trim boxes, never smaller than the beam sections."""
    return max([base] + [max(b.width, b.height) for b in beams])


def fmt_point(point) -> str:
    return "(" + ", ".join(f"{v:.1f}" for v in point) + ")"


# ─── Joint base ──────────────────────────────────────────────────────────────

class Joint:
    """Base class for all joint variants.

    Subclasses set name, category, config_class and part_count, may reorder
    parts in order_parts, check cases in check_parts and implement build().
    """
    name = "Joint"
    category: Optional[JointCategory] = None
    config_class = JointConfig
    part_count = 2

    def __init__(self, parts: Sequence[JointPart], position, config=None):
        self.parts: List[JointPart] = list(parts)
        self.position = np.asarray(position, dtype=float)
        self.config = config if config is not None else self.config_class()
        self.dowels: List[Dowel] = []
        self.bodies: List[List[trimesh.Trimesh]] = [[] for _ in self.parts]
        self.placeholders: List[trimesh.Trimesh] = []
        self.debug = JointDebug()
        self.diagnostics: List[str] = []
        self.check_parts(self.parts)

    @classmethod
    def from_condition(cls, beams: Sequence[Beam], condition: JointCondition) -> "Joint":
        parts = cls.order_parts([p.copy() for p in condition.parts], beams)
        return cls(parts, condition.position)

    @classmethod
    def order_parts(cls, parts: List[JointPart],
                    beams: Sequence[Beam]) -> List[JointPart]:
        return parts

    def check_parts(self, parts: Sequence[JointPart]) -> None:
        if len(parts) != self.part_count:
            raise InvalidTopologyError(
                f"{self.name} needs {self.part_count} parts, got {len(parts)}"
            )

    def configure(self, values: Mapping[str, float]) -> List[str]:
        """Override config fields by loose name; see apply_settings."""
        applied = apply_settings(self.config, values)
        if applied:
            logger.debug("%s configured: %s", self.name, ", ".join(applied))
        return applied

    def construct(self, beams: Sequence[Beam]) -> JointResult:
        """Build this joint's solids without touching the joint or its parts.

        Parts are re-checked first, so parts edited after creation fail with
        STATUS_INVALID_TOPOLOGY instead of raising.
        """
        result = JointResult(geometry=[[] for _ in self.parts])
        try:
            self.check_parts(self.parts)
            self.build(beams, result)
        except DegenerateGeometryError as exc:
            logger.warning("%s at %s failed: %s", self.name, fmt_point(self.position), exc)
            return JointResult.failed(len(self.parts), STATUS_DEGENERATE, str(exc),
                                      debug=result.debug)
        except InvalidTopologyError as exc:
            logger.warning("%s at %s has invalid parts: %s", self.name,
                           fmt_point(self.position), exc)
            return JointResult.failed(len(self.parts), STATUS_INVALID_TOPOLOGY, str(exc),
                                      debug=result.debug)
        return result

    def apply(self, result: JointResult) -> int:
        """Store a construction result on the parts; returns its status.

        Everything from the previous apply is replaced, diagnostics included.
        """
        for part, solids in zip(self.parts, result.geometry):
            part.geometry = list(solids)
        self.bodies = [list(solids) for solids in result.bodies]
        self.dowels = list(result.dowels)
        self.placeholders = list(result.placeholders)
        self.debug = result.debug
        self.diagnostics = list(result.errors)
        return result.status

    def rebuild(self, beams: Sequence[Beam]) -> int:
        return self.apply(self.construct(beams))

    def build(self, beams: Sequence[Beam], result: JointResult) -> None:
        raise NotImplementedError

    def frames(self, beams: Sequence[Beam]) -> List[Tuple[Beam, Plane]]:
        """(beam, frame at joint parameter) for every part, in part order."""
        out = []
        for part in self.parts:
            beam = beams[part.element_index]
            out.append((beam, beam.frame_at(part.parameter)))
        return out

    def part_beams(self, beams: Sequence[Beam]) -> List[Beam]:
        return [beams[p.element_index] for p in self.parts]

    @property
    def element_indices(self) -> List[int]:
        return [p.element_index for p in self.parts]

    def __repr__(self) -> str:
        return f"{self.name}(at={fmt_point(self.position)}, parts={self.parts})"
