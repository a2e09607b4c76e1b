"""
Joint condition detection and merging.

Scans every beam pair for centreline hits within a search radius, classifies
both participants with the case model, adds end-to-end clusters of beam
endpoints, then merges nearby conditions into multi-beam junctions.

Conditions keep discovery order throughout, so downstream joint lists are
stable for a given input.
"""
import logging
import warnings
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from beams import Beam, find_intersections
from joint_errors import UnresolvedConditionWarning
from joint_parts import JointPart, make_part

logger = logging.getLogger(__name__)

# Mid-span hits between beams more parallel than this are treated as end
# overlaps, otherwise two collinear beams sharing a run would read as a cross.
PARALLEL_DOT_THRESHOLD = 0.95

MIN_PARTS = 2
MAX_PARTS = 4


@dataclass
class JointCondition:
    """A place where two or more beams meet."""
    position: np.ndarray
    parts: List[JointPart] = field(default_factory=list)

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=float)

    @property
    def part_count(self) -> int:
        return len(self.parts)

    @property
    def is_resolvable(self) -> bool:
        return MIN_PARTS <= len(self.parts) <= MAX_PARTS

    @property
    def element_indices(self) -> List[int]:
        return [p.element_index for p in self.parts]

    def add_part(self, part: JointPart) -> bool:
        """Add a part unless one with the same beam and case is present."""
        if any(p.key == part.key for p in self.parts):
            return False
        self.parts.append(part)
        return True

    def copy(self) -> "JointCondition":
        return JointCondition(self.position.copy(), [p.copy() for p in self.parts])


def find_conditions(
    beams: Sequence[Beam],
    radius: float,
    end_tolerance: float,
    overlap_tolerance: float = 1.0,
    parallel_dot: Optional[float] = None,
) -> List[JointCondition]:
    """Pairwise two-part conditions for every centreline hit.

    Args:
        beams: Structure beams; part element indices refer to this list.
        radius: Search radius for centreline near-misses (mm).
        end_tolerance: Arc length within which a hit counts as at an end.
        overlap_tolerance: Shortest parallel run reported as an overlap.
        parallel_dot: |tangent dot| above which two mid-span parts are
            demoted to AtEnd/End0. Defaults to PARALLEL_DOT_THRESHOLD.
    """
    if parallel_dot is None:
        parallel_dot = PARALLEL_DOT_THRESHOLD

    conditions = []
    for i in range(len(beams)):
        for j in range(i + 1, len(beams)):
            for hit in find_intersections(beams[i], beams[j], radius, overlap_tolerance):
                part_a = make_part(beams[i], i, hit.parameter_a, end_tolerance)
                part_b = make_part(beams[j], j, hit.parameter_b, end_tolerance)
                if part_a.at_middle and part_b.at_middle:
                    dot = abs(float(beams[i].tangent_at(hit.parameter_a)
                                    @ beams[j].tangent_at(hit.parameter_b)))
                    if dot > parallel_dot:
                        logger.debug("Beams %d and %d overlap in parallel (|dot|=%.3f)",
                                     i, j, dot)
                        part_a, part_b = part_a.demoted(), part_b.demoted()
                conditions.append(JointCondition(hit.midpoint, [part_a, part_b]))
    return conditions


def find_end_conditions(
    beams: Sequence[Beam],
    end_tolerance: float,
    merge_distance: float,
) -> List[JointCondition]:
    """Cluster beam endpoints that lie within merge_distance of each other.

    Only clusters touching at least two different beams become conditions.
    """
    ends = []
    for index, beam in enumerate(beams):
        for t in beam.domain:
            ends.append((index, t, beam.point_at(t)))

    used = [False] * len(ends)
    conditions = []
    for a in range(len(ends)):
        if used[a]:
            continue
        cluster = [a]
        for b in range(a + 1, len(ends)):
            if used[b] or ends[b][0] in {ends[c][0] for c in cluster}:
                continue
            if any(np.linalg.norm(ends[b][2] - ends[c][2]) < merge_distance for c in cluster):
                cluster.append(b)
        if len(cluster) < 2:
            continue
        for c in cluster:
            used[c] = True
        position = np.mean([ends[c][2] for c in cluster], axis=0)
        parts = [make_part(beams[ends[c][0]], ends[c][0], ends[c][1], end_tolerance)
                 for c in cluster]
        conditions.append(JointCondition(position, parts))
    return conditions


def merge_conditions(conditions: Sequence[JointCondition],
                     merge_distance: float) -> List[JointCondition]:
    """Merge conditions closer than merge_distance into junctions.

    Each surviving condition keeps its own position and absorbs the parts of
    every later condition nearby; parts are unique by (beam, case). Passes
    repeat until nothing merges, so the result is a fixed point.
    """
    merged = [c.copy() for c in conditions]
    changed = True
    while changed:
        changed = False
        absorbed = [False] * len(merged)
        for i in range(len(merged)):
            if absorbed[i]:
                continue
            for j in range(i + 1, len(merged)):
                if absorbed[j]:
                    continue
                if np.linalg.norm(merged[i].position - merged[j].position) < merge_distance:
                    for part in merged[j].parts:
                        merged[i].add_part(part)
                    absorbed[j] = True
                    changed = True
        merged = [c for c, gone in zip(merged, absorbed) if not gone]
    return merged


def detect_conditions(
    beams: Sequence[Beam],
    radius: float,
    end_tolerance: float,
    merge_distance: float,
    overlap_tolerance: float = 1.0,
    include_end_clusters: bool = True,
    parallel_dot: Optional[float] = None,
) -> List[JointCondition]:
    """Full detection pass: pairwise hits, end clusters, then merge."""
    raw = find_conditions(beams, radius, end_tolerance,
                          overlap_tolerance=overlap_tolerance,
                          parallel_dot=parallel_dot)
    if include_end_clusters:
        raw.extend(find_end_conditions(beams, end_tolerance, merge_distance))
    conditions = merge_conditions(raw, merge_distance)
    logger.info("Detected %d joint conditions (%d raw) across %d beams",
                len(conditions), len(raw), len(beams))
    return conditions


def split_resolvable(
    conditions: Sequence[JointCondition],
) -> Tuple[List[JointCondition], List[JointCondition]]:
    """Separate conditions with 2-4 parts from those no joint can resolve.

    Every unresolved condition is reported with UnresolvedConditionWarning.
    """
    resolvable, unresolved = [], []
    for condition in conditions:
        if condition.is_resolvable:
            resolvable.append(condition)
            continue
        pos = ", ".join(f"{v:.1f}" for v in condition.position)
        message = (f"Dropping joint condition at ({pos}) with {condition.part_count} "
                   f"parts (beams {condition.element_indices})")
        logger.warning(message)
        warnings.warn(message, UnresolvedConditionWarning, stacklevel=2)
        unresolved.append(condition)
    return resolvable, unresolved
