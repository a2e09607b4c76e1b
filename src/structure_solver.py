"""
Structure-level joint solver.

Pipeline:
1. Detect joint conditions between all beams (pairwise hits, end clusters,
   merge).
2. Drop conditions no joint can resolve (not 2-4 parts), with a warning.
3. Classify each condition and create its joint from the registry.
4. Apply per-type settings.
5. Construct every joint, optionally on a thread pool, then write the
   results back in joint order.

A failing joint is recorded and skipped; it never aborts the solve.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence

import trimesh

from beams import Beam
from joint_conditions import JointCondition, detect_conditions, split_resolvable
from joint_errors import InvalidTopologyError, UnknownJointTypeError
from joint_registry import REGISTRY, JointRegistry
from joints import (
    STATUS_DEGENERATE,
    STATUS_INVALID_TOPOLOGY,
    STATUS_OK,
    Joint,
    JointResult,
    classify_condition,
)

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    STATUS_DEGENERATE: "DegenerateGeometryError",
    STATUS_INVALID_TOPOLOGY: "InvalidTopologyError",
}


@dataclass
class SolverConfig:
    """Tolerances and joint selection for one solve (lengths in mm)."""
    search_radius: float = 100.0      # centreline near-miss distance
    end_tolerance: float = 10.0       # arc length still counted as "at the end"
    merge_distance: float = 50.0      # conditions closer than this become one junction
    overlap_tolerance: float = 1.0    # shortest parallel run reported as an overlap
    include_end_clusters: bool = True
    parallel_dot: Optional[float] = None          # None = joint_conditions default
    splice_threshold_deg: Optional[float] = None  # None = joints default
    branch_threshold_deg: Optional[float] = None
    max_workers: int = 1              # >1 builds joints on a thread pool
    joint_types: Dict[str, str] = field(default_factory=dict)   # category -> type name
    joint_settings: Dict[str, Dict[str, float]] = field(default_factory=dict)  # type -> values

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "SolverConfig":
        """Build from a plain mapping (e.g. parsed JSON); unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            logger.debug("SolverConfig ignores unknown keys: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in values.items() if k in known})


@dataclass
class JointFailure:
    """A condition that produced no usable joint."""
    condition_index: int
    type_name: Optional[str]
    error: str
    message: str
    joint_index: Optional[int] = None   # set when the joint was created but failed to build


@dataclass
class Structure:
    """Beams plus the joints solved between them."""
    beams: List[Beam]
    joints: List[Joint] = field(default_factory=list)
    failures: List[JointFailure] = field(default_factory=list)
    dropped: List[JointCondition] = field(default_factory=list)

    def joints_for_beam(self, index: int) -> List[int]:
        """Indices of joints that involve the beam."""
        return [i for i, joint in enumerate(self.joints)
                if index in joint.element_indices]

    def beam_geometry(self, index: int) -> List[trimesh.Trimesh]:
        """All cutting solids every joint produced for the beam."""
        solids = []
        for joint in self.joints:
            for part in joint.parts:
                if part.element_index == index:
                    solids.extend(part.geometry)
        return solids

    def beam_bodies(self, index: int) -> List[trimesh.Trimesh]:
        """Positive solids (tenons, tails) to be added to the beam."""
        solids = []
        for joint in self.joints:
            for part, bodies in zip(joint.parts, joint.bodies):
                if part.element_index == index:
                    solids.extend(bodies)
        return solids

    def cutting_geometry(self) -> Dict[int, List[trimesh.Trimesh]]:
        return {i: self.beam_geometry(i) for i in range(len(self.beams))}

    def successful_joints(self) -> List[Joint]:
        failed = {f.joint_index for f in self.failures if f.joint_index is not None}
        return [j for i, j in enumerate(self.joints) if i not in failed]

    def summary(self) -> Dict[str, int]:
        counts = {
            "beams": len(self.beams),
            "joints": len(self.joints),
            "failed": len(self.failures),
            "dropped": len(self.dropped),
        }
        for joint in self.joints:
            counts[joint.name] = counts.get(joint.name, 0) + 1
        return counts


def construct_joints(
    joints: Sequence[Joint],
    beams: Sequence[Beam],
    max_workers: int = 1,
) -> List[JointResult]:
    """Run construct() for every joint; results come back in joint order.

    construct() never mutates its joint and reports failures as a status
    instead of raising, so the calls may run concurrently.
    """
    if max_workers <= 1 or len(joints) < 2:
        return [joint.construct(beams) for joint in joints]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(joint.construct, beams) for joint in joints]
        return [future.result() for future in futures]


def create_joints(
    beams: Sequence[Beam],
    conditions: Sequence[JointCondition],
    config: SolverConfig,
    registry: JointRegistry,
    structure: Structure,
) -> List[int]:
    """Create and configure a joint per resolvable condition.

    Returns:
        The condition index of each created joint.
    """
    condition_indices = []
    for index, condition in enumerate(conditions):
        if not condition.is_resolvable:
            continue
        type_name = None
        try:
            category = classify_condition(condition, config.splice_threshold_deg,
                                          config.branch_threshold_deg)
            type_name = registry.type_for(category, config.joint_types)
            joint = registry.create(type_name, beams, condition)
        except (InvalidTopologyError, UnknownJointTypeError) as exc:
            logger.warning("Condition %d (%s) skipped: %s",
                           index, type_name or "unclassified", exc)
            structure.failures.append(
                JointFailure(index, type_name, type(exc).__name__, str(exc))
            )
            continue
        settings = config.joint_settings.get(type_name)
        if settings:
            joint.configure(settings)
        logger.debug("Condition %d -> %s", index, type_name)
        structure.joints.append(joint)
        condition_indices.append(index)
    return condition_indices


def solve(
    beams: Sequence[Beam],
    merge_distance: Optional[float] = None,
    end_tolerance: Optional[float] = None,
    search_radius: Optional[float] = None,
    config: Optional[SolverConfig] = None,
    registry: Optional[JointRegistry] = None,
) -> Structure:
    """Detect, classify and construct every joint of a beam structure.

    Args:
        beams: The structure's beams; joint parts refer to them by index.
        merge_distance, end_tolerance, search_radius: Override the
            matching SolverConfig fields.
        config: Solver settings (defaults when None).
        registry: Joint types to draw from (module REGISTRY when None).

    Returns:
        Structure holding the joints, failures and dropped conditions.
    """
    cfg = config if config is not None else SolverConfig()
    overrides = {
        "merge_distance": merge_distance,
        "end_tolerance": end_tolerance,
        "search_radius": search_radius,
    }
    cfg = replace(cfg, **{k: v for k, v in overrides.items() if v is not None})
    if registry is None:
        registry = REGISTRY

    beams = list(beams)
    structure = Structure(beams=beams)

    conditions = detect_conditions(
        beams,
        radius=cfg.search_radius,
        end_tolerance=cfg.end_tolerance,
        merge_distance=cfg.merge_distance,
        overlap_tolerance=cfg.overlap_tolerance,
        include_end_clusters=cfg.include_end_clusters,
        parallel_dot=cfg.parallel_dot,
    )
    _, structure.dropped = split_resolvable(conditions)

    condition_indices = create_joints(beams, conditions, cfg, registry, structure)
    results = construct_joints(structure.joints, beams, cfg.max_workers)

    for joint_index, (joint, result) in enumerate(zip(structure.joints, results)):
        status = joint.apply(result)
        if status != STATUS_OK:
            structure.failures.append(JointFailure(
                condition_index=condition_indices[joint_index],
                type_name=joint.name,
                error=_STATUS_ERRORS.get(status, f"status {status}"),
                message="; ".join(result.errors),
                joint_index=joint_index,
            ))

    logger.info(
        "Solved %d joints across %d beams (%d failed, %d dropped)",
        len(structure.joints), len(beams), len(structure.failures), len(structure.dropped),
    )
    return structure
