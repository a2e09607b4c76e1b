"""
Multi-beam junctions: three (V-beam) or four (four-way) beams at one node.

Beams are sorted around the junction normal and every neighbouring pair is
separated by a dividing plane. Beams ending at the node are trimmed by the
planes shared with their two neighbours; beams running through are left whole.
A disc at the node stands in for the steel plate that ties the beams together.
"""
import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from beams import Beam
from geometry_primitives import (
    Plane,
    closest_points_on_lines,
    dowel_solid,
    lerp,
    sort_vectors_around,
)
from joint_errors import DegenerateGeometryError, InvalidTopologyError
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
class JunctionConfig:
    """Node settings (mm)."""
    plate_radius: float = 100.0
    plate_height: float = 20.0
    cutter_size: float = 300.0
    added: float = 10.0


def junction_normal(directions: Sequence[np.ndarray]) -> np.ndarray:
    """Best-fit normal of the beam directions, oriented deterministically."""
    _, _, vt = np.linalg.svd(np.vstack(directions))
    normal = vt[-1]
    ref = None
    for i in range(1, len(directions)):
        c = np.cross(directions[0], directions[i])
        if np.linalg.norm(c) > 1e-6:
            ref = c
            break
    if ref is None:
        ref = np.array([0.0, 0.0, 1.0])
    if float(normal @ ref) < 0:
        normal = -normal
    return normal / np.linalg.norm(normal)


class _JunctionJoint(Joint):
    config_class = JunctionConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        frames = self.frames(beams)
        directions = [p.direction for p in self.parts]
        centre = np.mean([f.origin for _, f in frames], axis=0)
        normal = junction_normal(directions)

        result.placeholders.append(dowel_solid(
            centre - normal * cfg.plate_height / 2.0, normal,
            cfg.plate_height, 2.0 * cfg.plate_radius,
        ))
        result.debug.points["centre"] = centre
        size = cutter_extent(self.part_beams(beams), cfg.cutter_size) + cfg.added
        self.trim_parts(frames, normal, size, result)

    def trim_parts(self, frames, normal, size, result: JointResult) -> None:
        projected = [d - (d @ normal) * normal for d in (p.direction for p in self.parts)]
        order = sort_vectors_around(normal, projected)
        n = len(order)
        for k in range(n):
            i, j = order[k], order[(k + 1) % n]
            self.trim_pair(frames, i, j, normal, size, result)

    def trim_pair(self, frames, i: int, j: int, normal, size: float,
                  result: JointResult) -> None:
        """Trim each AtEnd part of the pair back to their dividing plane."""
        plane = self.dividing_plane(frames, i, j, normal)
        result.debug.planes[f"divide_{i}_{j}"] = plane
        pi, pj = self.parts[i], self.parts[j]
        # a part's body lies behind its direction; cut away the neighbour's side
        if pi.at_end:
            result.add(i, trim_solid(plane, -pj.direction, size))
        if pj.at_end:
            result.add(j, trim_solid(plane, -pi.direction, size))

    def dividing_plane(self, frames, i: int, j: int, normal) -> Plane:
        (bi, fi), (bj, fj) = frames[i], frames[j]
        di, dj = self.parts[i].direction, self.parts[j].direction

        ci, cj = closest_points_on_lines(fi.origin, di, fj.origin, dj)
        side_i = beam_side(bi, fi, dj)
        side_j = beam_side(bj, fj, di)
        origin = lerp(ci, cj, side_i.width / (side_i.width + side_j.width))

        bisector = di + dj
        if np.linalg.norm(bisector) < 1e-6:
            raise DegenerateGeometryError(f"Junction beams {i} and {j} are opposed")
        ai, aj = side_i.axis, side_j.axis
        if float(ai @ aj) < 0:
            aj = -aj
        span = np.cross(ai, aj)
        if np.linalg.norm(span) < 1e-6 or np.linalg.norm(np.cross(span, bisector)) < 1e-6:
            span = normal
        plane = Plane(origin, bisector, span)
        if abs(float((-di) @ plane.normal)) < 1e-6:
            raise DegenerateGeometryError(f"Dividing plane of beams {i} and {j} is degenerate")
        return plane


class VBeamJoint(_JunctionJoint):
    """Three beams at a node; mid-span (floor) beams are listed first."""
    name = "VBeamJoint"
    category = JointCategory.VBEAM
    part_count = 3

    @classmethod
    def order_parts(cls, parts: List[JointPart],
                    beams: Sequence[Beam]) -> List[JointPart]:
        return ([p for p in parts if p.at_middle]
                + [p for p in parts if p.at_end])

    def check_parts(self, parts: Sequence[JointPart]) -> None:
        super().check_parts(parts)
        floors = sum(1 for p in parts if p.at_middle)
        if floors > 1:
            raise InvalidTopologyError(
                f"{self.name} takes at most one beam running through, got {floors}"
            )

    def trim_parts(self, frames, normal, size, result: JointResult) -> None:
        floors = [i for i, p in enumerate(self.parts) if p.at_middle]
        if not floors:
            super().trim_parts(frames, normal, size, result)
            return

        # one floor beam, two legs
        legs = [i for i, p in enumerate(self.parts) if p.at_end]
        self.trim_pair(frames, legs[0], legs[1], normal, size, result)

        floor_beam, floor_frame = frames[floors[0]]
        inward = -np.mean([self.parts[i].direction for i in legs], axis=0)
        face = beam_side(floor_beam, floor_frame, inward)
        plane = face_plane(floor_frame, face)
        result.debug.planes["floor_face"] = plane
        for i in legs:
            result.add(i, trim_solid(plane, self.parts[i].direction, size))


class FourWayJoint(_JunctionJoint):
    """Four beams at a node."""
    name = "FourWayJoint"
    category = JointCategory.FOUR_WAY
    part_count = 4

    def check_parts(self, parts: Sequence[JointPart]) -> None:
        super().check_parts(parts)
        if any(p.at_middle for p in parts):
            raise InvalidTopologyError(f"{self.name} needs all four beams ending at the node")
