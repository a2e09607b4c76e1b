"""
Corner joints: two beams end at the same point at a steep angle (L condition).

The half-lap corners share one lap plane between the two layers: beam 0
keeps the layer below it, beam 1 the layer above.
"""
import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from geometry_primitives import Plane, lerp, loft_solid, plane_plane_plane
from joint_errors import DegenerateGeometryError, InvalidTopologyError
from joint_parts import JointPart
from joints import (
    BeamSide,
    Dowel,
    Joint,
    JointCategory,
    JointResult,
    beam_side,
    cutter_extent,
    trim_solid,
)

logger = logging.getLogger(__name__)


@dataclass
class CornerConfig:
    """Butt corner settings (mm)."""
    added: float = 10.0
    cutter_size: float = 300.0   # half-size of the end trim boxes


@dataclass
class FullLapCornerConfig:
    """Corner half-lap settings (mm)."""
    added: float = 10.0
    dowel_diameter: float = 16.0   # 0 = no dowel
    cutter_size: float = 300.0


@dataclass
class BlindCornerConfig:
    """Blind corner half-lap settings (mm)."""
    added: float = 10.0
    blind_offset: float = 20.0     # lip left at beam 0's end
    inset: float = 0.0             # gap between beam 1's end and the lip
    dowel_diameter: float = 16.0   # 0 = no dowel
    cutter_size: float = 300.0


@dataclass
class _CornerLap:
    """Frames, sides and lap plane shared by the half-lap corners."""
    f0: Plane
    f1: Plane
    side0: BeamSide     # beam 0 seen along beam 1
    side1: BeamSide     # beam 1 seen along beam 0
    normal: np.ndarray  # from beam 0's layer toward beam 1's
    origin: np.ndarray
    plane: Plane

    def offset0(self, offset: float) -> Plane:
        return Plane.from_normal(self.f0.origin + self.side0.axis * offset, self.side0.axis)

    def offset1(self, offset: float) -> Plane:
        return Plane.from_normal(self.f1.origin + self.side1.axis * offset, self.side1.axis)


class _EndToEndJoint(Joint):

    def check_parts(self, parts: Sequence[JointPart]) -> None:
        super().check_parts(parts)
        if not all(p.at_end for p in parts):
            raise InvalidTopologyError(f"{self.name} needs both beams at an end")


class CornerJoint(_EndToEndJoint):
    """Butt corner: part 0 runs through to part 1's far face, part 1 stops at
    part 0's near face."""
    name = "CornerJoint"
    category = JointCategory.CORNER
    config_class = CornerConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        (b0, f0), (b1, f1) = self.frames(beams)
        d0, d1 = self.parts[0].direction, self.parts[1].direction

        side1 = beam_side(b1, f1, d0)
        side0 = beam_side(b0, f0, d1)
        plane0 = Plane.from_normal(f1.origin + side1.axis * side1.width / 2.0, side1.axis)
        plane1 = Plane.from_normal(f0.origin - side0.axis * side0.width / 2.0, side0.axis)

        size = cutter_extent([b0, b1], cfg.cutter_size) + cfg.added
        result.add(0, trim_solid(plane0, d0, size))
        result.add(1, trim_solid(plane1, d1, size))
        result.debug.planes.update({"trim_0": plane0, "trim_1": plane1})


class FullLapCornerJoint(_EndToEndJoint):
    """Corner half-lap pinned by a dowel through the lap."""
    name = "FullLapCornerJoint"
    category = JointCategory.CORNER
    config_class = FullLapCornerConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        lap = self.corner_lap(beams)
        self.add_laps(lap, lap.side1.width / 2.0 + cfg.added, result)
        self.add_end_trims(beams, lap, result)
        self.add_dowel(lap, result)

    def corner_lap(self, beams) -> _CornerLap:
        (b0, f0), (b1, f1) = self.frames(beams)
        # side0: beam 0 seen along beam 1, side1: beam 1 seen along beam 0
        side0 = beam_side(b0, f0, self.parts[1].direction)
        side1 = beam_side(b1, f1, self.parts[0].direction)
        normal = np.cross(side0.axis, side1.axis)
        length = float(np.linalg.norm(normal))
        if length < 1e-6:
            raise DegenerateGeometryError("Corner beams have parallel sides")
        normal = normal / length
        if float((f1.origin - f0.origin) @ normal) < 0:
            normal = -normal

        origin = lerp(f0.origin, f1.origin, side0.depth / (side0.depth + side1.depth))
        plane = Plane(origin, side0.axis, side1.axis)
        if float(plane.normal @ normal) < 0:
            plane = plane.flipped()
        return _CornerLap(f0, f1, side0, side1, normal, origin, plane)

    def add_laps(self, lap: _CornerLap, reach0: float, result: JointResult) -> None:
        """Half-lap notches; beam 0's runs from beam 1's inner face to reach0
        along side1.axis."""
        added = self.config.added
        # beam 0 loses its top where beam 1 lies
        along0 = (lap.offset1(reach0), lap.offset1(-lap.side1.width / 2.0))
        across0 = (lap.offset0(lap.side0.width / 2.0 + added),
                   lap.offset0(-lap.side0.width / 2.0 - added))
        # beam 1 loses its bottom where beam 0 lies
        along1 = (lap.offset0(lap.side0.width / 2.0 + added),
                  lap.offset0(-lap.side0.width / 2.0))
        across1 = (lap.offset1(lap.side1.width / 2.0 + added),
                   lap.offset1(-lap.side1.width / 2.0 - added))

        loop0 = _lap_loop(lap.plane, along0, across0)
        loop1 = _lap_loop(lap.plane, along1, across1)
        result.add(0, loft_solid(loop0, loop0 + lap.normal * (lap.side0.depth + added)))
        result.add(1, loft_solid(loop1, loop1 - lap.normal * (lap.side1.depth + added)))
        result.debug.planes["lap"] = lap.plane
        result.debug.points["lap_origin"] = lap.origin

    def add_end_trims(self, beams, lap: _CornerLap, result: JointResult) -> None:
        size = cutter_extent(self.part_beams(beams), self.config.cutter_size) + self.config.added
        trim0 = lap.offset1(lap.side1.width / 2.0)
        trim1 = lap.offset0(lap.side0.width / 2.0)
        result.add(0, trim_solid(trim0, self.parts[0].direction, size))
        result.add(1, trim_solid(trim1, self.parts[1].direction, size))
        result.debug.planes.update({"trim_0": trim0, "trim_1": trim1})

    def add_dowel(self, lap: _CornerLap, result: JointResult) -> None:
        cfg = self.config
        if cfg.dowel_diameter > 0:
            length = lap.side0.depth + lap.side1.depth + cfg.added
            result.add_dowel(Dowel.centred(lap.origin, lap.normal, length, cfg.dowel_diameter),
                             [0, 1])


class BlindCornerJoint(FullLapCornerJoint):
    """Corner half-lap whose lap stops short of beam 0's end.

    Beam 0 keeps a full-height lip of blind_offset at its end, so the end
    grain of beam 1 is hidden. Beam 1 is cut back through its whole height
    to clear the lip, inset further for clearance.
    """
    name = "BlindCornerJoint"
    config_class = BlindCornerConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        lap = self.corner_lap(beams)
        half1 = lap.side1.width / 2.0
        if cfg.blind_offset <= 0 or cfg.blind_offset + cfg.inset >= lap.side1.width:
            raise DegenerateGeometryError(
                f"Blind offset {cfg.blind_offset:.1f} with inset {cfg.inset:.1f} "
                f"leaves no lap across {lap.side1.width:.1f}"
            )
        self.add_laps(lap, half1 - cfg.blind_offset, result)

        # beam 1 clears the lip through its full height
        lip_start = half1 - cfg.blind_offset - cfg.inset
        reach = lap.side1.depth + cfg.added
        along = (lap.offset1(half1 + cfg.added), lap.offset1(lip_start))
        across = (lap.offset0(lap.side0.width / 2.0 + cfg.added),
                  lap.offset0(-lap.side0.width / 2.0))
        loop = _lap_loop(lap.plane.translated(-lap.normal * reach), along, across)
        result.add(1, loft_solid(loop, loop + lap.normal * 2.0 * reach))

        self.add_end_trims(beams, lap, result)
        self.add_dowel(lap, result)
        result.debug.planes["lip"] = along[1]
        result.debug.values["lip"] = cfg.blind_offset


def _lap_loop(lap: Plane, along, across) -> np.ndarray:
    return np.array([
        plane_plane_plane(lap, along[0], across[0]),
        plane_plane_plane(lap, along[1], across[0]),
        plane_plane_plane(lap, along[1], across[1]),
        plane_plane_plane(lap, along[0], across[1]),
    ])
