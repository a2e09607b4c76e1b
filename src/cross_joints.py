"""
Cross-lap joints: two beams cross mid-span (X condition).

Part 0 is the "over" beam, part 1 the "under" beam. Both are notched down to a
shared lap plane whose height splits the overlap in proportion to the beam
depths. The backcut and tapered variants flare the notch walls so the lap
draws tight when assembled.
"""
import logging
import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from geometry_primitives import Plane, lerp, loft_solid, plane_plane_plane
from joint_errors import DegenerateGeometryError, InvalidTopologyError
from joint_parts import JointPart
from joints import BeamSide, Joint, JointCategory, JointResult, beam_side

logger = logging.getLogger(__name__)


@dataclass
class CrossLapConfig:
    """Half-lap settings (mm)."""
    added: float = 10.0   # notch overcut across the beam and past its depth
    inset: float = 0.0    # notch narrower than the mating beam by this much each side


@dataclass
class BackcutCrossLapConfig:
    added: float = 10.0
    inset: float = 0.0
    taper_angle: float = 3.0   # wall flare, degrees


@dataclass
class TaperedCrossLapConfig:
    added: float = 10.0
    inset: float = 0.0
    offset_x: float = 0.0      # over-notch wall flare reached at the notch depth (mm)
    offset_y: float = 10.0     # under-notch wall flare reached at the notch depth (mm)


@dataclass
class LapGeometry:
    """Shared construction of the two notches."""
    over: BeamSide
    under: BeamSide
    normal: np.ndarray
    lap_plane: Plane
    over_notch_depth: float
    under_notch_depth: float
    over_loop: np.ndarray      # notch outline of the over beam, on the lap plane
    under_loop: np.ndarray
    over_walls: np.ndarray     # outward wall direction per over_loop corner
    under_walls: np.ndarray


def _offset_pair(origin, axis, half: float) -> Tuple[Plane, Plane]:
    return (Plane.from_normal(origin + axis * half, axis),
            Plane.from_normal(origin - axis * half, axis))


def _corner_loop(lap: Plane, tight: Tuple[Plane, Plane],
                 wide: Tuple[Plane, Plane]) -> np.ndarray:
    return np.array([
        plane_plane_plane(lap, tight[0], wide[0]),
        plane_plane_plane(lap, tight[1], wide[0]),
        plane_plane_plane(lap, tight[1], wide[1]),
        plane_plane_plane(lap, tight[0], wide[1]),
    ])


def lap_geometry(over_beam, over_frame, under_beam, under_frame,
                 added: float, inset: float) -> LapGeometry:
    """Lap plane and notch outlines for two crossing beams.

    The lap plane passes through lerp(o_under, o_over, d_under / (d_under +
    d_over)), where d is each beam's depth across the lap.
    """
    over = beam_side(over_beam, over_frame, under_frame.normal)
    under = beam_side(under_beam, under_frame, over_frame.normal)

    normal = np.cross(under.axis, over.axis)
    length = float(np.linalg.norm(normal))
    if length < 1e-6:
        raise DegenerateGeometryError("Crossing beams have parallel sides")
    normal = normal / length
    if float((over_frame.origin - under_frame.origin) @ normal) < 0:
        normal = -normal

    t = under.depth / (over.depth + under.depth)
    origin = lerp(under_frame.origin, over_frame.origin, t)
    lap_plane = Plane(origin, under.axis, over.axis)
    if float(lap_plane.normal @ normal) < 0:
        lap_plane = lap_plane.flipped()

    over_notch_depth = over.depth / 2.0 - float((over_frame.origin - origin) @ normal)
    under_notch_depth = under.depth / 2.0 + float((under_frame.origin - origin) @ normal)

    over_tight = _offset_pair(over_frame.origin, over.axis, over.width / 2.0 - inset)
    over_wide = _offset_pair(over_frame.origin, over.axis, over.width / 2.0 + added)
    under_tight = _offset_pair(under_frame.origin, under.axis, under.width / 2.0 - inset)
    under_wide = _offset_pair(under_frame.origin, under.axis, under.width / 2.0 + added)
    if over.width / 2.0 - inset <= 0 or under.width / 2.0 - inset <= 0:
        raise DegenerateGeometryError(f"Inset {inset:.1f} closes the lap notch")

    # the under beam is cut where the over beam passes, and vice versa
    under_loop = _corner_loop(lap_plane, over_tight, under_wide)
    over_loop = _corner_loop(lap_plane, under_tight, over_wide)
    signs = np.array([1.0, -1.0, -1.0, 1.0])[:, None]
    return LapGeometry(
        over=over,
        under=under,
        normal=normal,
        lap_plane=lap_plane,
        over_notch_depth=over_notch_depth,
        under_notch_depth=under_notch_depth,
        over_loop=over_loop,
        under_loop=under_loop,
        over_walls=signs * under.axis,
        under_walls=signs * over.axis,
    )


class CrossLapJoint(Joint):
    """Plain half-lap of two crossing beams."""
    name = "CrossLapJoint"
    category = JointCategory.CROSS
    config_class = CrossLapConfig

    def check_parts(self, parts: Sequence[JointPart]) -> None:
        super().check_parts(parts)
        if not (parts[0].at_middle and parts[1].at_middle):
            raise InvalidTopologyError(f"{self.name} needs both beams mid-span")

    def wall_offsets(self, lap: LapGeometry, over_extent: float,
                     under_extent: float) -> Tuple[float, float]:
        """Wall flare at the far end of the (over, under) notch solids."""
        return 0.0, 0.0

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        (over_beam, over_frame), (under_beam, under_frame) = self.frames(beams)
        lap = lap_geometry(over_beam, over_frame, under_beam, under_frame,
                           cfg.added, cfg.inset)

        over_extent = lap.over.depth + cfg.added
        under_extent = lap.under.depth + cfg.added
        over_offset, under_offset = self.wall_offsets(lap, over_extent, under_extent)

        over_far = lap.over_loop - lap.normal * over_extent + lap.over_walls * over_offset
        under_far = lap.under_loop + lap.normal * under_extent + lap.under_walls * under_offset
        result.add(0, loft_solid(lap.over_loop, over_far))
        result.add(1, loft_solid(lap.under_loop, under_far))

        result.debug.planes["lap"] = lap.lap_plane
        result.debug.points["lap_origin"] = lap.lap_plane.origin
        result.debug.values.update({
            "over_notch_depth": lap.over_notch_depth,
            "under_notch_depth": lap.under_notch_depth,
            "over_wall_offset": over_offset,
            "under_wall_offset": under_offset,
        })


class CrossLapSingleBackcutJoint(CrossLapJoint):
    """Half-lap with the over notch walls backcut."""
    name = "CrossLapSingleBackcutJoint"
    config_class = BackcutCrossLapConfig

    def wall_offsets(self, lap, over_extent, under_extent):
        return over_extent * math.tan(math.radians(self.config.taper_angle)), 0.0


class CrossLapDoubleBackcutJoint(CrossLapJoint):
    """Half-lap with both notches backcut."""
    name = "CrossLapDoubleBackcutJoint"
    config_class = BackcutCrossLapConfig

    def wall_offsets(self, lap, over_extent, under_extent):
        tan = math.tan(math.radians(self.config.taper_angle))
        return over_extent * tan, under_extent * tan


class TaperedCrossLapJoint(CrossLapJoint):
    """Half-lap whose walls open by fixed offsets over the notch depth."""
    name = "TaperedCrossLapJoint"
    config_class = TaperedCrossLapConfig

    def wall_offsets(self, lap, over_extent, under_extent):
        cfg = self.config
        if lap.over_notch_depth <= 0 or lap.under_notch_depth <= 0:
            raise DegenerateGeometryError("Tapered lap needs overlapping beams")
        return (cfg.offset_x * over_extent / lap.over_notch_depth,
                cfg.offset_y * under_extent / lap.under_notch_depth)
