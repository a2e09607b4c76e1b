"""
Splice joints: two beams continue each other end to end (E condition).

All variants work in a splice frame at the mean of the two end origins:
x across the beam width, y across the height and the normal along
d0 - d1, i.e. pointing from beam 0 into beam 1. Profiles are drawn in
(y, w) coordinates, w measured along the normal, and swept across the width.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from geometry_primitives import (
    Plane,
    filleted_rectangle,
    loft_solid,
    outline_loop,
    prism_solid,
    scaled_outline,
)
from joint_errors import DegenerateGeometryError, InvalidTopologyError
from joint_parts import JointPart
from joints import (
    Dowel,
    Joint,
    JointCategory,
    JointResult,
    cutter_extent,
    trim_solid,
)

logger = logging.getLogger(__name__)


@dataclass
class SpliceConfig:
    """Plain butt splice (mm)."""
    cutter_size: float = 300.0


@dataclass
class BirdsMouthSpliceConfig:
    added: float = 10.0
    angle: float = 30.0            # V flank angle, degrees
    dowel_length: float = 150.0
    dowel_diameter: float = 12.0   # 0 = no dowels
    dowel_spacing: float = 0.0     # 0 = half the beam height
    cutter_depth: float = 300.0


@dataclass
class LappedSpliceConfig:
    added: float = 10.0
    splice_length: float = 200.0
    lap_ratio: float = 0.5         # share of the height kept by beam 0, from below
    cutter_depth: float = 300.0
    dowel_diameter: float = 16.0   # 0 = no dowels
    dowel_end_offset: float = 60.0


@dataclass
class SteppedScarfSpliceConfig:
    added: float = 10.0
    splice_length: float = 200.0
    splice_angle: float = 15.0     # slope of each scarf face, degrees
    step_count: int = 2
    step_width: float = 20.0       # riser height between scarf faces
    pin_width: float = 20.0        # 0 = no pin slot
    cutter_depth: float = 300.0
    dowel_diameter: float = 16.0
    dowel_end_offset: float = 60.0


@dataclass
class BlindTenonSpliceConfig:
    tenon_length: float = 100.0
    tenon_width: float = 40.0
    tenon_height: float = 80.0
    taper: float = 0.0             # inset of the tip outline on each side
    added: float = 10.0
    fillet_radius: float = 8.0
    dowel_length: float = 220.0
    dowel_diameter: float = 12.0
    cutter_size: float = 300.0


class _SpliceBase(Joint):
    category = JointCategory.SPLICE

    def check_parts(self, parts: Sequence[JointPart]) -> None:
        super().check_parts(parts)
        if not all(p.at_end for p in parts):
            raise InvalidTopologyError(f"{self.name} needs both beams at an end")

    def splice_frame(self, beams) -> Tuple[Plane, float, float]:
        """(splice plane, section width, section height)."""
        (b0, f0), (b1, f1) = self.frames(beams)
        normal = self.parts[0].direction - self.parts[1].direction
        length = float(np.linalg.norm(normal))
        if length < 1e-6:
            raise DegenerateGeometryError("Spliced beams point the same way")
        normal = normal / length

        x = f0.x_axis - (f0.x_axis @ normal) * normal
        if np.linalg.norm(x) < 1e-6:
            x = f0.y_axis - (f0.y_axis @ normal) * normal
        x = x / np.linalg.norm(x)
        plane = Plane((f0.origin + f1.origin) / 2.0, x, np.cross(normal, x))
        return plane, max(b0.width, b1.width), max(b0.height, b1.height)


def _profile_prism(plane: Plane, profile: Sequence[Tuple[float, float]],
                   half_width: float):
    """Sweep a (y, w) profile across the splice width."""
    yw = np.asarray(profile, dtype=float)
    n = len(yw)
    near = plane.from_local(np.column_stack([np.full(n, -half_width), yw[:, 0], yw[:, 1]]))
    far = plane.from_local(np.column_stack([np.full(n, half_width), yw[:, 0], yw[:, 1]]))
    return loft_solid(near, far)


def _dowel_pair(result: JointResult, axis, positions: List[np.ndarray],
                length: float, diameter: float) -> None:
    if diameter <= 0:
        return
    for centre in positions:
        result.add_dowel(Dowel.centred(centre, axis, length, diameter), [0, 1])


class SpliceJoint(_SpliceBase):
    """Square butt splice on the plane between the two ends."""
    name = "SpliceJoint"
    config_class = SpliceConfig

    def build(self, beams, result: JointResult) -> None:
        plane, _, _ = self.splice_frame(beams)
        size = cutter_extent(self.part_beams(beams), self.config.cutter_size)
        result.add(0, trim_solid(plane, plane.normal, size))
        result.add(1, trim_solid(plane, -plane.normal, size))
        result.debug.planes["splice"] = plane


class BirdsMouthSpliceJoint(_SpliceBase):
    """V-shaped interlock: beam 0 ends in a point that seats in beam 1's notch."""
    name = "BirdsMouthSpliceJoint"
    config_class = BirdsMouthSpliceConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        plane, width, height = self.splice_frame(beams)
        if not 0 < cfg.angle < 90:
            raise DegenerateGeometryError(f"Birds-mouth angle {cfg.angle} out of range")

        slope = math.tan(math.radians(cfg.angle))
        depth = slope * height / 2.0
        apex = depth / 2.0
        reach = height / 2.0 + cfg.added
        flank = apex - reach * slope
        half_width = width / 2.0 + cfg.added

        result.add(0, _profile_prism(plane, [
            (-reach, flank), (0.0, apex), (reach, flank),
            (reach, apex + cfg.cutter_depth), (-reach, apex + cfg.cutter_depth),
        ], half_width))
        result.add(1, _profile_prism(plane, [
            (reach, flank), (0.0, apex), (-reach, flank),
            (-reach, flank - cfg.cutter_depth), (reach, flank - cfg.cutter_depth),
        ], half_width))

        spacing = cfg.dowel_spacing if cfg.dowel_spacing > 0 else height / 2.0
        _dowel_pair(result, plane.normal,
                    [plane.point_at(0.0, spacing / 2.0), plane.point_at(0.0, -spacing / 2.0)],
                    cfg.dowel_length, cfg.dowel_diameter)

        result.debug.planes["splice"] = plane
        result.debug.values["depth"] = depth


class LappedSpliceJoint(_SpliceBase):
    """Half-lap splice: each beam keeps one layer over the splice length."""
    name = "LappedSpliceJoint"
    config_class = LappedSpliceConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        plane, width, height = self.splice_frame(beams)
        if not 0 < cfg.lap_ratio < 1:
            raise DegenerateGeometryError(f"Lap ratio {cfg.lap_ratio} must be in (0, 1)")
        if cfg.splice_length <= 0:
            raise DegenerateGeometryError("Splice length must be positive")

        seam = (cfg.lap_ratio - 0.5) * height
        half = cfg.splice_length / 2.0
        reach = height / 2.0 + cfg.added
        far = half + cfg.cutter_depth
        half_width = width / 2.0 + cfg.added

        result.add(0, _profile_prism(plane, [
            (seam, -half), (seam, half), (-reach, half),
            (-reach, far), (reach, far), (reach, -half),
        ], half_width))
        result.add(1, _profile_prism(plane, [
            (seam, half), (seam, -half), (reach, -half),
            (reach, -far), (-reach, -far), (-reach, half),
        ], half_width))

        _add_end_dowels(result, plane, half, height, cfg)
        result.debug.planes["splice"] = plane
        result.debug.values["seam"] = seam


class SteppedScarfSpliceJoint(_SpliceBase):
    """Scarf with sloped faces broken by risers, locked by a pin and dowels."""
    name = "SteppedScarfSpliceJoint"
    config_class = SteppedScarfSpliceConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        plane, width, height = self.splice_frame(beams)
        count = int(cfg.step_count)
        if count < 1 or cfg.splice_length <= 0:
            raise DegenerateGeometryError("Scarf needs at least one step and a length")

        slope = math.tan(math.radians(cfg.splice_angle))
        half = cfg.splice_length / 2.0
        run = cfg.splice_length / count
        drop = slope * cfg.splice_length + (count - 1) * cfg.step_width
        if drop >= height:
            raise DegenerateGeometryError(
                f"Scarf drop {drop:.1f} does not fit in beam height {height:.1f}"
            )

        interface, risers = self.interface(half, run, slope, drop, count, cfg.step_width)
        reach = height / 2.0 + cfg.added
        far = half + cfg.cutter_depth
        half_width = width / 2.0 + cfg.added

        result.add(0, _profile_prism(plane, interface + [
            (-reach, half), (-reach, far), (reach, far), (reach, -half),
        ], half_width))
        result.add(1, _profile_prism(plane, interface[::-1] + [
            (reach, -half), (reach, -far), (-reach, -far), (-reach, half),
        ], half_width))

        if cfg.pin_width > 0 and risers:
            top, bottom, w = min(risers, key=lambda r: abs(r[2]))
            pin = _profile_prism(plane, [
                (top, w - cfg.pin_width / 2.0), (top, w + cfg.pin_width / 2.0),
                (bottom, w + cfg.pin_width / 2.0), (bottom, w - cfg.pin_width / 2.0),
            ], half_width)
            result.add(0, pin)
            result.add(1, pin)

        _add_end_dowels(result, plane, half, height, cfg)
        result.debug.planes["splice"] = plane
        result.debug.values.update({"drop": drop, "step_count": float(count)})

    @staticmethod
    def interface(half, run, slope, drop, count, step_width):
        """Staircase points (y, w) from w = -half to w = half, plus the risers
        as (top y, bottom y, w)."""
        y = drop / 2.0
        points = [(y, -half)]
        risers = []
        for k in range(count):
            w = -half + (k + 1) * run
            y -= slope * run
            points.append((y, w))
            if k < count - 1:
                risers.append((y, y - step_width, w))
                y -= step_width
                points.append((y, w))
        return points, risers


class BlindTenonSpliceJoint(_SpliceBase):
    """Beam 0 ends in a hidden rounded tenon housed inside beam 1."""
    name = "BlindTenonSpliceJoint"
    config_class = BlindTenonSpliceConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        plane, width, height = self.splice_frame(beams)
        if cfg.tenon_width >= width or cfg.tenon_height >= height:
            raise DegenerateGeometryError(
                f"Tenon {cfg.tenon_width:.0f} x {cfg.tenon_height:.0f} does not fit "
                f"in {width:.0f} x {height:.0f} beam"
            )
        if cfg.tenon_length <= 0:
            raise DegenerateGeometryError("Tenon length must be positive")

        outline = filleted_rectangle(cfg.tenon_width, cfg.tenon_height, cfg.fillet_radius)
        sx = (cfg.tenon_width - 2.0 * cfg.taper) / cfg.tenon_width
        sy = (cfg.tenon_height - 2.0 * cfg.taper) / cfg.tenon_height
        if sx <= 0 or sy <= 0:
            raise DegenerateGeometryError(f"Taper {cfg.taper} closes the tenon tip")

        base = outline_loop(outline, plane)
        tip = outline_loop(scaled_outline(outline, sx, sy), plane.offset(cfg.tenon_length))
        result.add_body(0, loft_solid(base, tip))

        size = cutter_extent(self.part_beams(beams), cfg.cutter_size)
        result.add(0, trim_solid(plane, plane.normal, size))
        result.add(1, trim_solid(plane, -plane.normal, size))
        result.add(1, prism_solid(base, -plane.normal * cfg.added,
                                  plane.normal * (cfg.tenon_length + cfg.added)))

        if cfg.dowel_diameter > 0:
            centre = plane.point_at(0.0, 0.0, cfg.tenon_length / 2.0)
            result.add_dowel(Dowel.centred(centre, plane.x_axis, cfg.dowel_length,
                                           cfg.dowel_diameter), [0, 1])

        result.debug.planes["splice"] = plane
        result.debug.values["tenon_length"] = cfg.tenon_length


def _add_end_dowels(result: JointResult, plane: Plane, half: float, height: float, cfg) -> None:
    """Two dowels through the height, dowel_end_offset in from the splice ends."""
    if cfg.dowel_diameter <= 0:
        return
    w = half - cfg.dowel_end_offset
    if w <= 0:
        raise DegenerateGeometryError(
            f"Dowel end offset {cfg.dowel_end_offset:.1f} exceeds half the splice length"
        )
    length = height + 2.0 * cfg.added
    _dowel_pair(result, plane.y_axis,
                [plane.point_at(0.0, 0.0, w), plane.point_at(0.0, 0.0, -w)],
                length, cfg.dowel_diameter)
