"""
Tenon joints: one beam ends against the side of another (T condition).

Part 0 is the tenon beam (AtEnd), part 1 the mortise beam (AtMiddle). The
tenon beam gets a positive tenon body (JointResult.bodies) plus cutters that
remove its shoulders; the mortise beam gets the pocket. ButtJoint has no
tenon: the tenon beam is cut square at the mortise face.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import trimesh

from beams import Beam
from geometry_primitives import (
    Plane,
    line_plane,
    loft_solid,
    plane_plane,
    plane_plane_plane,
    rotate_plane,
    rotate_vector,
)
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

_MIN_STRIP = 1e-9


@dataclass
class TenonConfig:
    """Mortise and tenon settings (mm)."""
    added: float = 10.0            # pocket overcut past the mortise faces
    inset: float = 0.0             # shoulder each side of the tenon along the mortise beam
    blind_offset: float = 0.0      # 0 = through tenon; else stop this far short of the far face
    tenon_thickness: float = 0.0   # 0 = half the smaller engaging depth
    dowel_diameter: float = 0.0    # 0 = no dowel


@dataclass
class DovetailTenonConfig:
    """Dovetail tenon settings (mm, degrees)."""
    added: float = 10.0
    neck_offset: float = 20.0      # neck narrower than the tenon beam by this much each side
    depth: float = 10.0            # tail length into the mortise beam
    angle: float = 30.0            # flare of the tail sides
    tenon_thickness: float = 0.0   # 0 = half the smaller engaging depth
    dowel_diameter: float = 16.0   # 0 = no dowel


@dataclass
class ButtConfig:
    """Butt T settings (mm)."""
    added: float = 10.0
    depth: float = 0.0             # housing depth into the mortise beam; 0 = plain butt
    dowel_diameter: float = 16.0   # 0 = no dowels
    dowel_length: float = 180.0
    dowel_spacing: float = 80.0    # across the tenon beam depth; 0 = one central dowel
    cutter_size: float = 300.0


@dataclass
class _TenonFrame:
    """Planes shared by the tenon variants."""
    face: BeamSide          # mortise section seen along the tenon direction
    near: Plane             # mortise face the tenon enters through
    far: Plane              # opposite mortise face
    u: BeamSide             # tenon section seen along the mortise beam
    v_planes: Tuple[Plane, Plane]
    mortise_v: BeamSide     # mortise section seen along the tenon thickness
    origin: np.ndarray      # tenon frame origin
    mortise_origin: np.ndarray
    thickness: float


def _section_loop(end: Plane, u_planes: Sequence[Plane],
                  v_planes: Sequence[Plane]) -> np.ndarray:
    return np.array([
        plane_plane_plane(end, u_planes[0], v_planes[0]),
        plane_plane_plane(end, u_planes[1], v_planes[0]),
        plane_plane_plane(end, u_planes[1], v_planes[1]),
        plane_plane_plane(end, u_planes[0], v_planes[1]),
    ])


class _TenonBase(Joint):
    """Shared part ordering and mortise planes for tenon joints."""
    category = JointCategory.TENON

    @classmethod
    def order_parts(cls, parts: List[JointPart],
                    beams: Sequence[Beam]) -> List[JointPart]:
        if len(parts) == 2 and parts[0].at_middle and parts[1].at_end:
            return [parts[1], parts[0]]
        return parts

    def check_parts(self, parts: Sequence[JointPart]) -> None:
        super().check_parts(parts)
        if not (parts[0].at_end and parts[1].at_middle):
            raise InvalidTopologyError(
                f"{self.name} needs the tenon beam at an end and the mortise "
                f"beam mid-span"
            )

    def tenon_frame(self, beams: Sequence[Beam], thickness: float) -> _TenonFrame:
        (tenon_beam, tenon_frame), (mortise_beam, mortise_frame) = self.frames(beams)
        direction = self.parts[0].direction

        face = beam_side(mortise_beam, mortise_frame, direction)
        near = Plane.from_normal(mortise_frame.origin - face.axis * face.width / 2.0,
                                 face.axis)
        far = near.translated(face.axis * face.width)

        u = beam_side(tenon_beam, tenon_frame, mortise_frame.normal)
        v = u.other
        mortise_v = beam_side(mortise_beam, mortise_frame, v)
        if thickness <= 0:
            thickness = 0.5 * min(u.depth, mortise_v.width)
        if thickness > u.depth:
            raise DegenerateGeometryError(
                f"Tenon thickness {thickness:.1f} exceeds beam depth {u.depth:.1f}"
            )
        o = tenon_frame.origin
        v_planes = (
            Plane.from_normal(o + v * thickness / 2.0, v),
            Plane.from_normal(o - v * thickness / 2.0, v),
        )
        return _TenonFrame(face, near, far, u, v_planes, mortise_v, o,
                           mortise_frame.origin, thickness)

    def shoulder_cutters(self, tf: _TenonFrame, added: float, end: Plane,
                         sides: Sequence[Tuple[Plane, Plane]], side_end: Plane,
                         tip: Optional[Plane] = None) -> List[trimesh.Trimesh]:
        """Tenon beam material around the tenon, from the near face onward.

        The strips above and below the tenon run from the near face to end.
        Each (outer, inner) pair in sides bounds a strip beside the tenon up
        to side_end. When tip is given the whole thickness is cut from tip to
        end as well.
        """
        outer_u = tf.u.width / 2.0 + added
        outer_v = tf.u.depth / 2.0 + added
        v = tf.u.other
        full_u = (_offset_plane(tf.origin, tf.u.axis, outer_u),
                  _offset_plane(tf.origin, tf.u.axis, -outer_u))

        cutters = []
        for hi, lo in ((outer_v, tf.thickness / 2.0), (-tf.thickness / 2.0, -outer_v)):
            if hi - lo > _MIN_STRIP:
                strip_v = (_offset_plane(tf.origin, v, hi), _offset_plane(tf.origin, v, lo))
                cutters.append(_block(tf.near, end, full_u, strip_v))
        for outer, inner in sides:
            gap = abs(float((outer.origin - inner.origin) @ outer.normal))
            if gap > _MIN_STRIP:
                cutters.append(_block(tf.near, side_end, (outer, inner), tf.v_planes))
        if tip is not None:
            cutters.append(_block(tip, end, full_u, tf.v_planes))
        return cutters


def _offset_plane(origin, axis, offset: float) -> Plane:
    return Plane.from_normal(origin + axis * offset, axis)


def _block(start: Plane, end: Plane, u_planes, v_planes) -> trimesh.Trimesh:
    return loft_solid(_section_loop(start, u_planes, v_planes),
                      _section_loop(end, u_planes, v_planes))


class TenonJoint(_TenonBase):
    """Rectangular mortise and tenon, through or blind.

    The tenon is a body on part 0, grown past the beam end out to the far
    face (or short of it when blind). The tenon beam loses its shoulders
    from the near face on; the mortise beam gets the pocket.
    """
    name = "TenonJoint"
    config_class = TenonConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        tf = self.tenon_frame(beams, cfg.tenon_thickness)

        half = tf.u.width / 2.0 - cfg.inset
        if half <= 0:
            raise DegenerateGeometryError(
                f"Inset {cfg.inset:.1f} leaves no tenon across {tf.u.width:.1f}"
            )
        u_planes = (
            _offset_plane(tf.origin, tf.u.axis, half),
            _offset_plane(tf.origin, tf.u.axis, -half),
        )

        if cfg.blind_offset > 0:
            if cfg.blind_offset >= tf.face.width:
                raise DegenerateGeometryError(
                    f"Blind offset {cfg.blind_offset:.1f} exceeds mortise depth "
                    f"{tf.face.width:.1f}"
                )
            back = tf.far.translated(-tf.face.axis * cfg.blind_offset)
            pocket_end = back
        else:
            back = tf.far
            pocket_end = tf.far.translated(tf.face.axis * cfg.added)

        tenon_near = _section_loop(tf.near, u_planes, tf.v_planes)
        tenon_back = _section_loop(back, u_planes, tf.v_planes)
        result.add_body(0, loft_solid(tenon_near, tenon_back))

        outer_u = tf.u.width / 2.0 + cfg.added
        sides = [
            (_offset_plane(tf.origin, tf.u.axis, outer_u), u_planes[0]),
            (u_planes[1], _offset_plane(tf.origin, tf.u.axis, -outer_u)),
        ]
        past_far = tf.far.translated(tf.face.axis * cfg.added)
        for cutter in self.shoulder_cutters(tf, cfg.added, past_far, sides, past_far,
                                            tip=back if cfg.blind_offset > 0 else None):
            result.add(0, cutter)
        result.add(1, _block(tf.near.translated(-tf.face.axis * cfg.added), pocket_end,
                             u_planes, tf.v_planes))

        if cfg.dowel_diameter > 0:
            centre = np.vstack([tenon_near, tenon_back]).mean(axis=0)
            length = tf.mortise_v.width + 2.0 * cfg.added
            result.add_dowel(Dowel.centred(centre, tf.u.other, length, cfg.dowel_diameter),
                             [0, 1])

        result.debug.planes.update({"near": tf.near, "far": tf.far, "back": back})
        result.debug.values.update({
            "tenon_width": 2.0 * half,
            "tenon_thickness": tf.thickness,
            "tenon_length": float((back.origin - tf.near.origin) @ tf.face.axis),
        })


class DovetailTenonJoint(_TenonBase):
    """Sliding dovetail: a flared tail dropped into a pocket open on one face."""
    name = "DovetailTenonJoint"
    config_class = DovetailTenonConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        tf = self.tenon_frame(beams, cfg.tenon_thickness)
        if not 0 < cfg.depth < tf.face.width:
            raise DegenerateGeometryError(
                f"Dovetail depth {cfg.depth:.1f} must lie inside the mortise beam"
            )
        half = tf.u.width / 2.0 - cfg.neck_offset
        if half <= 0:
            raise DegenerateGeometryError(
                f"Neck offset {cfg.neck_offset:.1f} leaves no dovetail neck"
            )
        back = tf.near.translated(tf.face.axis * cfg.depth)

        angle = math.radians(cfg.angle)
        necks = []
        for sign in (1.0, -1.0):
            outward = tf.u.axis * sign
            neck = Plane.from_normal(tf.origin + outward * half, outward)
            pivot, pivot_dir = plane_plane(neck, tf.near)
            # flare so the tail widens going into the mortise beam
            turn = angle if rotate_vector(outward, pivot_dir, angle) @ tf.face.axis < 0 else -angle
            necks.append(rotate_plane(Plane.from_normal(pivot, outward),
                                      pivot, pivot_dir, turn))

        tail = _block(tf.near, back, necks, tf.v_planes)
        result.add_body(0, tail)

        # everything but the tail goes from the near face on
        outer_u = tf.u.width / 2.0 + cfg.added
        sides = [
            (_offset_plane(tf.origin, tf.u.axis, outer_u), necks[0]),
            (necks[1], _offset_plane(tf.origin, tf.u.axis, -outer_u)),
        ]
        past_far = tf.far.translated(tf.face.axis * cfg.added)
        for cutter in self.shoulder_cutters(tf, cfg.added, past_far, sides, back, tip=back):
            result.add(0, cutter)

        # pocket runs out through the mortise face on the tenon's +v side
        v = tf.u.other
        top = Plane.from_normal(
            tf.mortise_origin + tf.mortise_v.axis * (tf.mortise_v.width / 2.0 + cfg.added),
            tf.mortise_v.axis,
        )
        pocket_planes = (top, tf.v_planes[1])
        result.add(1, _block(tf.near.translated(-tf.face.axis * cfg.added), back,
                             necks, pocket_planes))

        if cfg.dowel_diameter > 0:
            centre = tail.vertices.mean(axis=0)
            length = tf.mortise_v.width + 2.0 * cfg.added
            result.add_dowel(Dowel.centred(centre, v, length, cfg.dowel_diameter), [0, 1])

        result.debug.planes.update({
            "near": tf.near, "back": back, "neck_0": necks[0], "neck_1": necks[1],
        })
        result.debug.values.update({
            "neck_width": 2.0 * half,
            "tenon_thickness": tf.thickness,
        })


class ButtJoint(_TenonBase):
    """Plain or housed butt: the tenon beam is cut square at the mortise face
    (or sunk `depth` into a housing) and pinned by dowels along its axis."""
    name = "ButtJoint"
    config_class = ButtConfig

    def build(self, beams, result: JointResult) -> None:
        cfg = self.config
        tf = self.tenon_frame(beams, 0.0)
        if not 0 <= cfg.depth < tf.face.width:
            raise DegenerateGeometryError(
                f"Housing depth {cfg.depth:.1f} must lie inside the mortise beam"
            )
        seat = tf.near.translated(tf.face.axis * cfg.depth)
        size = cutter_extent(self.part_beams(beams), cfg.cutter_size) + cfg.added
        result.add(0, trim_solid(seat, tf.face.axis, size))

        v = tf.u.other
        if cfg.depth > 0:
            u_planes = (_offset_plane(tf.origin, tf.u.axis, tf.u.width / 2.0),
                        _offset_plane(tf.origin, tf.u.axis, -tf.u.width / 2.0))
            v_planes = (_offset_plane(tf.origin, v, tf.u.depth / 2.0),
                        _offset_plane(tf.origin, v, -tf.u.depth / 2.0))
            result.add(1, _block(tf.near.translated(-tf.face.axis * cfg.added), seat,
                                 u_planes, v_planes))

        centre = line_plane(tf.origin, tf.face.axis, seat)
        if cfg.dowel_diameter > 0:
            offsets = [0.0]
            if cfg.dowel_spacing > 0:
                offsets = [cfg.dowel_spacing / 2.0, -cfg.dowel_spacing / 2.0]
            if offsets[0] + cfg.dowel_diameter / 2.0 > tf.u.depth / 2.0:
                raise DegenerateGeometryError(
                    f"Dowel spacing {cfg.dowel_spacing:.1f} does not fit the "
                    f"{tf.u.depth:.1f} section"
                )
            for offset in offsets:
                result.add_dowel(Dowel.centred(centre + v * offset, tf.face.axis,
                                               cfg.dowel_length, cfg.dowel_diameter),
                                 [0, 1])

        result.debug.planes.update({"near": tf.near, "seat": seat})
        result.debug.points["seat_centre"] = centre
        result.debug.values["housing_depth"] = cfg.depth
