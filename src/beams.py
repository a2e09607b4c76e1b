"""
Beam model for joint detection.

A beam is a polyline centreline parametrised by arc length, with a
rectangular cross-section oriented by an "up" hint. Frames follow the glulam
convention: x is the width direction, y the height direction and the normal
the centreline tangent.

Also provides centreline-centreline intersection with a search radius, so
beams that only nearly touch (or run alongside each other) still register.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from geometry_primitives import Plane

logger = logging.getLogger(__name__)

MIN_SEGMENT_LENGTH_MM = 1e-9
DUPLICATE_HIT_TOLERANCE = 1e-6


@dataclass
class Beam:
    """A straight or polyline timber member.

    Attributes:
        centreline: (N, 3) polyline vertices, N >= 2.
        width: Section size along the frame x axis (mm).
        height: Section size along the frame y axis (mm).
        up: Hint for the frame y axis; projected off the tangent.
        name: Optional label for diagnostics.
    """
    centreline: np.ndarray
    width: float
    height: float
    up: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))
    name: str = ""
    _stations: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        pts = np.asarray(self.centreline, dtype=float)
        if pts.ndim != 2 or pts.shape[1] != 3 or len(pts) < 2:
            raise ValueError("Beam centreline needs at least two 3D points")
        seg = np.linalg.norm(np.diff(pts, axis=0), axis=1)
        pts = pts[np.concatenate([[True], seg > MIN_SEGMENT_LENGTH_MM])]
        if len(pts) < 2:
            raise ValueError("Beam centreline has zero length")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Beam section must be positive, got {self.width} x {self.height}"
            )
        self.centreline = pts
        self.up = np.asarray(self.up, dtype=float)
        lengths = np.linalg.norm(np.diff(pts, axis=0), axis=1)
        self._stations = np.concatenate([[0.0], np.cumsum(lengths)])

    @classmethod
    def from_points(cls, start, end, width: float, height: float,
                    up=None, name: str = "") -> "Beam":
        """Straight beam between two points."""
        kwargs = {} if up is None else {"up": up}
        return cls(np.array([start, end], dtype=float), width, height,
                   name=name, **kwargs)

    @property
    def length(self) -> float:
        return float(self._stations[-1])

    @property
    def domain(self) -> Tuple[float, float]:
        return 0.0, self.length

    @property
    def mid_parameter(self) -> float:
        return self.length / 2.0

    @property
    def segment_count(self) -> int:
        return len(self.centreline) - 1

    def segment(self, index: int) -> Tuple[np.ndarray, np.ndarray, float, float]:
        """(start point, end point, start parameter, end parameter) of a segment."""
        return (self.centreline[index], self.centreline[index + 1],
                float(self._stations[index]), float(self._stations[index + 1]))

    def dimension(self, axis_index: int) -> float:
        """Section size along frame x (0) or frame y (1)."""
        return self.width if axis_index == 0 else self.height

    def point_at(self, t: float) -> np.ndarray:
        i, f = self._locate(t)
        p0, p1 = self.centreline[i], self.centreline[i + 1]
        return p0 + (p1 - p0) * f

    def tangent_at(self, t: float) -> np.ndarray:
        i, _ = self._locate(t)
        d = self.centreline[i + 1] - self.centreline[i]
        return d / np.linalg.norm(d)

    def frame_at(self, t: float) -> Plane:
        """Oriented cross-section frame: x = width, y = height, normal = tangent."""
        z = self.tangent_at(t)
        up = self.up - (self.up @ z) * z
        if np.linalg.norm(up) < 1e-6:
            # up hint runs along the beam; fall back to a world axis
            ref = np.array([1.0, 0.0, 0.0]) if abs(z[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
            up = ref - (ref @ z) * z
        y = up / np.linalg.norm(up)
        x = np.cross(y, z)
        return Plane(self.point_at(t), x, y)

    def closest_parameter(self, point) -> float:
        p = np.asarray(point, dtype=float)
        best_t, best_d = 0.0, np.inf
        for i in range(self.segment_count):
            p0, p1, t0, t1 = self.segment(i)
            d = p1 - p0
            f = float(np.clip((p - p0) @ d / (d @ d), 0.0, 1.0))
            dist = float(np.linalg.norm(p0 + d * f - p))
            if dist < best_d:
                best_t, best_d = t0 + (t1 - t0) * f, dist
        return best_t

    def arc_length(self, t0: float, t1: float) -> float:
        """Length of centreline between two parameters."""
        lo, hi = self.domain
        return abs(float(np.clip(t1, lo, hi)) - float(np.clip(t0, lo, hi)))

    def _locate(self, t: float) -> Tuple[int, float]:
        t = float(np.clip(t, 0.0, self.length))
        i = int(np.searchsorted(self._stations, t, side="right")) - 1
        i = min(max(i, 0), self.segment_count - 1)
        t0, t1 = self._stations[i], self._stations[i + 1]
        return i, (t - t0) / (t1 - t0)


@dataclass
class CurveIntersection:
    """One meeting point between two centrelines."""
    parameter_a: float
    parameter_b: float
    point_a: np.ndarray
    point_b: np.ndarray
    overlap: Optional[Tuple[float, float]] = None  # parameter interval on beam a

    @property
    def distance(self) -> float:
        return float(np.linalg.norm(self.point_a - self.point_b))

    @property
    def midpoint(self) -> np.ndarray:
        return (self.point_a + self.point_b) / 2.0


def find_intersections(
    beam_a: Beam,
    beam_b: Beam,
    radius: float,
    overlap_tolerance: float = 1.0,
) -> List[CurveIntersection]:
    """Find where two centrelines meet or pass within radius of each other.

    Args:
        beam_a, beam_b: Beams to test.
        radius: Largest centreline gap still counted as a hit (mm).
        overlap_tolerance: Parallel runs longer than this are reported as
            one overlap hit at the middle of the shared interval.

    Returns:
        Hits ordered by segment pair, with duplicates at shared polyline
        vertices removed.
    """
    hits: List[CurveIntersection] = []
    for i in range(beam_a.segment_count):
        p0, p1, s0, s1 = beam_a.segment(i)
        for j in range(beam_b.segment_count):
            q0, q1, u0, u1 = beam_b.segment(j)
            hit = _segment_hit(p0, p1, q0, q1, radius, overlap_tolerance)
            if hit is None:
                continue
            fa, fb, overlap = hit
            ta = s0 + (s1 - s0) * fa
            tb = u0 + (u1 - u0) * fb
            if any(abs(h.parameter_a - ta) < DUPLICATE_HIT_TOLERANCE
                   and abs(h.parameter_b - tb) < DUPLICATE_HIT_TOLERANCE for h in hits):
                continue
            if overlap is not None:
                overlap = (s0 + (s1 - s0) * overlap[0], s0 + (s1 - s0) * overlap[1])
            hits.append(CurveIntersection(
                parameter_a=ta,
                parameter_b=tb,
                point_a=beam_a.point_at(ta),
                point_b=beam_b.point_at(tb),
                overlap=overlap,
            ))
    return hits


# ─── Segment helpers ─────────────────────────────────────────────────────────

def _segment_hit(p0, p1, q0, q1, radius, overlap_tolerance):
    """Closest approach of two segments as (fraction a, fraction b, overlap).

    Returns None when the segments stay further apart than radius.
    """
    da = p1 - p0
    db = q1 - q0
    la, lb = float(da @ da), float(db @ db)

    if np.linalg.norm(np.cross(da, db)) <= 1e-9 * np.sqrt(la * lb):
        # parallel: look for a shared interval along a
        f_q0 = float((q0 - p0) @ da) / la
        f_q1 = float((q1 - p0) @ da) / la
        lo = max(min(f_q0, f_q1), 0.0)
        hi = min(max(f_q0, f_q1), 1.0)
        if lo <= hi:
            fa = (lo + hi) / 2.0
            pa = p0 + da * fa
            fb = float(np.clip((pa - q0) @ db / lb, 0.0, 1.0))
            if np.linalg.norm(pa - (q0 + db * fb)) > radius:
                return None
            overlap = (lo, hi) if (hi - lo) * np.sqrt(la) > overlap_tolerance else None
            return fa, fb, overlap

    fa, fb = _closest_segment_fractions(p0, da, q0, db)
    if np.linalg.norm((p0 + da * fa) - (q0 + db * fb)) > radius:
        return None
    return fa, fb, None


def _closest_segment_fractions(p0, da, q0, db) -> Tuple[float, float]:
    r = p0 - q0
    a, e = float(da @ da), float(db @ db)
    b, c, f = float(da @ db), float(da @ r), float(db @ r)
    denom = a * e - b * b
    s = float(np.clip((b * f - c * e) / denom, 0.0, 1.0)) if denom > 1e-12 else 0.0
    t = (b * s + f) / e
    if t < 0.0:
        t = 0.0
        s = float(np.clip(-c / a, 0.0, 1.0))
    elif t > 1.0:
        t = 1.0
        s = float(np.clip((b - c) / a, 0.0, 1.0))
    return s, t
