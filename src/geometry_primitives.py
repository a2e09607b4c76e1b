"""
Core geometry types for timber joint synthesis.

Planes are an origin plus an orthonormal (x, y) pair with the normal taken as
x cross y, the same convention the beam frames use. This module provides the
plane arithmetic every joint variant is built from (3-plane intersection,
closest-axis selection, interpolation, rotation) and turns ordered corner-point
loops into closed trimesh solids. 2D outlines such as filleted tenon sections
are built with Shapely.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import mapbox_earcut as earcut
import numpy as np
import trimesh
from shapely import affinity
from shapely.geometry import Polygon, box

from joint_errors import DegenerateGeometryError

logger = logging.getLogger(__name__)

# |det| of three unit normals below this means the planes do not meet in a point
PARALLEL_TOLERANCE = 1e-6
MIN_SOLID_VOLUME_MM3 = 1e-6
DOWEL_SECTIONS = 24


@dataclass
class Plane:
    """An oriented plane: origin, in-plane x/y axes and normal = x cross y.

    The y axis is re-orthogonalised against x on construction, so any two
    non-parallel vectors spanning the plane are accepted.
    """
    origin: np.ndarray
    x_axis: np.ndarray
    y_axis: np.ndarray

    def __post_init__(self):
        self.origin = np.asarray(self.origin, dtype=float)
        x = _unit(self.x_axis, "plane x axis")
        y = np.asarray(self.y_axis, dtype=float)
        y = y - (y @ x) * x
        self.x_axis = x
        self.y_axis = _unit(y, "plane y axis")

    @classmethod
    def from_normal(cls, origin, normal) -> "Plane":
        """Plane through origin with the given normal and an arbitrary x axis."""
        n = _unit(normal, "plane normal")
        u, v = _make_2d_basis(n)
        return cls(origin, u, v)

    @property
    def normal(self) -> np.ndarray:
        return np.cross(self.x_axis, self.y_axis)

    def point_at(self, u: float, v: float, w: float = 0.0) -> np.ndarray:
        return self.origin + u * self.x_axis + v * self.y_axis + w * self.normal

    def translated(self, vector) -> "Plane":
        return Plane(self.origin + np.asarray(vector, dtype=float), self.x_axis, self.y_axis)

    def offset(self, distance: float) -> "Plane":
        """Copy moved along the normal."""
        return self.translated(self.normal * distance)

    def flipped(self) -> "Plane":
        """Same plane with the normal reversed (x and y swapped)."""
        return Plane(self.origin, self.y_axis, self.x_axis)

    def signed_distance(self, point) -> float:
        return float((np.asarray(point, dtype=float) - self.origin) @ self.normal)

    def project(self, point) -> np.ndarray:
        p = np.asarray(point, dtype=float)
        return p - self.signed_distance(p) * self.normal

    def to_local(self, points) -> np.ndarray:
        """World points -> (u, v, w) coordinates in this plane."""
        d = np.atleast_2d(np.asarray(points, dtype=float)) - self.origin
        return np.column_stack([d @ self.x_axis, d @ self.y_axis, d @ self.normal])

    def from_local(self, coords) -> np.ndarray:
        """(u, v[, w]) coordinates -> world points."""
        c = np.atleast_2d(np.asarray(coords, dtype=float))
        if c.shape[1] == 2:
            c = np.column_stack([c, np.zeros(len(c))])
        return (self.origin + np.outer(c[:, 0], self.x_axis)
                + np.outer(c[:, 1], self.y_axis) + np.outer(c[:, 2], self.normal))


# ─── Plane arithmetic ────────────────────────────────────────────────────────

def plane_plane_plane(
    a: Plane,
    b: Plane,
    c: Plane,
    tolerance: float = PARALLEL_TOLERANCE,
) -> np.ndarray:
    """Intersect three planes in a single point.

    Raises:
        DegenerateGeometryError: if any two of the planes are (nearly)
            parallel, so the system is ill-conditioned.
    """
    normals = np.vstack([a.normal, b.normal, c.normal])
    det = float(np.linalg.det(normals))
    if abs(det) < tolerance:
        raise DegenerateGeometryError(
            f"Planes do not meet in a point (det={det:.3g})"
        )
    offsets = np.array([
        a.normal @ a.origin,
        b.normal @ b.origin,
        c.normal @ c.origin,
    ])
    return np.linalg.solve(normals, offsets)


def plane_plane(a: Plane, b: Plane) -> Tuple[np.ndarray, np.ndarray]:
    """Intersection line of two planes as (point, unit direction)."""
    direction = np.cross(a.normal, b.normal)
    if np.linalg.norm(direction) < PARALLEL_TOLERANCE:
        raise DegenerateGeometryError("Planes are parallel")
    direction = direction / np.linalg.norm(direction)
    point = plane_plane_plane(a, b, Plane.from_normal(a.origin, direction))
    return point, direction


def line_plane(point, direction, plane: Plane) -> np.ndarray:
    """Intersect the infinite line point + s * direction with a plane."""
    p = np.asarray(point, dtype=float)
    d = np.asarray(direction, dtype=float)
    denom = float(d @ plane.normal)
    if abs(denom) < PARALLEL_TOLERANCE:
        raise DegenerateGeometryError("Line is parallel to plane")
    s = float((plane.origin - p) @ plane.normal) / denom
    return p + s * d


def closest_axis(plane: Plane, vector) -> Tuple[np.ndarray, int]:
    """In-plane axis most aligned with vector, signed to point along it.

    Returns:
        (axis, index) where index is 0 for the x axis and 1 for the y axis.
        Ties go to x.
    """
    v = np.asarray(vector, dtype=float)
    dx = float(plane.x_axis @ v)
    dy = float(plane.y_axis @ v)
    if abs(dx) >= abs(dy):
        return (plane.x_axis if dx >= 0 else -plane.x_axis), 0
    return (plane.y_axis if dy >= 0 else -plane.y_axis), 1


def lerp(a, b, t: float) -> np.ndarray:
    a = np.asarray(a, dtype=float)
    return a + (np.asarray(b, dtype=float) - a) * t


def interpolate_planes(a: Plane, b: Plane, t: float) -> Plane:
    """Blend origin and axes of two planes (t=0 gives a, t=1 gives b)."""
    return Plane(
        lerp(a.origin, b.origin, t),
        lerp(a.x_axis, b.x_axis, t),
        lerp(a.y_axis, b.y_axis, t),
    )


def rotate_vector(vector, axis, angle_rad: float) -> np.ndarray:
    """Rodrigues rotation of vector about a unit axis."""
    v = np.asarray(vector, dtype=float)
    k = _unit(axis, "rotation axis")
    cos_a, sin_a = math.cos(angle_rad), math.sin(angle_rad)
    return v * cos_a + np.cross(k, v) * sin_a + k * (k @ v) * (1.0 - cos_a)


def rotate_plane(plane: Plane, axis_point, axis_direction, angle_rad: float) -> Plane:
    """Rotate a plane about the line axis_point + s * axis_direction."""
    p = np.asarray(axis_point, dtype=float)
    origin = p + rotate_vector(plane.origin - p, axis_direction, angle_rad)
    return Plane(
        origin,
        rotate_vector(plane.x_axis, axis_direction, angle_rad),
        rotate_vector(plane.y_axis, axis_direction, angle_rad),
    )


def closest_points_on_lines(p0, d0, p1, d1) -> Tuple[np.ndarray, np.ndarray]:
    """Closest points between two infinite lines.

    Parallel lines fall back to p0 and its projection onto the second line.
    """
    p0 = np.asarray(p0, dtype=float)
    p1 = np.asarray(p1, dtype=float)
    d0 = np.asarray(d0, dtype=float)
    d1 = np.asarray(d1, dtype=float)
    w0 = p0 - p1
    a, b, c = d0 @ d0, d0 @ d1, d1 @ d1
    d, e = d0 @ w0, d1 @ w0
    denom = a * c - b * b
    if denom < 1e-12 * max(a * c, 1e-12):
        return p0, p1 + d1 * (e / c)
    s = (b * e - c * d) / denom
    t = (a * e - b * d) / denom
    return p0 + s * d0, p1 + t * d1


def sort_vectors_around(normal, vectors: Sequence[np.ndarray]) -> List[int]:
    """Indices of vectors ordered counter-clockwise about normal."""
    u, v = _make_2d_basis(_unit(normal, "sort normal"))
    angles = []
    for i, vec in enumerate(vectors):
        a = math.atan2(float(vec @ v), float(vec @ u)) % (2.0 * math.pi)
        angles.append((a, i))
    return [i for _, i in sorted(angles)]


# ─── Solids ──────────────────────────────────────────────────────────────────

def loft_solid(loop_a, loop_b) -> trimesh.Trimesh:
    """Closed solid between two corner-point loops of equal length.

    Vertex i of loop_a connects to vertex i of loop_b. Each loop is capped
    with an ear-clipped triangulation, so loops may be non-convex but must be
    simple and free of repeated or collinear vertices.

    Raises:
        DegenerateGeometryError: if the loops cannot be capped or the result
            is not a closed solid with positive volume.
    """
    a = np.asarray(loop_a, dtype=float)
    b = np.asarray(loop_b, dtype=float)
    if a.ndim != 2 or a.shape[1] != 3 or len(a) < 3:
        raise DegenerateGeometryError("Loft loop needs at least 3 points")
    if a.shape != b.shape:
        raise DegenerateGeometryError(
            f"Loft loops differ in length ({len(a)} vs {len(b)})"
        )

    n = len(a)
    idx = np.arange(n)
    nxt = (idx + 1) % n
    # caps wound against / along the loop so every edge is shared in opposite
    # directions by its two faces
    faces = np.vstack([
        _triangulate_cap(a)[:, ::-1],
        _triangulate_cap(b) + n,
        np.column_stack([idx, nxt, nxt + n]),
        np.column_stack([idx, nxt + n, idx + n]),
    ])
    mesh = trimesh.Trimesh(vertices=np.vstack([a, b]), faces=faces, process=False)
    if mesh.volume < 0:
        mesh.invert()

    issues = validate_solid(mesh)
    if issues:
        raise DegenerateGeometryError("; ".join(issues))
    return mesh


def prism_solid(loop, start_vector, end_vector) -> trimesh.Trimesh:
    """Sweep a loop between two translations of itself."""
    pts = np.asarray(loop, dtype=float)
    return loft_solid(
        pts + np.asarray(start_vector, dtype=float),
        pts + np.asarray(end_vector, dtype=float),
    )


def plane_box(
    plane: Plane,
    half_x: float,
    half_y: float,
    w_start: float,
    w_end: float,
) -> trimesh.Trimesh:
    """Box spanning +-half_x, +-half_y in the plane and w_start..w_end along its normal."""
    loop = plane.from_local([
        (half_x, half_y),
        (-half_x, half_y),
        (-half_x, -half_y),
        (half_x, -half_y),
    ])
    n = plane.normal
    return prism_solid(loop, n * w_start, n * w_end)


def dowel_solid(start, axis, length: float, diameter: float) -> trimesh.Trimesh:
    """Cylinder of the given diameter from start along axis."""
    if length <= 0 or diameter <= 0:
        raise DegenerateGeometryError(
            f"Dowel needs positive size (length={length}, diameter={diameter})"
        )
    p0 = np.asarray(start, dtype=float)
    p1 = p0 + _unit(axis, "dowel axis") * length
    return trimesh.creation.cylinder(
        radius=diameter / 2.0,
        segment=np.vstack([p0, p1]),
        sections=DOWEL_SECTIONS,
    )


def filleted_rectangle(
    width: float,
    height: float,
    radius: float,
    quad_segs: int = 4,
) -> Polygon:
    """Rectangle centred on the origin with its corners rounded by radius."""
    if width <= 0 or height <= 0:
        raise DegenerateGeometryError(
            f"Outline needs positive size ({width} x {height})"
        )
    outline = box(-width / 2, -height / 2, width / 2, height / 2)
    if radius <= 0:
        return outline
    if radius * 2 >= min(width, height):
        raise DegenerateGeometryError(
            f"Fillet radius {radius} too large for {width} x {height} outline"
        )
    core = outline.buffer(-radius, join_style="mitre")
    return core.buffer(radius, quad_segs=quad_segs, join_style="round")


def scaled_outline(outline: Polygon, sx: float, sy: float) -> Polygon:
    """Scale about the origin, keeping vertex order so scaled copies can be lofted."""
    return affinity.scale(outline, xfact=sx, yfact=sy, origin=(0, 0))


def outline_loop(outline: Polygon, plane: Plane) -> np.ndarray:
    """Place a 2D outline's exterior ring (without closing point) on a plane."""
    coords = np.asarray(outline.exterior.coords, dtype=float)[:-1]
    return plane.from_local(coords)


def validate_solid(mesh: trimesh.Trimesh) -> List[str]:
    """Check that a mesh is a usable cutting solid.

    Returns list of issue strings (empty = ok).
    """
    issues = []
    if len(mesh.faces) == 0:
        return ["Solid has no faces"]
    if not np.all(np.isfinite(mesh.vertices)):
        issues.append("Solid has non-finite vertices")
    if not mesh.is_watertight:
        issues.append("Solid is not closed")
    volume = abs(float(mesh.volume))
    if volume < MIN_SOLID_VOLUME_MM3:
        issues.append(f"Solid volume too small: {volume:.3g} mm3")
    return issues


def newell_normal(loop) -> np.ndarray:
    """Unit normal of a (possibly non-planar, non-convex) point loop."""
    pts = np.asarray(loop, dtype=float)
    nxt = np.roll(pts, -1, axis=0)
    normal = np.cross(pts, nxt).sum(axis=0)
    length = np.linalg.norm(normal)
    if length < PARALLEL_TOLERANCE:
        raise DegenerateGeometryError("Loop has zero area")
    return normal / length


# ─── Internal helpers ────────────────────────────────────────────────────────

def _triangulate_cap(loop: np.ndarray) -> np.ndarray:
    """Ear-clip a 3D loop; triangles are wound in loop order."""
    u, v = _make_2d_basis(newell_normal(loop))
    pts = np.column_stack([loop @ u, loop @ v])
    rings = np.array([len(pts)], dtype=np.uint32)
    tris = np.asarray(earcut.triangulate_float64(pts, rings), dtype=np.int64).reshape(-1, 3)
    if len(tris) != len(loop) - 2:
        raise DegenerateGeometryError(
            f"Cap triangulation produced {len(tris)} triangles for {len(loop)} points"
        )
    p = pts[tris]
    e1 = p[:, 1] - p[:, 0]
    e2 = p[:, 2] - p[:, 0]
    flip = (e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0]) < 0
    tris[flip] = tris[flip][:, ::-1]
    return tris


def _unit(vector, what: str = "vector") -> np.ndarray:
    v = np.asarray(vector, dtype=float)
    length = float(np.linalg.norm(v))
    if length < 1e-12:
        raise DegenerateGeometryError(f"Zero-length {what}")
    return v / length


def _make_2d_basis(normal: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Build an orthonormal (u, v) basis perpendicular to normal."""
    n = normal / np.linalg.norm(normal)
    if abs(n[2]) < 0.9:
        ref = np.array([0.0, 0.0, 1.0])
    else:
        ref = np.array([1.0, 0.0, 0.0])
    u = np.cross(n, ref)
    u /= np.linalg.norm(u)
    v = np.cross(n, u)
    v /= np.linalg.norm(v)
    return u, v
