from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from ..errors import GeometryError
from .mesh import Mesh

PARALLEL_EPSILON = 1e-12


class PlaneSide(str, Enum):
    above = "above"
    on = "on"
    below = "below"


def _vec(values: Sequence[float] | np.ndarray) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"expected a 3-vector, got shape {arr.shape}")
    return arr


@dataclass(frozen=True)
class Ray:
    origin: np.ndarray
    direction: np.ndarray

    def __post_init__(self) -> None:
        direction = _vec(self.direction)
        norm = float(np.linalg.norm(direction))
        if norm < PARALLEL_EPSILON:
            raise GeometryError("ray direction has zero length")
        object.__setattr__(self, "origin", _vec(self.origin))
        object.__setattr__(self, "direction", direction / norm)

    @classmethod
    def towards_center(cls, position: Sequence[float] | np.ndarray) -> "Ray":
        origin = _vec(position)
        return cls(origin=origin, direction=-origin)

    def at(self, t: float) -> np.ndarray:
        return self.origin + self.direction * t


@dataclass(frozen=True)
class Plane:
    normal: np.ndarray
    d: float

    @classmethod
    def from_points(cls, a: np.ndarray, b: np.ndarray, c: np.ndarray) -> "Plane":
        normal = np.cross(b - a, c - a)
        norm = float(np.linalg.norm(normal))
        if norm < PARALLEL_EPSILON:
            raise GeometryError("plane points are collinear")
        normal = normal / norm
        return cls(normal=normal, d=-float(np.dot(normal, a)))

    def flipped(self) -> "Plane":
        return Plane(normal=-self.normal, d=-self.d)

    def oriented_towards(self, point: np.ndarray) -> "Plane":
        """Same plane, with ``point`` on its non-negative side."""
        return self.flipped() if self.signed_distance(point) < 0.0 else self

    def signed_distance(self, point: np.ndarray) -> float:
        return float(np.dot(self.normal, point)) + self.d

    def side(self, point: np.ndarray) -> PlaneSide:
        dist = self.signed_distance(point)
        if dist > 0.0:
            return PlaneSide.above
        if dist < 0.0:
            return PlaneSide.below
        return PlaneSide.on

    def intersect(self, ray: Ray) -> tuple[np.ndarray, float]:
        denom = float(np.dot(ray.direction, self.normal))
        if abs(denom) < PARALLEL_EPSILON:
            raise GeometryError("ray is parallel to plane")
        t = -(float(np.dot(ray.origin, self.normal)) + self.d) / denom
        return ray.at(t), t


def intersection_distance(ray: Ray, a: np.ndarray, b: np.ndarray, c: np.ndarray) -> float | None:
    """Ray parameter of the hit on triangle ``abc``, or None when it misses."""
    try:
        plane = Plane.from_points(a, b, c)
        # Face planes point away from the sphere centre.
        if float(np.dot(plane.normal, a + b + c)) < 0.0:
            plane = plane.flipped()
        point, t = plane.intersect(ray)
        edge_planes = (
            Plane.from_points(ray.origin, a, b).oriented_towards(c),
            Plane.from_points(ray.origin, b, c).oriented_towards(a),
            Plane.from_points(ray.origin, c, a).oriented_towards(b),
        )
    except GeometryError:
        return None

    if t <= 0.0:
        return None
    if any(edge_plane.side(point) == PlaneSide.below for edge_plane in edge_planes):
        return None
    return t


def pick(mesh: Mesh, ray: Ray) -> int | None:
    nearest: tuple[int, float] | None = None

    for face_idx in range(len(mesh.faces)):
        dist = intersection_distance(ray, *mesh.face_positions(face_idx))
        if dist is None:
            continue
        if nearest is None or dist < nearest[1]:
            nearest = (face_idx, dist)

    return nearest[0] if nearest is not None else None
