from __future__ import annotations

import numpy as np
import pytest

from tectonic_globe_engine.errors import GeometryError
from tectonic_globe_engine.modules.mesh import build_base, make_sphere
from tectonic_globe_engine.modules.picking import (
    Plane,
    PlaneSide,
    Ray,
    intersection_distance,
    pick,
)


def _ray_through_centroid(mesh, face_idx: int, distance: float = 3.0) -> Ray:
    centroid = mesh.face_centroid(face_idx)
    direction = centroid / np.linalg.norm(centroid)
    return Ray.towards_center(direction * distance)


def test_ray_through_face_zero_centroid_picks_face_zero():
    mesh = build_base()

    assert pick(mesh, _ray_through_centroid(mesh, 0)) == 0


@pytest.mark.parametrize("face_idx", [0, 7, 19, 55, 230])
def test_centroid_rays_pick_their_face_on_refined_sphere(face_idx):
    mesh = make_sphere(2)

    assert pick(mesh, _ray_through_centroid(mesh, face_idx)) == face_idx


def test_ray_pointing_away_misses():
    mesh = build_base()
    centroid = mesh.face_centroid(0)
    ray = Ray(origin=centroid * 3.0, direction=centroid)

    assert pick(mesh, ray) is None


def test_ray_missing_the_sphere_returns_none():
    mesh = make_sphere(1)
    ray = Ray(origin=np.array([0.0, 5.0, 5.0]), direction=np.array([1.0, 0.0, 0.0]))

    assert pick(mesh, ray) is None


def test_nearest_face_wins_over_back_face():
    mesh = make_sphere(1)
    ray = _ray_through_centroid(mesh, 3)
    back = pick(mesh, Ray(origin=-ray.origin, direction=-ray.direction))

    assert pick(mesh, ray) == 3
    assert back is not None and back != 3


def test_plane_sides():
    plane = Plane.from_points(np.array([0.0, 0.0, 0.0]), np.array([1.0, 0.0, 0.0]), np.array([0.0, 1.0, 0.0]))

    assert plane.side(np.array([0.0, 0.0, 1.0])) == PlaneSide.above
    assert plane.side(np.array([0.0, 0.0, -1.0])) == PlaneSide.below
    assert plane.side(np.array([0.3, 0.3, 0.0])) == PlaneSide.on


def test_parallel_ray_raises_on_plane_and_misses_triangle():
    a = np.array([0.0, 0.0, 1.0])
    b = np.array([1.0, 0.0, 1.0])
    c = np.array([0.0, 1.0, 1.0])
    ray = Ray(origin=np.array([0.0, 0.0, 2.0]), direction=np.array([1.0, 0.0, 0.0]))

    with pytest.raises(GeometryError):
        Plane.from_points(a, b, c).intersect(ray)
    assert intersection_distance(ray, a, b, c) is None


def test_intersection_distance_along_ray():
    a = np.array([-1.0, -1.0, 0.0])
    b = np.array([1.0, -1.0, 0.0])
    c = np.array([0.0, 1.0, 0.0])
    ray = Ray(origin=np.array([0.0, 0.0, 4.0]), direction=np.array([0.0, 0.0, -2.0]))

    assert intersection_distance(ray, a, b, c) == pytest.approx(4.0)


def test_zero_direction_is_rejected():
    with pytest.raises(GeometryError):
        Ray(origin=np.array([1.0, 0.0, 0.0]), direction=np.array([0.0, 0.0, 0.0]))
    with pytest.raises(GeometryError):
        Ray.towards_center(np.array([0.0, 0.0, 0.0]))
