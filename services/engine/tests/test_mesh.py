from __future__ import annotations

import numpy as np
import pytest

from tectonic_globe_engine.errors import ConfigurationError
from tectonic_globe_engine.modules.mesh import (
    DEDUP_EPSILON,
    build_base,
    expected_counts,
    make_sphere,
    refine,
    validate_closed_mesh,
)


def _sorted_positions(mesh) -> np.ndarray:
    positions = np.round(mesh.positions(), 6)
    order = np.lexsort((positions[:, 2], positions[:, 1], positions[:, 0]))
    return positions[order]


def _face_position_set(mesh) -> set[frozenset[tuple[float, ...]]]:
    positions = np.round(mesh.positions(), 6)
    return {frozenset(tuple(positions[idx]) for idx in face.vertex_indices) for face in mesh.faces}


def test_base_icosahedron_shape():
    mesh = build_base()

    assert (len(mesh.vertices), len(mesh.edges), len(mesh.faces)) == (12, 30, 20)
    assert validate_closed_mesh(mesh) == []
    assert np.allclose(np.linalg.norm(mesh.positions(), axis=1), 1.0)
    for vertex in mesh.vertices:
        assert len(vertex.edge_indices) == 5
        assert len(vertex.face_indices) == 5


def test_face_edges_follow_vertex_order():
    for mesh in (build_base(), make_sphere(2)):
        for face in mesh.faces:
            verts = face.vertex_indices
            for slot, edge_idx in enumerate(face.edge_indices):
                expected = tuple(sorted((verts[slot], verts[(slot + 1) % 3])))
                assert mesh.edges[edge_idx].key == expected


@pytest.mark.parametrize("level", [0, 1, 2, 3, 4])
def test_sphere_counts_and_euler(level):
    mesh = make_sphere(level)

    assert (len(mesh.vertices), len(mesh.edges), len(mesh.faces)) == expected_counts(level)
    assert mesh.euler_characteristic() == 2
    assert all(len(edge.face_indices) == 2 for edge in mesh.edges)
    assert np.allclose(np.linalg.norm(mesh.positions(), axis=1), 1.0)


def test_refine_keeps_parent_vertex_indices():
    base = build_base()
    refined = refine(base)

    assert np.array_equal(refined.positions()[: len(base.vertices)], base.positions())


def test_refine_twice_matches_level_two():
    twice = refine(refine(build_base()))
    level_two = make_sphere(2)

    assert np.allclose(_sorted_positions(twice), _sorted_positions(level_two))
    assert _face_position_set(twice) == _face_position_set(level_two)


def test_refine_leaves_no_duplicate_positions():
    mesh = make_sphere(3)
    positions = mesh.positions()

    diffs = positions[:, None, :] - positions[None, :, :]
    distances = np.linalg.norm(diffs, axis=2)
    np.fill_diagonal(distances, np.inf)
    assert distances.min() > DEDUP_EPSILON


def test_winding_is_consistent_after_refine():
    mesh = make_sphere(2)
    positions = mesh.positions()

    signs = set()
    for face in mesh.faces:
        a, b, c = (positions[idx] for idx in face.vertex_indices)
        normal = np.cross(b - a, c - a)
        signs.add(bool(np.dot(normal, a + b + c) > 0.0))
    assert len(signs) == 1


def test_shared_edges_reference_same_edge_object():
    mesh = make_sphere(1)
    for edge_idx, edge in enumerate(mesh.edges):
        left, right = edge.face_indices
        assert edge_idx in mesh.faces[left].edge_indices
        assert edge_idx in mesh.faces[right].edge_indices


@pytest.mark.parametrize("level", [-1, 9, 100])
def test_make_sphere_rejects_out_of_range_levels(level):
    with pytest.raises(ConfigurationError):
        make_sphere(level)


def test_copy_is_independent():
    mesh = make_sphere(1)
    clone = mesh.copy()
    clone.vertices[0].pos *= 2.0

    assert np.isclose(np.linalg.norm(mesh.vertices[0].pos), 1.0)
    assert clone.vertex_neighbors(0) == mesh.vertex_neighbors(0)


def test_make_sphere_accepts_numpy_integer_levels():
    mesh = make_sphere(np.int64(1))

    assert (len(mesh.vertices), len(mesh.edges), len(mesh.faces)) == expected_counts(1)


@pytest.mark.parametrize("level", [1.0, "2", True, None])
def test_make_sphere_rejects_non_integer_levels(level):
    with pytest.raises(ConfigurationError, match="integer"):
        make_sphere(level)
