from __future__ import annotations

import logging
import math
import operator
from dataclasses import dataclass, field

import numpy as np

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEDUP_EPSILON = 1e-5
MAX_DETAIL_LEVEL = 8

_PHI = (1.0 + math.sqrt(5.0)) / 2.0
_DU = 1.0 / math.sqrt(_PHI * _PHI + 1.0)
_DV = _PHI * _DU

_BASE_VERTICES: tuple[tuple[float, float, float], ...] = (
    (0.0, _DV, _DU),
    (0.0, _DV, -_DU),
    (0.0, -_DV, _DU),
    (0.0, -_DV, -_DU),
    (_DU, 0.0, _DV),
    (-_DU, 0.0, _DV),
    (_DU, 0.0, -_DV),
    (-_DU, 0.0, -_DV),
    (_DV, _DU, 0.0),
    (_DV, -_DU, 0.0),
    (-_DV, _DU, 0.0),
    (-_DV, -_DU, 0.0),
)

_BASE_EDGES: tuple[tuple[int, int], ...] = (
    (0, 1), (0, 4), (0, 5), (0, 8), (0, 10),
    (1, 6), (1, 7), (1, 8), (1, 10), (2, 3),
    (2, 4), (2, 5), (2, 9), (2, 11), (3, 6),
    (3, 7), (3, 9), (3, 11), (4, 5), (4, 8),
    (4, 9), (5, 10), (5, 11), (6, 7), (6, 8),
    (6, 9), (7, 10), (7, 11), (8, 9), (10, 11),
)

# (vertex a, b, c, edge ab, bc, ca)
_BASE_FACES: tuple[tuple[int, int, int, int, int, int], ...] = (
    (0, 1, 8, 0, 7, 3),
    (0, 4, 5, 1, 18, 2),
    (0, 5, 10, 2, 21, 4),
    (0, 8, 4, 3, 19, 1),
    (0, 10, 1, 4, 8, 0),
    (1, 6, 8, 5, 24, 7),
    (1, 7, 6, 6, 23, 5),
    (1, 10, 7, 8, 26, 6),
    (2, 3, 11, 9, 17, 13),
    (2, 4, 9, 10, 20, 12),
    (2, 5, 4, 11, 18, 10),
    (2, 9, 3, 12, 16, 9),
    (2, 11, 5, 13, 22, 11),
    (3, 6, 7, 14, 23, 15),
    (3, 7, 11, 15, 27, 17),
    (3, 9, 6, 16, 25, 14),
    (4, 8, 9, 19, 28, 20),
    (5, 11, 10, 22, 29, 21),
    (6, 9, 8, 25, 28, 24),
    (7, 10, 11, 26, 29, 27),
)


@dataclass
class Vertex:
    pos: np.ndarray
    edge_indices: list[int] = field(default_factory=list)
    face_indices: list[int] = field(default_factory=list)


@dataclass
class Edge:
    vertex_indices: tuple[int, int]
    face_indices: list[int] = field(default_factory=list)

    @property
    def key(self) -> tuple[int, int]:
        a, b = self.vertex_indices
        return (a, b) if a < b else (b, a)

    def other(self, vertex_index: int) -> int:
        a, b = self.vertex_indices
        return b if a == vertex_index else a


@dataclass
class Face:
    vertex_indices: tuple[int, int, int]
    edge_indices: tuple[int, int, int]


@dataclass
class Mesh:
    vertices: list[Vertex] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    faces: list[Face] = field(default_factory=list)

    def positions(self) -> np.ndarray:
        if not self.vertices:
            return np.zeros((0, 3), dtype=np.float64)
        return np.array([vertex.pos for vertex in self.vertices], dtype=np.float64)

    def set_positions(self, positions: np.ndarray) -> None:
        if positions.shape != (len(self.vertices), 3):
            raise ValueError(f"expected positions of shape ({len(self.vertices)}, 3), got {positions.shape}")
        for vertex, pos in zip(self.vertices, positions):
            vertex.pos = np.array(pos, dtype=np.float64)

    def face_index_array(self) -> np.ndarray:
        return np.array([face.vertex_indices for face in self.faces], dtype=np.int64).reshape(-1, 3)

    def vertex_neighbors(self, vertex_index: int) -> list[int]:
        vertex = self.vertices[vertex_index]
        return [self.edges[edge_idx].other(vertex_index) for edge_idx in vertex.edge_indices]

    def edge_length(self, edge_index: int = 0) -> float:
        a, b = self.edges[edge_index].vertex_indices
        return float(np.linalg.norm(self.vertices[a].pos - self.vertices[b].pos))

    def face_positions(self, face_index: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        a, b, c = self.faces[face_index].vertex_indices
        return self.vertices[a].pos, self.vertices[b].pos, self.vertices[c].pos

    def face_centroid(self, face_index: int) -> np.ndarray:
        a, b, c = self.face_positions(face_index)
        return (a + b + c) / 3.0

    def euler_characteristic(self) -> int:
        return len(self.vertices) - len(self.edges) + len(self.faces)

    def copy(self) -> "Mesh":
        return Mesh(
            vertices=[
                Vertex(pos=vertex.pos.copy(), edge_indices=list(vertex.edge_indices), face_indices=list(vertex.face_indices))
                for vertex in self.vertices
            ],
            edges=[Edge(vertex_indices=edge.vertex_indices, face_indices=list(edge.face_indices)) for edge in self.edges],
            faces=[Face(vertex_indices=face.vertex_indices, edge_indices=face.edge_indices) for face in self.faces],
        )


def expected_counts(detail_level: int) -> tuple[int, int, int]:
    """(V, E, F) of an icosphere after ``detail_level`` refinements."""
    scale = 4**detail_level
    return 10 * scale + 2, 30 * scale, 20 * scale


def validate_closed_mesh(mesh: Mesh) -> list[str]:
    issues: list[str] = []
    if mesh.euler_characteristic() != 2:
        issues.append(f"euler characteristic is {mesh.euler_characteristic()}, expected 2")
    for edge_idx, edge in enumerate(mesh.edges):
        if len(edge.face_indices) != 2:
            issues.append(f"edge {edge_idx} has {len(edge.face_indices)} adjacent faces")
    return issues


def _link_adjacency(mesh: Mesh) -> None:
    for edge_idx, edge in enumerate(mesh.edges):
        for vert_idx in edge.vertex_indices:
            mesh.vertices[vert_idx].edge_indices.append(edge_idx)

    for face_idx, face in enumerate(mesh.faces):
        for vert_idx in face.vertex_indices:
            mesh.vertices[vert_idx].face_indices.append(face_idx)
        for edge_idx in face.edge_indices:
            mesh.edges[edge_idx].face_indices.append(face_idx)


def _position_key(pos: np.ndarray) -> tuple[int, int, int]:
    return (
        int(round(float(pos[0]) / DEDUP_EPSILON)),
        int(round(float(pos[1]) / DEDUP_EPSILON)),
        int(round(float(pos[2]) / DEDUP_EPSILON)),
    )


def _normalized(vec: np.ndarray) -> np.ndarray:
    return vec / np.linalg.norm(vec)


def build_base() -> Mesh:
    mesh = Mesh()
    mesh.vertices = [Vertex(pos=_normalized(np.array(coords, dtype=np.float64))) for coords in _BASE_VERTICES]
    mesh.edges = [Edge(vertex_indices=pair) for pair in _BASE_EDGES]
    mesh.faces = [Face(vertex_indices=row[:3], edge_indices=row[3:]) for row in _BASE_FACES]
    _link_adjacency(mesh)
    return mesh


class _MeshBuilder:
    """Accumulates deduplicated vertices and edges while faces are emitted."""

    def __init__(self) -> None:
        self.mesh = Mesh()
        self._vertex_lookup: dict[tuple[int, int, int], int] = {}
        self._edge_lookup: dict[tuple[int, int], int] = {}

    def add_vertex(self, pos: np.ndarray) -> int:
        key = _position_key(pos)
        existing = self._vertex_lookup.get(key)
        if existing is not None:
            return existing
        index = len(self.mesh.vertices)
        self.mesh.vertices.append(Vertex(pos=pos))
        self._vertex_lookup[key] = index
        return index

    def add_edge(self, a: int, b: int) -> int:
        key = (a, b) if a < b else (b, a)
        existing = self._edge_lookup.get(key)
        if existing is not None:
            return existing
        index = len(self.mesh.edges)
        self.mesh.edges.append(Edge(vertex_indices=key))
        self._edge_lookup[key] = index
        return index

    def add_face(self, a: int, b: int, c: int) -> int:
        edges = (self.add_edge(a, b), self.add_edge(b, c), self.add_edge(c, a))
        self.mesh.faces.append(Face(vertex_indices=(a, b, c), edge_indices=edges))
        return len(self.mesh.faces) - 1

    def finish(self) -> Mesh:
        _link_adjacency(self.mesh)
        return self.mesh


def refine(mesh: Mesh) -> Mesh:
    builder = _MeshBuilder()
    # Parent vertices keep their indices.
    for vertex in mesh.vertices:
        builder.add_vertex(vertex.pos.copy())

    for face in mesh.faces:
        a, b, c = face.vertex_indices
        pa, pb, pc = mesh.vertices[a].pos, mesh.vertices[b].pos, mesh.vertices[c].pos

        ab = builder.add_vertex(_normalized((pa + pb) / 2.0))
        bc = builder.add_vertex(_normalized((pb + pc) / 2.0))
        ca = builder.add_vertex(_normalized((pc + pa) / 2.0))

        builder.add_face(a, ab, ca)
        builder.add_face(ab, b, bc)
        builder.add_face(ca, bc, c)
        builder.add_face(ab, bc, ca)

    return builder.finish()


def make_sphere(detail_level: int) -> Mesh:
    if isinstance(detail_level, bool):
        raise ConfigurationError(f"detail level must be an integer, got {detail_level!r}")
    try:
        detail_level = operator.index(detail_level)
    except TypeError as exc:
        raise ConfigurationError(f"detail level must be an integer, got {detail_level!r}") from exc
    if detail_level < 0 or detail_level > MAX_DETAIL_LEVEL:
        raise ConfigurationError(f"detail level must be between 0 and {MAX_DETAIL_LEVEL}, got {detail_level}")

    mesh = build_base()
    for _ in range(detail_level):
        mesh = refine(mesh)

    logger.debug(
        "icosphere level %d: %d vertices, %d edges, %d faces",
        detail_level,
        len(mesh.vertices),
        len(mesh.edges),
        len(mesh.faces),
    )
    return mesh
