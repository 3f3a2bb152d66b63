from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..errors import ConfigurationError, NumericDegeneracyError
from .mesh import Mesh

logger = logging.getLogger(__name__)

AXIS_COMPONENT_RANGE = (0.0001, 1.0)
SPEED_RANGE_RAD = (0.01, 0.1)
HEIGHT_DEVIATION = 0.02

UNCLAIMED = -1


@dataclass
class Plate:
    plate_id: int
    vertex_indices: list[int]
    axis: np.ndarray
    speed: float
    height: float


def random_axis(rng: random.Random) -> np.ndarray:
    axis = np.array([rng.uniform(*AXIS_COMPONENT_RANGE) for _ in range(3)], dtype=np.float64)
    norm = float(np.linalg.norm(axis))
    if norm < 1e-12:
        raise NumericDegeneracyError("random rotation axis has zero length")
    return axis / norm


def neighbor_table(mesh: Mesh) -> list[list[int]]:
    return [mesh.vertex_neighbors(vert_idx) for vert_idx in range(len(mesh.vertices))]


def _check_plate_count(plate_count: int, vertex_count: int, face_count: int) -> None:
    if plate_count < 1:
        raise ConfigurationError(f"plate count must be positive, got {plate_count}")
    if plate_count > face_count:
        raise ConfigurationError(f"cannot split {face_count} faces into {plate_count} plates")
    if plate_count > vertex_count:
        raise ConfigurationError(f"cannot seed {plate_count} plates on {vertex_count} vertices")


def _pick_seeds(rng: random.Random, owner: list[int], plate_count: int) -> list[list[int]]:
    members: list[list[int]] = []
    for plate_idx in range(plate_count):
        while True:
            idx = rng.randrange(len(owner))
            if owner[idx] == UNCLAIMED:
                owner[idx] = plate_idx
                members.append([idx])
                break
    return members


def flood_fill(neighbors: Sequence[Sequence[int]], owner: list[int], members: list[list[int]]) -> int:
    """Grows every plate one ring per round, plates taking turns in index order.

    ``owner`` and ``members`` are updated in place. Returns the number of rounds.
    """
    filled = sum(1 for plate_idx in owner if plate_idx != UNCLAIMED)
    frontiers = [list(points) for points in members]
    rounds = 0

    while filled < len(owner):
        claimed_this_round = 0
        for plate_idx in range(len(members)):
            new_frontier: list[int] = []
            for point_idx in frontiers[plate_idx]:
                for nbr_idx in neighbors[point_idx]:
                    if owner[nbr_idx] == UNCLAIMED:
                        owner[nbr_idx] = plate_idx
                        members[plate_idx].append(nbr_idx)
                        new_frontier.append(nbr_idx)
            frontiers[plate_idx] = new_frontier
            claimed_this_round += len(new_frontier)

        rounds += 1
        if claimed_this_round == 0:
            raise ConfigurationError(f"mesh is not connected: {len(owner) - filled} vertices unreachable from plate seeds")
        filled += claimed_this_round
        logger.debug("flood fill round %d: %d vertices to go", rounds, len(owner) - filled)

    return rounds


def partition_points(
    neighbors: Sequence[Sequence[int]],
    plate_count: int,
    rng: random.Random,
    face_count: int,
) -> list[Plate]:
    _check_plate_count(plate_count, len(neighbors), face_count)

    owner = [UNCLAIMED] * len(neighbors)
    members = _pick_seeds(rng, owner, plate_count)
    rounds = flood_fill(neighbors, owner, members)
    logger.info("split %d vertices into %d plates in %d flood fill rounds", len(neighbors), plate_count, rounds)

    plates: list[Plate] = []
    for plate_idx, vertex_indices in enumerate(members):
        axis = random_axis(rng)
        speed = rng.uniform(*SPEED_RANGE_RAD)
        height = rng.uniform(1.0 - HEIGHT_DEVIATION, 1.0 + HEIGHT_DEVIATION)
        plates.append(Plate(plate_id=plate_idx, vertex_indices=vertex_indices, axis=axis, speed=speed, height=height))
    return plates


def partition(mesh: Mesh, plate_count: int, rng: random.Random) -> list[Plate]:
    return partition_points(neighbor_table(mesh), plate_count, rng, face_count=len(mesh.faces))
