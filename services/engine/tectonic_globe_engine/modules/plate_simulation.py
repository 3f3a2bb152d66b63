from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable

import numpy as np

from ..errors import ConfigurationError, NumericDegeneracyError
from ..utils import row_blocks, timed
from .mesh import Mesh
from .plates import Plate, neighbor_table, partition_points

logger = logging.getLogger(__name__)

CLOSENESS_DOT_THRESHOLD = 0.5
# Rows per dot-product block in the all-pairs passes.
BLOCK_ROWS = 512


@dataclass
class PlatePoint:
    pos: np.ndarray
    nbr_indices: list[int]
    speed: float = 1.0
    plate_id: int = -1


@dataclass
class StepReport:
    step: int
    min_closeness: float
    max_closeness: float
    mean_closeness: float
    mean_abs_speed: float


def rotate_about_axis(vector: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """Rodrigues rotation of ``vector`` around the unit ``axis`` by ``angle`` radians."""
    axis = np.asarray(axis, dtype=np.float64)
    norm = float(np.linalg.norm(axis))
    if norm < 1e-12:
        raise NumericDegeneracyError("rotation axis has zero length")
    k = axis / norm
    v = np.asarray(vector, dtype=np.float64)
    cos_a = np.cos(angle)
    sin_a = np.sin(angle)
    return v * cos_a + np.cross(k, v) * sin_a + k * float(np.dot(k, v)) * (1.0 - cos_a)


def _rotate_rows(positions: np.ndarray, axis: np.ndarray, angles: np.ndarray) -> np.ndarray:
    cos_a = np.cos(angles)[:, None]
    sin_a = np.sin(angles)[:, None]
    k = axis[None, :]
    k_dot_v = positions @ axis
    return positions * cos_a + np.cross(k, positions) * sin_a + k * (k_dot_v[:, None] * (1.0 - cos_a))


def closeness(
    positions: np.ndarray,
    threshold: float = CLOSENESS_DOT_THRESHOLD,
    block_rows: int = BLOCK_ROWS,
) -> np.ndarray:
    """Average clamped dot product of each point against every point (itself included).

    Rows are processed ``block_rows`` at a time, so peak memory is
    ``block_rows x N`` instead of ``N x N``.
    """
    count = positions.shape[0]
    totals = np.zeros(count, dtype=np.float64)
    for rows in row_blocks(count, block_rows):
        dots = positions[rows] @ positions.T
        totals[rows] = np.maximum(dots - threshold, 0.0).sum(axis=1)
    return totals / max(count, 1)


class PlateSimulation:
    def __init__(
        self,
        sim_mesh: Mesh,
        plate_count: int,
        rng: random.Random,
        step_time_limit_s: float | None = None,
    ):
        if not sim_mesh.edges:
            raise ConfigurationError("simulation mesh has no edges")

        neighbors = neighbor_table(sim_mesh)
        self.points: list[PlatePoint] = [
            PlatePoint(pos=vertex.pos.copy(), nbr_indices=neighbors[vert_idx])
            for vert_idx, vertex in enumerate(sim_mesh.vertices)
        ]
        logger.info("splitting world into %d plates", plate_count)
        self.plates: list[Plate] = partition_points(neighbors, plate_count, rng, face_count=len(sim_mesh.faces))
        for plate in self.plates:
            for vert_idx in plate.vertex_indices:
                self.points[vert_idx].speed = plate.speed
                self.points[vert_idx].plate_id = plate.plate_id

        self.initial_edge_length = sim_mesh.edge_length(0)
        self.step_time_limit_s = step_time_limit_s
        self.steps_taken = 0

    def positions(self) -> np.ndarray:
        return np.array([point.pos for point in self.points], dtype=np.float64)

    def speeds(self) -> np.ndarray:
        return np.array([point.speed for point in self.points], dtype=np.float64)

    def plate_ids(self) -> np.ndarray:
        return np.array([point.plate_id for point in self.points], dtype=np.int64)

    def _move_plates(self, positions: np.ndarray, speeds: np.ndarray) -> None:
        for plate in self.plates:
            idx = np.asarray(plate.vertex_indices, dtype=np.int64)
            positions[idx] = _rotate_rows(positions[idx], plate.axis, speeds[idx])

    def step(self) -> StepReport:
        with timed("step", self.step_time_limit_s):
            positions = self.positions()
            speeds = self.speeds()

            self._move_plates(positions, speeds)

            avg_closeness = closeness(positions)
            speeds *= 1.0 - (avg_closeness / self.initial_edge_length)

            for point, pos, speed in zip(self.points, positions, speeds):
                point.pos = pos
                point.speed = float(speed)

        self.steps_taken += 1
        report = StepReport(
            step=self.steps_taken,
            min_closeness=float(avg_closeness.min()),
            max_closeness=float(avg_closeness.max()),
            mean_closeness=float(avg_closeness.mean()),
            mean_abs_speed=float(np.abs(speeds).mean()),
        )
        logger.debug(
            "step %d: closeness %.5f..%.5f, mean |speed| %.5f",
            report.step,
            report.min_closeness,
            report.max_closeness,
            report.mean_abs_speed,
        )
        return report

    def simulate(self, steps: int, on_step: Callable[[StepReport], None] | None = None) -> list[StepReport]:
        if steps < 0:
            raise ConfigurationError(f"step count must not be negative, got {steps}")

        reports: list[StepReport] = []
        for _ in range(steps):
            report = self.step()
            reports.append(report)
            if on_step is not None:
                on_step(report)
        return reports
