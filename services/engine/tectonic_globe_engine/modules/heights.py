from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from ..errors import ConfigurationError, NumericDegeneracyError
from ..utils import row_blocks
from .mesh import Mesh
from .plate_simulation import BLOCK_ROWS, PlateSimulation

logger = logging.getLogger(__name__)

DENSITY_DOT_THRESHOLD = 0.1
FLAT_RANGE_EPSILON = 1e-9


@dataclass
class HeightStats:
    min_delta: float
    max_delta: float
    min_radius: float
    max_radius: float
    flat: bool = False


def convergence_density(
    render_positions: np.ndarray,
    sim_positions: np.ndarray,
    block_rows: int = BLOCK_ROWS,
) -> np.ndarray:
    """Mean dot product of each render vertex against the sim points above the threshold."""
    count = render_positions.shape[0]
    totals = np.zeros(count, dtype=np.float64)
    counts = np.zeros(count, dtype=np.int64)
    for rows in row_blocks(count, block_rows):
        dots = render_positions[rows] @ sim_positions.T
        mask = dots > DENSITY_DOT_THRESHOLD
        counts[rows] = mask.sum(axis=1)
        totals[rows] = np.where(mask, dots, 0.0).sum(axis=1)

    empty = np.flatnonzero(counts == 0)
    if empty.size:
        raise NumericDegeneracyError(
            f"render vertex {int(empty[0])} has no simulation points within the density threshold"
        )

    return totals / counts


def apply_heights(render_mesh: Mesh, plate_sim: PlateSimulation, amplitude: float = 1.0) -> HeightStats:
    if not 0.0 < amplitude <= 1.0:
        raise ConfigurationError(f"height amplitude must be in (0, 1], got {amplitude}")

    positions = render_mesh.positions()
    deltas = convergence_density(positions, plate_sim.positions())

    min_delta = float(deltas.min())
    max_delta = float(deltas.max())
    spread = max_delta - min_delta

    if spread < FLAT_RANGE_EPSILON:
        logger.warning("convergence density is flat (%.3g); leaving radii unchanged", spread)
        radii = np.linalg.norm(positions, axis=1)
        return HeightStats(
            min_delta=min_delta,
            max_delta=max_delta,
            min_radius=float(radii.min()),
            max_radius=float(radii.max()),
            flat=True,
        )

    half = (min_delta + max_delta) / 2.0
    factor = 2.0 / spread
    scale = 1.0 + (deltas - half) * factor * amplitude
    # Rounding can push the extremes a hair outside [-1, 1] before scaling.
    scale = np.clip(scale, 1.0 - amplitude, 1.0 + amplitude)

    render_mesh.set_positions(positions * scale[:, None])

    radii = np.linalg.norm(render_mesh.positions(), axis=1)
    stats = HeightStats(
        min_delta=min_delta,
        max_delta=max_delta,
        min_radius=float(radii.min()),
        max_radius=float(radii.max()),
    )
    logger.info("applied heights: radius %.4f..%.4f", stats.min_radius, stats.max_radius)
    return stats
