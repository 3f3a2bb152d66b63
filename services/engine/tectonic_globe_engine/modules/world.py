from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Callable

import numpy as np

from ..models import WorldConfig
from ..utils import seed_from_text, stable_hash, timed
from .heights import HeightStats, apply_heights
from .mesh import Mesh, make_sphere
from .plate_simulation import PlateSimulation, StepReport

logger = logging.getLogger(__name__)


@dataclass
class GeneratedWorld:
    config: WorldConfig
    seed_value: int
    simulation: PlateSimulation
    render_mesh: Mesh
    height_stats: HeightStats
    step_reports: list[StepReport] = field(default_factory=list)

    @property
    def fingerprint(self) -> str:
        return mesh_fingerprint(self.render_mesh)


def elevations(mesh: Mesh) -> np.ndarray:
    return np.linalg.norm(mesh.positions(), axis=1)


def mesh_fingerprint(mesh: Mesh, decimals: int = 9) -> str:
    rounded = np.round(mesh.positions(), decimals).tolist()
    return stable_hash({"positions": rounded, "faces": mesh.face_index_array().tolist()})


def generate_world(
    config: WorldConfig,
    on_step: Callable[[StepReport], None] | None = None,
    step_time_limit_s: float | None = None,
) -> GeneratedWorld:
    seed_value = seed_from_text(config.seed)
    rng = random.Random(seed_value)
    logger.info(
        "generating world seed=%r plates=%d steps=%d sim detail=%d world detail=%d",
        config.seed,
        config.plateCount,
        config.steps,
        config.plateSimDetail,
        config.worldDetail,
    )

    with timed("simulation mesh"):
        sim_mesh = make_sphere(config.plateSimDetail)
    simulation = PlateSimulation(sim_mesh, config.plateCount, rng, step_time_limit_s=step_time_limit_s)
    step_reports = simulation.simulate(config.steps, on_step=on_step)

    with timed("render mesh"):
        render_mesh = make_sphere(config.worldDetail)
    with timed("height mapping"):
        height_stats = apply_heights(render_mesh, simulation, amplitude=config.heightAmplitude)

    return GeneratedWorld(
        config=config,
        seed_value=seed_value,
        simulation=simulation,
        render_mesh=render_mesh,
        height_stats=height_stats,
        step_reports=step_reports,
    )
