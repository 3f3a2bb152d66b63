from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, Literal

import numpy as np

from .models import (
    MeshPayload,
    PickRequest,
    PickResponse,
    PlateSummary,
    WorldConfig,
    WorldStatus,
    WorldSummary,
)
from .modules.picking import Ray, pick
from .modules.plate_simulation import StepReport
from .modules.render_payload import build_mesh_payload
from .modules.world import GeneratedWorld, generate_world
from .settings import Settings

logger = logging.getLogger(__name__)

# Fraction of job progress spent in the simulation loop; the rest is meshing and heights.
SIMULATION_PROGRESS_SHARE = 0.8


@dataclass
class WorldRecord:
    summary: WorldSummary
    world: GeneratedWorld | None = None


class WorldService:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._records: dict[str, WorldRecord] = {}
        self._lock = threading.Lock()

    def create_world(self, name: str, config: WorldConfig, world_id: str | None = None) -> WorldSummary:
        world_id = world_id or str(uuid.uuid4())
        summary = WorldSummary(worldId=world_id, name=name, config=config)
        with self._lock:
            self._records[world_id] = WorldRecord(summary=summary)
        return summary.model_copy()

    def get_world(self, world_id: str) -> WorldSummary | None:
        with self._lock:
            record = self._records.get(world_id)
            return record.summary.model_copy() if record is not None else None

    def _update_summary(self, world_id: str, **changes) -> None:
        with self._lock:
            record = self._records[world_id]
            record.summary = record.summary.model_copy(update=changes)

    def _generated(self, world_id: str) -> GeneratedWorld:
        with self._lock:
            record = self._records.get(world_id)
            if record is None:
                raise ValueError(f"world {world_id} not found")
            if record.world is None:
                raise ValueError(f"world {world_id} has not been generated")
            return record.world

    def is_ready(self, world_id: str) -> bool:
        with self._lock:
            record = self._records.get(world_id)
            return record is not None and record.world is not None

    def generate_world(
        self,
        world_id: str,
        job_callback: Callable[[float, str], None],
        is_canceled: Callable[[], bool],
    ) -> str:
        summary = self.get_world(world_id)
        if summary is None:
            raise ValueError(f"world {world_id} not found")

        config = summary.config
        self._update_summary(world_id, status=WorldStatus.generating, error=None)
        job_callback(0.02, "building simulation mesh")

        def on_step(report: StepReport) -> None:
            if is_canceled():
                raise RuntimeError("job canceled")
            fraction = report.step / max(1, config.steps)
            job_callback(SIMULATION_PROGRESS_SHARE * fraction, f"simulated step {report.step}/{config.steps}")

        try:
            world = generate_world(config, on_step=on_step, step_time_limit_s=self.settings.step_time_limit_s)
        except Exception as exc:
            if is_canceled():
                self._update_summary(world_id, status=WorldStatus.pending)
            else:
                self._update_summary(world_id, status=WorldStatus.failed, error=str(exc))
            raise

        if is_canceled():
            self._update_summary(world_id, status=WorldStatus.pending)
            raise RuntimeError("job canceled")

        fingerprint = world.fingerprint
        with self._lock:
            record = self._records[world_id]
            record.world = world
            record.summary = record.summary.model_copy(
                update={
                    "status": WorldStatus.ready,
                    "seedValue": world.seed_value,
                    "vertexCount": len(world.render_mesh.vertices),
                    "faceCount": len(world.render_mesh.faces),
                    "stepsTaken": world.simulation.steps_taken,
                    "minRadius": world.height_stats.min_radius,
                    "maxRadius": world.height_stats.max_radius,
                    "fingerprint": fingerprint,
                }
            )
        job_callback(1.0, f"world {world_id} ready")
        logger.info("world %s ready (%s)", world_id, fingerprint[:12])
        return fingerprint

    def get_mesh_payload(self, world_id: str, color_by: Literal["height", "plate"] = "height") -> MeshPayload:
        return build_mesh_payload(world_id, self._generated(world_id), color_by=color_by)

    def list_plates(self, world_id: str) -> list[PlateSummary]:
        simulation = self._generated(world_id).simulation
        speeds = simulation.speeds()
        plates: list[PlateSummary] = []
        for plate in simulation.plates:
            member_speeds = speeds[np.asarray(plate.vertex_indices, dtype=np.int64)]
            plates.append(
                PlateSummary(
                    plateId=plate.plate_id,
                    vertexCount=len(plate.vertex_indices),
                    axis=tuple(float(c) for c in plate.axis),
                    speed=plate.speed,
                    meanPointSpeed=float(member_speeds.mean()),
                    heightBias=plate.height,
                )
            )
        return plates

    def pick_face(self, world_id: str, request: PickRequest) -> PickResponse:
        world = self._generated(world_id)
        if request.ray is not None:
            ray = Ray(origin=np.array(request.ray.origin), direction=np.array(request.ray.direction))
        else:
            ray = Ray.towards_center(np.array(request.cameraPosition))
        return PickResponse(worldId=world_id, faceId=pick(world.render_mesh, ray))
