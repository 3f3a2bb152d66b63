from __future__ import annotations

import asyncio
import json
from typing import AsyncGenerator, Literal

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from .errors import GeometryError
from .job_manager import FINISHED_STATUSES, JobContext, JobManager
from .logging_config import setup_logging
from .models import (
    JobSummary,
    MeshPayload,
    PickRequest,
    PickResponse,
    PlateSummary,
    WorldCreateRequest,
    WorldStatus,
    WorldSummary,
)
from .settings import Settings, load_settings
from .world_service import WorldService


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level, settings.log_file)
    worlds = WorldService(settings)
    jobs = JobManager(max_workers=settings.max_workers)

    app = FastAPI(title="Tectonic Globe Engine", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.worlds = worlds
    app.state.jobs = jobs

    def require_world(world_id: str) -> WorldSummary:
        world = worlds.get_world(world_id)
        if world is None:
            raise HTTPException(status_code=404, detail="world not found")
        return world

    def require_ready(world_id: str) -> WorldSummary:
        world = require_world(world_id)
        if world.status != WorldStatus.ready or not worlds.is_ready(world_id):
            raise HTTPException(status_code=409, detail="world has not been generated")
        return world

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/worlds", response_model=WorldSummary)
    def create_world(request: WorldCreateRequest) -> WorldSummary:
        return worlds.create_world(request.name, request.config)

    @app.get("/v1/worlds/{world_id}", response_model=WorldSummary)
    def get_world(world_id: str) -> WorldSummary:
        return require_world(world_id)

    @app.post("/v1/worlds/{world_id}/generate", response_model=JobSummary)
    def generate_world(world_id: str) -> JobSummary:
        world = require_world(world_id)
        if world.status == WorldStatus.generating:
            raise HTTPException(status_code=409, detail="world is already generating")

        job = jobs.create_job(world_id, "generate", message=f"queued world {world.name}")
        if job is None:
            raise HTTPException(status_code=409, detail="world already has an active job")

        def run(context: JobContext) -> None:
            worlds.generate_world(world_id, job_callback=context.report, is_canceled=context.canceled)

        jobs.submit(job.jobId, run)
        latest = jobs.get_job(job.jobId)
        if latest is None:
            raise HTTPException(status_code=500, detail="job not available")
        return latest

    @app.get("/v1/worlds/{world_id}/mesh", response_model=MeshPayload)
    def get_mesh(world_id: str, colorBy: Literal["height", "plate"] = "height") -> MeshPayload:
        require_ready(world_id)
        return worlds.get_mesh_payload(world_id, color_by=colorBy)

    @app.get("/v1/worlds/{world_id}/plates", response_model=list[PlateSummary])
    def list_plates(world_id: str) -> list[PlateSummary]:
        require_ready(world_id)
        return worlds.list_plates(world_id)

    @app.post("/v1/worlds/{world_id}/pick", response_model=PickResponse)
    def pick_face(world_id: str, request: PickRequest) -> PickResponse:
        require_ready(world_id)
        try:
            return worlds.pick_face(world_id, request)
        except GeometryError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.get("/v1/jobs/{job_id}", response_model=JobSummary)
    def get_job(job_id: str) -> JobSummary:
        job = jobs.get_job(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="job not found")
        return job

    @app.post("/v1/jobs/{job_id}/cancel", response_model=JobSummary)
    def cancel_job(job_id: str) -> JobSummary:
        ok = jobs.cancel(job_id)
        if not ok:
            raise HTTPException(status_code=404, detail="job not found")
        job = jobs.get_job(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="job not found")
        return job

    @app.get("/v1/jobs/{job_id}/events")
    async def stream_job(job_id: str) -> StreamingResponse:
        job = jobs.get_job(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="job not found")

        async def event_gen() -> AsyncGenerator[str, None]:
            last_version = -1
            while True:
                current = jobs.get_job(job_id)
                if current is None:
                    yield "event: error\ndata: {\"message\":\"job not found\"}\n\n"
                    return
                version = jobs.job_version(job_id)
                if version != last_version:
                    last_version = version
                    payload = current.model_dump(mode="json")
                    yield f"event: update\ndata: {json.dumps(payload)}\n\n"
                if current.status in FINISHED_STATUSES:
                    return
                await asyncio.sleep(0.4)

        return StreamingResponse(event_gen(), media_type="text/event-stream")

    return app
