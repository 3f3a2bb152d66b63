from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from .modules.mesh import MAX_DETAIL_LEVEL, expected_counts


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


Vector3 = tuple[float, float, float]


class WorldConfig(BaseModel):
    seed: str = "42"
    plateSimDetail: int = 2
    worldDetail: int = 3
    plateCount: int = 10
    steps: int = 5
    heightAmplitude: float = 1.0

    @model_validator(mode="after")
    def validate_ranges(self) -> "WorldConfig":
        for name in ("plateSimDetail", "worldDetail"):
            level = getattr(self, name)
            if level < 0 or level > MAX_DETAIL_LEVEL:
                raise ValueError(f"{name} must be between 0 and {MAX_DETAIL_LEVEL}")
        if self.plateCount < 1:
            raise ValueError("plateCount must be positive")
        vertex_count, _, face_count = expected_counts(self.plateSimDetail)
        if self.plateCount > face_count:
            raise ValueError(f"plateCount {self.plateCount} exceeds the {face_count} faces of the simulation mesh")
        if self.plateCount > vertex_count:
            raise ValueError(f"plateCount {self.plateCount} exceeds the {vertex_count} vertices of the simulation mesh")
        if self.steps < 0:
            raise ValueError("steps must not be negative")
        if not 0.0 < self.heightAmplitude <= 1.0:
            raise ValueError("heightAmplitude must be in (0, 1]")
        return self


class WorldStatus(str, Enum):
    pending = "pending"
    generating = "generating"
    ready = "ready"
    failed = "failed"


class WorldSummary(BaseModel):
    worldId: str
    name: str
    config: WorldConfig
    createdAt: str = Field(default_factory=utc_now_iso)
    status: WorldStatus = WorldStatus.pending
    seedValue: int | None = None
    vertexCount: int = 0
    faceCount: int = 0
    stepsTaken: int = 0
    minRadius: float | None = None
    maxRadius: float | None = None
    fingerprint: str | None = None
    error: str | None = None


class WorldCreateRequest(BaseModel):
    name: str = Field(default="Untitled World")
    config: WorldConfig = Field(default_factory=WorldConfig)


class PlateSummary(BaseModel):
    plateId: int
    vertexCount: int
    axis: Vector3
    speed: float
    meanPointSpeed: float
    heightBias: float


class RayModel(BaseModel):
    origin: Vector3
    direction: Vector3


class PickRequest(BaseModel):
    ray: RayModel | None = None
    cameraPosition: Vector3 | None = None

    @model_validator(mode="after")
    def validate_source(self) -> "PickRequest":
        if (self.ray is None) == (self.cameraPosition is None):
            raise ValueError("exactly one of ray or cameraPosition is required")
        return self


class PickResponse(BaseModel):
    worldId: str
    faceId: int | None = None


class MeshPayload(BaseModel):
    worldId: str
    colorBy: Literal["height", "plate"]
    positions: list[Vector3] = Field(default_factory=list)
    faces: list[tuple[int, int, int]] = Field(default_factory=list)
    faceColors: list[tuple[float, float, float, float]] = Field(default_factory=list)
    faceIds: list[int] = Field(default_factory=list)


class JobStatus(str, Enum):
    queued = "queued"
    running = "running"
    completed = "completed"
    failed = "failed"
    canceled = "canceled"


class JobSummary(BaseModel):
    jobId: str
    worldId: str
    kind: str
    status: JobStatus
    progress: float = Field(ge=0.0, le=1.0)
    message: str
    error: str | None = None
