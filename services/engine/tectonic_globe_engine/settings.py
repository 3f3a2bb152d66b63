from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    max_workers: int = 2
    step_time_limit_s: float = 1.0
    log_file: str | None = None


def load_settings() -> Settings:
    return Settings(
        log_level=os.environ.get("TG_LOG_LEVEL", "INFO").upper(),
        max_workers=max(1, int(os.environ.get("TG_MAX_WORKERS", "2"))),
        step_time_limit_s=float(os.environ.get("TG_STEP_TIME_LIMIT_S", "1.0")),
        log_file=os.environ.get("TG_LOG_FILE") or None,
    )
