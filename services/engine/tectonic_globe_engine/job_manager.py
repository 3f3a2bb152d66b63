from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable

from .models import JobStatus, JobSummary

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (JobStatus.queued, JobStatus.running)
FINISHED_STATUSES = (JobStatus.completed, JobStatus.failed, JobStatus.canceled)


@dataclass
class JobContext:
    """Hooks handed to a running job: progress reporting and cancellation polling."""

    job_id: str
    report: Callable[[float, str], None]
    canceled: Callable[[], bool]


@dataclass
class _JobEntry:
    summary: JobSummary
    version: int = 0
    cancel_event: threading.Event = field(default_factory=threading.Event)


class JobManager:
    """In-memory world jobs on a small thread pool.

    At most one queued or running job exists per world. ``version`` bumps on
    every change so event streams can tell when to emit an update.
    """

    def __init__(self, max_workers: int = 2):
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tg-job")
        self._entries: dict[str, _JobEntry] = {}
        self._lock = threading.Lock()

    def create_job(self, world_id: str, kind: str, message: str = "queued") -> JobSummary | None:
        """Register a job, or return ``None`` when the world already has an active one."""
        with self._lock:
            for entry in self._entries.values():
                if entry.summary.worldId == world_id and entry.summary.status in ACTIVE_STATUSES:
                    return None
            summary = JobSummary(
                jobId=str(uuid.uuid4()),
                worldId=world_id,
                kind=kind,
                status=JobStatus.queued,
                progress=0.0,
                message=message,
            )
            self._entries[summary.jobId] = _JobEntry(summary=summary)
        logger.debug("job %s (%s) queued for world %s", summary.jobId, kind, world_id)
        return summary.model_copy()

    def submit(self, job_id: str, work: Callable[[JobContext], object]) -> None:
        context = JobContext(
            job_id=job_id,
            report=lambda progress, message: self.set_state(job_id, progress=progress, message=message),
            canceled=lambda: self.is_canceled(job_id),
        )
        self.set_state(job_id, status=JobStatus.running, message="running")
        self._pool.submit(self._run, context, work)

    def _run(self, context: JobContext, work: Callable[[JobContext], object]) -> None:
        job_id = context.job_id
        try:
            work(context)
        except Exception as exc:
            if context.canceled():
                logger.info("job %s stopped after cancellation", job_id)
                return
            logger.exception("job %s failed", job_id)
            self.set_state(job_id, status=JobStatus.failed, progress=1.0, message="failed", error=str(exc))
            return
        # A cancel that lands after the work finished still wins; set_state ignores the update.
        self.set_state(job_id, status=JobStatus.completed, progress=1.0, message="completed")

    def get_job(self, job_id: str) -> JobSummary | None:
        with self._lock:
            entry = self._entries.get(job_id)
            return entry.summary.model_copy() if entry is not None else None

    def job_version(self, job_id: str) -> int:
        with self._lock:
            entry = self._entries.get(job_id)
            return entry.version if entry is not None else 0

    def is_canceled(self, job_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(job_id)
            return entry is not None and entry.cancel_event.is_set()

    def cancel(self, job_id: str) -> bool:
        """Request cancellation. Returns False for unknown jobs; finished jobs are left as they are."""
        with self._lock:
            entry = self._entries.get(job_id)
            if entry is None:
                return False
            if entry.summary.status in FINISHED_STATUSES:
                return True
            entry.cancel_event.set()
        self.set_state(job_id, status=JobStatus.canceled, message="canceled")
        return True

    def set_state(
        self,
        job_id: str,
        *,
        status: JobStatus | None = None,
        progress: float | None = None,
        message: str | None = None,
        error: str | None = None,
    ) -> None:
        with self._lock:
            entry = self._entries.get(job_id)
            if entry is None:
                return
            summary = entry.summary
            # Canceled is final.
            if summary.status == JobStatus.canceled:
                return
            updates: dict[str, object] = {}
            if status is not None:
                updates["status"] = status
            if progress is not None:
                updates["progress"] = min(1.0, max(0.0, progress))
            if message is not None:
                updates["message"] = message
            if error is not None:
                updates["error"] = error
            entry.summary = summary.model_copy(update=updates)
            entry.version += 1

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
