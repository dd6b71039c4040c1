"""
In-memory job registry
Owns every Job record for the lifetime of the process
"""
import asyncio
import threading
import uuid
from typing import Callable, Dict, List, Optional
import logging

from app.core.exceptions import InvalidTransitionError
from app.models.jobs import ALLOWED_TRANSITIONS, Job, JobStatus, ProgressSource

logger = logging.getLogger(__name__)

JobListener = Callable[[Job], None]


class JobRegistry:
    """
    Concurrency-safe map of job id -> Job.

    Updates to an id that is no longer present are dropped, so a write that
    lands after the sweeper evicted a job never brings the job back.
    """

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._waiters: Dict[str, asyncio.Event] = {}
        self._listeners: List[JobListener] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def add_listener(self, listener: JobListener) -> None:
        """Register a callback invoked with every stored record version"""
        self._listeners.append(listener)

    def create(self, source_url: str) -> str:
        """
        Insert a pending job for source_url
        Returns the new job id
        """
        with self._lock:
            job_id = str(uuid.uuid4())
            while job_id in self._jobs:
                job_id = str(uuid.uuid4())
            job = Job.pending(job_id, source_url)
            self._jobs[job_id] = job
        self._notify(job)
        return job_id

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._jobs)

    def update(self, job_id: str, **changes) -> Optional[Job]:
        """
        Merge changes into a job record (last write wins)

        Returns the stored record, or None when the job does not exist.
        Terminal records are left untouched. A progress value lower than the
        current one is ignored while the job is processing.
        """
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                logger.debug(f"Ignoring update for unknown job {job_id}")
                return None
            if current.is_terminal:
                logger.debug(f"Ignoring update for finished job {job_id} ({current.status.value})")
                return current

            target = changes.get("status", current.status)
            if target not in ALLOWED_TRANSITIONS[current.status]:
                raise InvalidTransitionError(
                    f"Job {job_id} cannot move from {current.status.value} to {JobStatus(target).value}"
                )
            if (
                target == JobStatus.PROCESSING
                and current.status == JobStatus.PROCESSING
                and changes.get("progress", current.progress) < current.progress
            ):
                changes.pop("progress")
                changes.pop("progress_source", None)

            job = current.merged(**changes)
            self._jobs[job_id] = job
            waiter = self._waiters.pop(job_id, None) if job.is_terminal else None

        if waiter is not None:
            waiter.set()
        self._notify(job)
        return job

    def delete(self, job_id: str) -> None:
        """Remove a job; unknown ids are ignored"""
        with self._lock:
            removed = self._jobs.pop(job_id, None)
            waiter = self._waiters.pop(job_id, None)
        if waiter is not None:
            waiter.set()
        if removed is not None:
            logger.info(f"Evicted job {job_id}")

    async def wait(self, job_id: str) -> Optional[Job]:
        """
        Wait until a job finishes or is evicted
        Returns the terminal record, or None if the job is gone
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return job
            waiter = self._waiters.setdefault(job_id, asyncio.Event())
        await waiter.wait()
        return self._jobs.get(job_id)

    # State transitions

    def mark_processing(self, job_id: str) -> Optional[Job]:
        return self.update(job_id, status=JobStatus.PROCESSING, progress=0)

    def advance(
        self,
        job_id: str,
        progress: int,
        source: Optional[ProgressSource] = None,
        filename: Optional[str] = None
    ) -> Optional[Job]:
        changes = {"progress": max(0, min(int(progress), 100)), "progress_source": source}
        if filename is not None:
            changes["filename"] = filename
        return self.update(job_id, **changes)

    def mark_ready(self, job_id: str, filename: str, download_url: str) -> Optional[Job]:
        return self.update(
            job_id,
            status=JobStatus.READY,
            progress=100,
            filename=filename,
            download_url=download_url
        )

    def mark_failed(self, job_id: str, reason: str) -> Optional[Job]:
        job = self.get(job_id)
        if job is not None and job.status == JobStatus.PENDING:
            self.mark_processing(job_id)
        return self.update(job_id, status=JobStatus.ERROR, error=reason or "Unknown error")

    def _notify(self, job: Job) -> None:
        for listener in self._listeners:
            try:
                listener(job)
            except Exception as e:
                logger.error(f"Job listener failed for {job.id}: {e}", exc_info=True)
