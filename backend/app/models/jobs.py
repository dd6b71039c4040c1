"""
Job status models
"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional
from enum import Enum
from datetime import datetime


class JobStatus(str, Enum):
    """Job status enumeration"""
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


class ProgressSource(str, Enum):
    """Where a progress value came from"""
    OBSERVED = "observed"    # bytes transferred against a known total
    ESTIMATED = "estimated"  # synthetic ticker, no transport signal


TERMINAL_STATUSES = frozenset({JobStatus.READY, JobStatus.ERROR})

ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: frozenset({JobStatus.PENDING, JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.PROCESSING, JobStatus.READY, JobStatus.ERROR}),
    JobStatus.READY: frozenset(),
    JobStatus.ERROR: frozenset(),
}


class Job(BaseModel):
    """
    One download request and its current state.
    Records are immutable; every change produces a new validated record, so a
    ready job without a file reference or an errored job without a reason
    cannot be constructed.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    source_url: str
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(0, ge=0, le=100)
    progress_source: Optional[ProgressSource] = None
    filename: Optional[str] = None
    download_url: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def check_status_fields(self):
        if self.status == JobStatus.PENDING:
            if self.progress != 0 or self.filename or self.progress_source is not None:
                raise ValueError("A pending job has no progress and no filename")
        if self.status == JobStatus.READY:
            if not self.filename or not self.download_url:
                raise ValueError("A ready job needs a filename and a download url")
            if self.progress != 100:
                raise ValueError("A ready job is at 100% progress")
        elif self.download_url is not None:
            raise ValueError("Only ready jobs carry a download url")
        if self.status == JobStatus.ERROR:
            if not self.error:
                raise ValueError("An errored job needs a reason")
        elif self.error is not None:
            raise ValueError("Only errored jobs carry an error reason")
        return self

    @classmethod
    def pending(cls, job_id: str, source_url: str) -> "Job":
        return cls(id=job_id, source_url=source_url)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def merged(self, **changes) -> "Job":
        """Return a validated copy with the given fields replaced"""
        return Job.model_validate({**self.model_dump(), **changes})


class JobSnapshot(BaseModel):
    """Job state as reported by the status endpoint"""
    model_config = ConfigDict(populate_by_name=True)

    status: JobStatus
    progress: int
    progress_source: Optional[ProgressSource] = Field(None, alias="progressSource")
    url: Optional[str] = None
    filename: Optional[str] = None
    error: Optional[str] = None
    created_at: int = Field(..., alias="createdAt", description="Epoch milliseconds")

    @classmethod
    def from_job(cls, job: Job) -> "JobSnapshot":
        return cls(
            status=job.status,
            progress=job.progress,
            progress_source=job.progress_source,
            url=job.download_url,
            filename=job.filename,
            error=job.error,
            created_at=int(job.created_at.timestamp() * 1000),
        )
