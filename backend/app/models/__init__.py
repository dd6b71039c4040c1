from .jobs import Job, JobSnapshot, JobStatus, ProgressSource, TERMINAL_STATUSES
from .resolver import (
    AcquisitionPlan,
    PickerItem,
    ResolverErrorDetail,
    ResolverResponse,
    ResponseVariant
)
from .downloads import DownloadRequest, DownloadAccepted, ErrorResponse

__all__ = [
    "Job",
    "JobSnapshot",
    "JobStatus",
    "ProgressSource",
    "TERMINAL_STATUSES",
    "AcquisitionPlan",
    "PickerItem",
    "ResolverErrorDetail",
    "ResolverResponse",
    "ResponseVariant",
    "DownloadRequest",
    "DownloadAccepted",
    "ErrorResponse"
]
