"""
Download request/response models
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class DownloadRequest(BaseModel):
    """Body of a download submission"""
    url: Optional[str] = Field(None, description="Source URL to fetch media from")


class DownloadAccepted(BaseModel):
    """Returned as soon as a download job has been queued"""
    model_config = ConfigDict(populate_by_name=True)

    download_id: str = Field(..., alias="downloadId")
    message: str = "Download started"


class ErrorResponse(BaseModel):
    """Error body for every non-2xx response"""
    error: str
    code: str
