"""
Download submission, status and file API endpoints
"""
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import FileResponse, JSONResponse
from typing import Optional
from urllib.parse import quote, urlsplit
import logging

from app.core.config import settings
from app.core.exceptions import InvalidSubmissionError
from app.models.downloads import DownloadAccepted, DownloadRequest, ErrorResponse
from app.models.jobs import JobSnapshot, JobStatus
from app.services.download_processor import DownloadProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


def get_processor(request: Request) -> DownloadProcessor:
    return request.app.state.downloads


def validate_source_url(url: Optional[str]) -> str:
    """
    Check a submitted URL
    Raises InvalidSubmissionError when it is missing or not an absolute http(s) URL
    """
    if url is None or not url.strip():
        raise InvalidSubmissionError("URL is required")
    url = url.strip()
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidSubmissionError("URL must be an absolute http(s) URL")
    return url


def content_disposition(filename: str) -> str:
    """Attachment header; non-ASCII names get an RFC 5987 filename* as well"""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "'")
    header = f'attachment; filename="{fallback}"'
    if fallback != filename:
        header += f"; filename*=UTF-8''{quote(filename)}"
    return header


@router.post(
    "/download",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=DownloadAccepted,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def create_download(
    payload: Optional[DownloadRequest] = None,
    processor: DownloadProcessor = Depends(get_processor)
):
    """
    Start downloading the media behind a URL
    Returns immediately; poll the status endpoint for progress
    """
    try:
        source_url = validate_source_url(payload.url if payload else None)
    except InvalidSubmissionError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": str(e),
                "code": "INVALID_URL"
            }
        )

    try:
        download_id = processor.submit(source_url)
    except Exception as e:
        logger.error(f"Download request error: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Server error",
                "code": "INTERNAL_ERROR"
            }
        )

    return DownloadAccepted(download_id=download_id)


@router.get(
    "/download/{download_id}/status",
    response_model=JobSnapshot,
    responses={404: {"model": ErrorResponse}}
)
async def get_download_status(
    download_id: str,
    processor: DownloadProcessor = Depends(get_processor)
):
    """
    Get download status by id
    """
    job = processor.registry.get(download_id)

    if not job:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "Download not found",
                "code": "DOWNLOAD_NOT_FOUND"
            }
        )

    return JobSnapshot.from_job(job)


@router.get(
    "/download/{download_id}/file",
    response_class=FileResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def download_file(
    download_id: str,
    processor: DownloadProcessor = Depends(get_processor)
):
    """
    Stream the downloaded media file for a ready job
    """
    job = processor.registry.get(download_id)

    if not job:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "Download not found",
                "code": "DOWNLOAD_NOT_FOUND"
            }
        )

    if job.status != JobStatus.READY:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": f"Download not ready. Current status: {job.status.value}",
                "code": "DOWNLOAD_NOT_READY"
            }
        )

    file_path = processor.store.locate(download_id)

    if file_path is None:
        # Same outcome as a sweep: later status polls report not-found
        logger.error(f"File not found for ready download {download_id}, evicting it")
        processor.registry.delete(download_id)
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "File not found",
                "code": "FILE_NOT_FOUND"
            }
        )

    logger.info(f"Serving file: {file_path}")
    return FileResponse(
        file_path,
        media_type=settings.MEDIA_TYPE,
        headers={"Content-Disposition": content_disposition(job.filename or settings.DEFAULT_FILENAME)}
    )
