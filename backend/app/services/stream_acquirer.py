"""
Streams resolved media to local storage and reports progress
"""
import asyncio
from pathlib import Path
from typing import Optional
import logging

import aiofiles
import httpx

from app.core.config import settings
from app.core.exceptions import StorageError, TransportError
from app.models.jobs import ProgressSource
from app.models.resolver import AcquisitionPlan
from app.services.artifact_store import ArtifactStore
from app.services.job_registry import JobRegistry

logger = logging.getLogger(__name__)


def observed_progress(transferred: int, total: int, start: int = settings.ACQUISITION_START_PROGRESS) -> int:
    """Map transferred/total bytes onto the [start, 100] range"""
    if total <= 0:
        return start
    return min(int(start + (100 - start) * transferred / total), 100)


class StreamAcquirer:
    """
    Executes an acquisition plan for one job at a time.

    Bytes are piped chunk by chunk from the HTTP response into the job's file,
    so memory use depends on the chunk size only. When the response has no
    Content-Length an estimated ticker drives progress instead, and it never
    reaches 100 on its own.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        registry: JobRegistry,
        store: ArtifactStore,
        chunk_size: int = settings.CHUNK_SIZE,
        tick_interval: float = settings.ESTIMATED_PROGRESS_INTERVAL,
        tick_step: int = settings.ESTIMATED_PROGRESS_STEP,
        tick_ceiling: int = settings.ESTIMATED_PROGRESS_CEILING
    ):
        self._client = client
        self._registry = registry
        self._store = store
        self._chunk_size = chunk_size
        self._tick_interval = tick_interval
        self._tick_step = tick_step
        self._tick_ceiling = tick_ceiling

    async def acquire(self, job_id: str, plan: AcquisitionPlan) -> Path:
        """
        Download plan.url into the job's storage path and mark the job ready
        Raises TransportError or StorageError
        """
        destination = self._store.path_for(job_id)
        logger.info(f"Starting download of {plan.variant.value} media to: {destination}")

        ticker: Optional[asyncio.Task] = None
        try:
            async with self._client.stream("GET", plan.url) as response:
                response.raise_for_status()
                total = _content_length(response)
                if total is None:
                    ticker = asyncio.create_task(self._estimate_progress(job_id))

                await self._write(job_id, response, destination, total)
        except httpx.HTTPStatusError as e:
            raise TransportError(f"Media request failed with status code {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise TransportError(str(e) or e.__class__.__name__) from e
        finally:
            if ticker is not None:
                ticker.cancel()
                try:
                    await ticker
                except asyncio.CancelledError:
                    pass

        self._registry.mark_ready(job_id, plan.filename, settings.file_endpoint(job_id))
        logger.info(f"Download completed for {job_id}")
        return destination

    async def _write(
        self,
        job_id: str,
        response: httpx.Response,
        destination: Path,
        total: Optional[int]
    ) -> None:
        try:
            transferred = 0
            async with aiofiles.open(destination, "wb") as f:
                async for chunk in response.aiter_bytes(self._chunk_size):
                    await f.write(chunk)
                    transferred += len(chunk)
                    if total is not None:
                        self._registry.advance(
                            job_id,
                            observed_progress(transferred, total),
                            ProgressSource.OBSERVED
                        )
        except OSError as e:
            logger.error(f"File write error for {job_id}: {e}")
            raise StorageError(f"File write error: {e.strerror or e}") from e

    async def _estimate_progress(self, job_id: str) -> None:
        """Advance progress by a fixed step until the ceiling is reached"""
        while True:
            await asyncio.sleep(self._tick_interval)
            job = self._registry.get(job_id)
            if job is None or job.is_terminal:
                return
            target = min(job.progress + self._tick_step, self._tick_ceiling)
            if target > job.progress:
                self._registry.advance(job_id, target, ProgressSource.ESTIMATED)


def _content_length(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        total = int(value)
    except ValueError:
        return None
    return total if total > 0 else None
