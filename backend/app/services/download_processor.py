"""
In-memory download processing service
Runs resolve-then-acquire for each submitted URL as a tracked asyncio task
"""
import asyncio
from typing import Optional, Set
import logging

import httpx

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import MediaFetchError, TransportError, UpstreamError
from app.models.jobs import Job
from app.services.artifact_store import ArtifactStore
from app.services.job_registry import JobRegistry
from app.services.resolver_client import ResolverClient
from app.services.stream_acquirer import StreamAcquirer

logger = logging.getLogger(__name__)


class DownloadProcessor:
    """
    Accepts download jobs and drives them to a terminal state.

    At most max_concurrent jobs run at once; the rest stay pending until a
    slot frees up. Jobs cannot be cancelled individually, only as a whole on
    shutdown.
    """

    def __init__(
        self,
        registry: JobRegistry,
        resolver: ResolverClient,
        acquirer: StreamAcquirer,
        store: ArtifactStore,
        max_concurrent: int = default_settings.MAX_CONCURRENT_DOWNLOADS,
        start_progress: int = default_settings.ACQUISITION_START_PROGRESS
    ):
        self._registry = registry
        self._resolver = resolver
        self._acquirer = acquirer
        self._store = store
        self._slots = asyncio.Semaphore(max_concurrent)
        self._start_progress = start_progress
        self._tasks: Set[asyncio.Task] = set()

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    @property
    def store(self) -> ArtifactStore:
        return self._store

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def submit(self, source_url: str) -> str:
        """
        Create a job for source_url and start processing it
        Returns the job id without waiting for the job
        """
        job_id = self._registry.create(source_url)
        logger.info(f"Processing download {job_id} for URL: {source_url}")

        task = asyncio.create_task(self._process(job_id, source_url), name=f"download-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return job_id

    async def wait(self, job_id: str) -> Optional[Job]:
        """Wait for a job to finish; None if it was evicted meanwhile"""
        return await self._registry.wait(job_id)

    async def _process(self, job_id: str, source_url: str) -> None:
        async with self._slots:
            try:
                if self._registry.mark_processing(job_id) is None:
                    logger.info(f"Download {job_id} was evicted before it started")
                    return
                plan = await self._resolver.resolve(source_url)

                self._registry.advance(job_id, self._start_progress, filename=plan.filename)
                await self._acquirer.acquire(job_id, plan)

            except UpstreamError as e:
                logger.error(f"Resolver rejected download {job_id}: {e.reason}")
                self._registry.mark_failed(job_id, e.reason)
            except TransportError as e:
                logger.error(f"Transport error for download {job_id}: {e}")
                self._fail(job_id, str(e))
            except MediaFetchError as e:
                logger.error(f"Download {job_id} failed: {e}")
                self._fail(job_id, str(e))
            except asyncio.CancelledError:
                self._fail(job_id, "Download interrupted by shutdown")
                raise
            except Exception as e:
                logger.error(f"Error processing download {job_id}: {e}", exc_info=True)
                self._fail(job_id, str(e) or "Unknown error")

    def _fail(self, job_id: str, reason: str) -> None:
        self._registry.mark_failed(job_id, reason)
        self._store.discard(job_id)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Download task {task.get_name()} crashed: {exc!r}", exc_info=exc)

    async def shutdown(self) -> None:
        """Cancel outstanding download tasks and wait for them to exit"""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} in-flight download(s)")


def build_download_processor(
    client: httpx.AsyncClient,
    settings: Settings = default_settings,
    registry: Optional[JobRegistry] = None,
    store: Optional[ArtifactStore] = None
) -> DownloadProcessor:
    """Wire registry, resolver, acquirer and store for one process"""
    if registry is None:
        registry = JobRegistry()
    if store is None:
        store = ArtifactStore(settings.storage_dir)
    return DownloadProcessor(
        registry=registry,
        resolver=ResolverClient(client, base_url=settings.RESOLVER_API_URL),
        acquirer=StreamAcquirer(client, registry, store),
        store=store
    )
