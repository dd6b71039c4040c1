"""
Expiry sweeper
Periodically deletes aged artifacts and evicts the jobs that owned them
"""
import asyncio
import time
from typing import List, Optional
import logging

from app.core.config import settings
from app.services.artifact_store import ArtifactStore
from app.services.job_registry import JobRegistry

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Background timer that removes files older than the retention window.

    The sweep looks only at the filesystem: a job still downloading has no
    aged file and is left alone, while a ready job whose file ages out loses
    its file and its registry entry in the same pass.
    """

    def __init__(
        self,
        store: ArtifactStore,
        registry: JobRegistry,
        retention_seconds: float = settings.retention_seconds,
        interval_seconds: float = settings.CLEANUP_INTERVAL_SECONDS
    ):
        self._store = store
        self._registry = registry
        self._retention = retention_seconds
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the periodic sweep loop"""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="expiry-sweeper")
        logger.info(
            f"Expiry sweeper started: every {self._interval}s, retention {self._retention}s"
        )

    async def stop(self) -> None:
        """Stop the sweep loop"""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Expiry sweeper stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Error during file cleanup: {e}", exc_info=True)

    async def sweep(self) -> List[str]:
        # Runs on the event loop thread; registry waiters are not thread-safe
        return self.sweep_once()

    def sweep_once(self, now: Optional[float] = None) -> List[str]:
        """
        Delete every artifact older than the retention window
        Returns the names of the removed files
        """
        now = time.time() if now is None else now
        logger.info("Running cleanup of expired files...")

        removed = []
        for artifact in self._store.list_artifacts():
            age = now - artifact.modified_at
            if age <= self._retention:
                continue

            logger.info(f"Removing expired file: {artifact.path.name} (age {age / 60:.1f} min)")
            try:
                owner = self._store.remove(artifact.path)
            except OSError as e:
                logger.error(f"Could not remove {artifact.path.name}: {e}")
                continue
            if owner is not None:
                self._registry.delete(owner)
            removed.append(artifact.path.name)

        return removed
