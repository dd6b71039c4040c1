"""
Tests for the expiry sweeper
"""
import asyncio
import os
import shutil
import tempfile
import time
from pathlib import Path

import pytest

from app.models.jobs import JobStatus
from app.services.artifact_store import ArtifactStore
from app.services.expiry_sweeper import ExpirySweeper
from app.services.job_registry import JobRegistry


RETENTION = 30 * 60


class TestExpirySweeper:
    """Filesystem-driven eviction"""

    def setup_method(self):
        """Setup test environment"""
        self.test_dir = Path(tempfile.mkdtemp())
        self.store = ArtifactStore(self.test_dir)
        self.registry = JobRegistry()
        self.sweeper = ExpirySweeper(self.store, self.registry, retention_seconds=RETENTION)
        self.now = time.time()

    def teardown_method(self):
        """Cleanup test environment"""
        if self.test_dir.exists():
            shutil.rmtree(self.test_dir)

    def _ready_job(self, age_seconds: float) -> str:
        job_id = self.registry.create("https://video.example/watch?v=abc")
        self.registry.mark_processing(job_id)
        path = self.store.path_for(job_id)
        path.write_bytes(b"media")
        mtime = self.now - age_seconds
        os.utime(path, (mtime, mtime))
        self.registry.mark_ready(job_id, "clip.mp4", f"/api/download/{job_id}/file")
        return job_id

    def test_aged_artifact_and_job_are_removed(self):
        job_id = self._ready_job(age_seconds=RETENTION + 60)

        removed = self.sweeper.sweep_once(now=self.now)

        assert removed == [f"{job_id}.mp4"]
        assert not self.store.exists(job_id)
        assert self.registry.get(job_id) is None

    def test_young_artifact_survives(self):
        job_id = self._ready_job(age_seconds=RETENTION - 60)

        removed = self.sweeper.sweep_once(now=self.now)

        assert removed == []
        assert self.store.exists(job_id)
        assert self.registry.get(job_id).status == JobStatus.READY

    def test_only_aged_files_are_swept(self):
        old_id = self._ready_job(age_seconds=RETENTION * 2)
        new_id = self._ready_job(age_seconds=10)

        self.sweeper.sweep_once(now=self.now)

        assert self.registry.get(old_id) is None
        assert self.registry.get(new_id) is not None

    def test_processing_job_without_file_is_untouched(self):
        job_id = self.registry.create("https://video.example/watch?v=abc")
        self.registry.mark_processing(job_id)

        self.sweeper.sweep_once(now=self.now + RETENTION * 10)

        assert self.registry.get(job_id).status == JobStatus.PROCESSING

    def test_orphaned_file_is_removed(self):
        orphan = self.test_dir / "left-over-from-previous-run.mp4"
        orphan.write_bytes(b"media")
        os.utime(orphan, (self.now - RETENTION * 2, self.now - RETENTION * 2))

        removed = self.sweeper.sweep_once(now=self.now)

        assert removed == [orphan.name]
        assert not orphan.exists()

    def test_eviction_does_not_rely_on_the_filename(self):
        """Files are matched to jobs by the store's mapping, not by their name"""
        job_id = self._ready_job(age_seconds=RETENTION * 2)
        decoy = self.test_dir / f"{job_id}.partial"
        decoy.write_bytes(b"x")
        os.utime(decoy, (self.now - RETENTION * 2, self.now - RETENTION * 2))
        self.store.remove(self.store.path_for(job_id))

        self.sweeper.sweep_once(now=self.now)

        assert not decoy.exists()
        assert self.registry.get(job_id) is not None

    def test_missing_storage_dir_is_not_an_error(self):
        shutil.rmtree(self.test_dir)

        assert self.sweeper.sweep_once(now=self.now) == []


class TestExpirySweeperLoop:
    """Background timer"""

    @pytest.mark.asyncio
    async def test_loop_sweeps_periodically(self, store, registry):
        job_id = registry.create("https://video.example/watch?v=abc")
        registry.mark_processing(job_id)
        path = store.path_for(job_id)
        path.write_bytes(b"media")
        old = time.time() - 120
        os.utime(path, (old, old))

        sweeper = ExpirySweeper(store, registry, retention_seconds=60, interval_seconds=0.01)
        await sweeper.start()
        assert sweeper.running
        try:
            for _ in range(100):
                if registry.get(job_id) is None:
                    break
                await asyncio.sleep(0.01)
        finally:
            await sweeper.stop()

        assert not sweeper.running
        assert not path.exists()
        assert registry.get(job_id) is None

    @pytest.mark.asyncio
    async def test_loop_survives_a_failing_pass(self, store, registry, monkeypatch):
        calls = []

        def flaky(now=None):
            calls.append(now)
            if len(calls) == 1:
                raise RuntimeError("disk hiccup")
            return []

        sweeper = ExpirySweeper(store, registry, retention_seconds=60, interval_seconds=0.01)
        monkeypatch.setattr(sweeper, "sweep_once", flaky)

        await sweeper.start()
        try:
            for _ in range(100):
                if len(calls) >= 3:
                    break
                await asyncio.sleep(0.01)
        finally:
            await sweeper.stop()

        assert len(calls) >= 3
