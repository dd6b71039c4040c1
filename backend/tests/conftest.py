"""
Shared fixtures for the download service tests
"""
import pytest
from pathlib import Path

from app.services.artifact_store import ArtifactStore
from app.services.job_registry import JobRegistry
from fakes import JobHistory


@pytest.fixture
def storage_dir(tmp_path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(storage_dir) -> ArtifactStore:
    return ArtifactStore(storage_dir)


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture
def history(registry) -> JobHistory:
    recorder = JobHistory()
    registry.add_listener(recorder)
    return recorder
