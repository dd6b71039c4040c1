"""
Artifact store for downloaded media files
Maps job ids to files on disk and back
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredArtifact:
    """A file found in the storage directory"""
    path: Path
    modified_at: float  # epoch seconds
    size: int
    owner: Optional[str]  # None for files left over from a previous run


class ArtifactStore:
    """Manages media files in the storage directory, one file per job"""

    def __init__(self, storage_dir: Optional[Path] = None, extension: str = settings.MEDIA_EXTENSION):
        self._storage_dir = Path(storage_dir) if storage_dir else settings.storage_dir
        self._extension = extension
        self._owners: Dict[Path, str] = {}

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    def ensure_dir(self) -> None:
        self._storage_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, job_id: str) -> Path:
        return self._storage_dir / f"{job_id}{self._extension}"

    def path_for(self, job_id: str) -> Path:
        """Storage path for a job; the job is recorded as the file's owner"""
        path = self._path(job_id)
        self._owners[path] = job_id
        return path

    def owner_of(self, path: Path) -> Optional[str]:
        return self._owners.get(Path(path))

    def exists(self, job_id: str) -> bool:
        return self._path(job_id).is_file()

    def locate(self, job_id: str) -> Optional[Path]:
        """Path of a job's file if it is on disk"""
        path = self._path(job_id)
        return path if path.is_file() else None

    def list_artifacts(self) -> List[StoredArtifact]:
        """
        List files in the storage directory
        Entries that vanish while listing are skipped
        """
        artifacts = []
        if not self._storage_dir.exists():
            return artifacts

        with os.scandir(self._storage_dir) as entries:
            for entry in entries:
                if not entry.is_file():
                    continue
                try:
                    stat = entry.stat()
                except FileNotFoundError:
                    continue
                path = Path(entry.path)
                artifacts.append(StoredArtifact(
                    path=path,
                    modified_at=stat.st_mtime,
                    size=stat.st_size,
                    owner=self._owners.get(path)
                ))
        return artifacts

    def remove(self, path: Path) -> Optional[str]:
        """
        Delete a file from storage
        Returns the id of the job that owned it, if known
        """
        path = Path(path)
        path.unlink(missing_ok=True)
        owner = self._owners.pop(path, None)
        logger.info(f"Deleted file: {path.name} (job: {owner})")
        return owner

    def discard(self, job_id: str) -> None:
        """Delete whatever a job left behind, e.g. a partial download"""
        path = self._path(job_id)
        if path.exists():
            path.unlink()
            logger.info(f"Removed partial file for job {job_id}")
        self._owners.pop(path, None)
