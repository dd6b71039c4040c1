"""
Application configuration
"""
from pathlib import Path
from typing import ClassVar, Dict, List, Tuple, Union

from pydantic_settings import BaseSettings


BACKEND_DIR = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """Application settings"""

    # Upstream resolver
    RESOLVER_API_URL: str = "http://fetch-api:9000"

    # Storage
    FILE_STORAGE_PATH: str = str(BACKEND_DIR / "data")
    FILE_EXPIRY_MINUTES: int = 30

    # Server
    PORT: int = 3000

    # Fixed constants, not read from the environment
    API_PREFIX: ClassVar[str] = "/api"
    CORS_ORIGINS: ClassVar[List[str]] = ["*"]
    CLEANUP_INTERVAL_SECONDS: ClassVar[int] = 300  # 5 minutes
    MAX_CONCURRENT_DOWNLOADS: ClassVar[int] = 4

    MEDIA_EXTENSION: ClassVar[str] = ".mp4"
    MEDIA_TYPE: ClassVar[str] = "video/mp4"
    DEFAULT_FILENAME: ClassVar[str] = "download.mp4"
    CHUNK_SIZE: ClassVar[int] = 64 * 1024

    # Progress: the resolver phase ends at 10, acquisition owns 10..100
    ACQUISITION_START_PROGRESS: ClassVar[int] = 10
    ESTIMATED_PROGRESS_STEP: ClassVar[int] = 5
    ESTIMATED_PROGRESS_INTERVAL: ClassVar[float] = 0.5
    ESTIMATED_PROGRESS_CEILING: ClassVar[int] = 99

    # Host:port pairs the resolver advertises for its relay to outside callers
    RESOLVER_PUBLIC_HOSTS: ClassVar[Tuple[str, ...]] = ("localhost:3001",)

    RESOLVER_PREFERENCES: ClassVar[Dict[str, Union[str, bool]]] = {
        "videoQuality": "max",
        "audioFormat": "best",
        "audioBitrate": "320",
        "filenameStyle": "pretty",
        "downloadMode": "auto",
        "youtubeVideoCodec": "h264",
        "alwaysProxy": False,
        "disableMetadata": False,
        "tiktokFullAudio": True,
        "tiktokH265": False,
        "twitterGif": True,
        "youtubeHLS": False,
    }

    @property
    def retention_seconds(self) -> int:
        """Artifact retention window in seconds"""
        return self.FILE_EXPIRY_MINUTES * 60

    @property
    def storage_dir(self) -> Path:
        return Path(self.FILE_STORAGE_PATH)

    @staticmethod
    def file_endpoint(download_id: str) -> str:
        """Retrieval reference handed to clients once a job is ready"""
        return f"{Settings.API_PREFIX}/download/{download_id}/file"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
