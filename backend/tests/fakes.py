"""
Fake upstream services and recorders used by the tests
"""
import httpx
from typing import Callable, Dict, List, Optional

from app.models.jobs import Job


RESOLVER_URL = "http://resolver:9000"
MEDIA_URL = "http://cdn.test/media/video.mp4"

Handler = Callable[[httpx.Request], httpx.Response]


class JobHistory:
    """Collects every stored version of every job"""

    def __init__(self):
        self.versions: Dict[str, List[Job]] = {}

    def __call__(self, job: Job) -> None:
        self.versions.setdefault(job.id, []).append(job)

    def progress(self, job_id: str) -> List[int]:
        return [job.progress for job in self.versions.get(job_id, [])]


def resolver_handler(
    answer: dict,
    media: Optional[Handler] = None,
    status_code: int = 200,
    seen: Optional[List[httpx.Request]] = None
) -> Handler:
    """
    Fake upstream: POSTs to the resolver get `answer`, everything else is
    routed to `media` (default: 404)
    """

    def handler(request: httpx.Request):
        if seen is not None:
            seen.append(request)
        if request.method == "POST" and str(request.url) == f"{RESOLVER_URL}/":
            return httpx.Response(status_code, json=answer)
        if media is not None:
            return media(request)
        return httpx.Response(404)

    return handler


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
