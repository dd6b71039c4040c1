"""
Media Fetch Backend
Backend API - FastAPI Application
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import httpx
import logging

from app.api import downloads
from app.core.config import settings
from app.services.download_processor import build_download_processor
from app.services.expiry_sweeper import ExpirySweeper

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the download processor and sweeper, tear them down on exit"""
    settings.storage_dir.mkdir(parents=True, exist_ok=True)

    # No timeout: a stalled upstream only holds up its own job
    client = httpx.AsyncClient(timeout=None, follow_redirects=True)
    processor = build_download_processor(client, settings)
    sweeper = ExpirySweeper(processor.store, processor.registry)

    app.state.downloads = processor
    await sweeper.start()
    logger.info(f"Using resolver at: {settings.RESOLVER_API_URL}, storage: {settings.storage_dir}")

    yield

    await sweeper.stop()
    await processor.shutdown()
    await client.aclose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Media Fetch API",
        description="Fetches media through an external resolver and serves it for a limited time",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(downloads.router, prefix=settings.API_PREFIX, tags=["downloads"])

    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {"status": "ok", "service": "Media Fetch API"}

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "healthy"}

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are client errors"""
        logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request body",
                "code": "INVALID_REQUEST"
            }
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Server error",
                "code": "INTERNAL_ERROR"
            }
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT)
