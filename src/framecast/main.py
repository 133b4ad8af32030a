"""
framecast Main Application
==========================

FastAPI entry point for the frame extraction service.

Endpoints:
    GET  /             - Service information
    GET  /health       - Liveness probe (is process alive?)
    GET  /metrics      - Extraction counters
    GET  /api/videos   - Files available in the video directory
    GET  /api/frames   - Extract frames:
                         ?filename=<name>&start=<frame>&count=<n>

Status mapping for /api/frames:
    200 - frames extracted (possibly fewer than requested)
    400 - missing filename, invalid start/count
    404 - video not found
    500 - decoder failure or timeout
    503 - service not initialized
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from framecast.catalog import VideoCatalog
from framecast.config import Settings, settings
from framecast.errors import DecodeFailureError, InvalidArgumentError, SourceNotFoundError
from framecast.extraction import FFmpegDecoder, FramePipeline
from framecast.models.output import ErrorResponse, FramesResponse, GeometryInfo, ServiceInfo
from framecast.models.request import ExtractionRequest


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_catalog: Optional[VideoCatalog] = None
_pipeline: Optional[FramePipeline] = None
_startup_time: float = time.time()


# =============================================================================
# Getters
# =============================================================================

def get_catalog() -> Optional[VideoCatalog]:
    return _catalog

def get_pipeline() -> Optional[FramePipeline]:
    return _pipeline

def set_components(catalog: VideoCatalog, pipeline: FramePipeline) -> None:
    """Install the catalog and pipeline (used by lifespan and tests)."""
    global _catalog, _pipeline
    _catalog = catalog
    _pipeline = pipeline

def clear_components() -> None:
    global _catalog, _pipeline
    _catalog = None
    _pipeline = None


# =============================================================================
# Factories
# =============================================================================

def create_pipeline(config: Settings) -> FramePipeline:
    """Build the production pipeline from settings."""
    decoder = FFmpegDecoder(
        binary=config.decoder.ffmpeg_binary,
        read_chunk_size=config.decoder.read_chunk_size,
    )
    return FramePipeline(
        geometry=config.frame_geometry(),
        decoder=decoder,
        timeout_seconds=config.decoder.timeout_seconds or None,
        max_count=config.frames.max_count_per_request,
    )


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code)


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    if _pipeline is None or _catalog is None:
        set_components(
            VideoCatalog(settings.video.directory),
            create_pipeline(settings),
        )

    yield

    logger.info("Shutting down gracefully...")
    if _pipeline is not None:
        await _pipeline.aclose()
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="framecast",
    description="Raw RGBA frame extraction for remote rendering clients",
    version=settings.service.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    geometry = settings.frame_geometry()
    info = ServiceInfo(
        service=settings.service.name,
        version=settings.service.version,
        geometry=GeometryInfo(
            width=geometry.width,
            height=geometry.height,
            channels=geometry.channels,
            frame_rate=geometry.frame_rate,
            frame_byte_size=geometry.frame_byte_size,
        ),
        max_count_per_request=settings.frames.max_count_per_request,
    )
    return JSONResponse(info.model_dump(mode="json"))


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Extraction counters for observability."""
    pipeline = get_pipeline()
    if pipeline is None:
        return _error("service not initialized", 503)

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "active_runs": pipeline.active_runs,
        **pipeline.metrics.to_dict(),
    })


@app.get("/api/videos")
async def list_videos() -> JSONResponse:
    """List files in the video directory."""
    catalog = get_catalog()
    if catalog is None:
        return _error("service not initialized", 503)
    return JSONResponse({"videos": catalog.list_videos()})


@app.get("/api/frames")
async def get_frames(
    filename: Optional[str] = None,
    start: str = "0",
    count: str = "1",
) -> JSONResponse:
    """
    Extract `count` frames starting at frame `start` of `filename`.

    start and count arrive as raw strings so that non-numeric values are
    answered with 400 by the extraction core rather than 422 by FastAPI.
    """
    catalog = get_catalog()
    pipeline = get_pipeline()
    if catalog is None or pipeline is None:
        return _error("service not initialized", 503)

    pipeline.metrics.requests += 1

    if not filename:
        pipeline.metrics.invalid_requests += 1
        return _error("filename query param required", 400)

    try:
        video_path = catalog.resolve(filename)
        request = ExtractionRequest.from_query(video_path, start=start, count=count)
        result = await pipeline.extract(request)
    except InvalidArgumentError as e:
        pipeline.metrics.record_error(e)
        return _error(str(e), 400)
    except SourceNotFoundError as e:
        pipeline.metrics.record_error(e)
        logger.info(f"Video not found: {e.filename}")
        return _error("video not found", 404)
    except DecodeFailureError as e:
        # Already counted by the pipeline
        logger.error(f"Extraction failed for {filename}: {e}")
        return _error("failed to process video", 500)

    return JSONResponse(FramesResponse(frames=list(result.frames)).model_dump())


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    # Cloud Run uses PORT env var
    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "framecast.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
