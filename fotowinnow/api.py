"""FotoWinnow processing REST API.

FastAPI service the web app calls after a browser upload finishes:
it fetches the original from R2, produces the optimized and watermarked
WebP variants and stores them next to the original.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from fotowinnow import __version__, audit
from fotowinnow.albums import ProfileCache, ProfileNotFound, ProfileResolver, build_spec
from fotowinnow.config import Settings, get_settings
from fotowinnow.db import get_initialized_connection
from fotowinnow.errors import InvalidImage, InvalidWatermarkSpec, ProcessingFailure
from fotowinnow.models import WEBP_CONTENT_TYPE
from fotowinnow.pipeline.executor import PipelineExecutor
from fotowinnow.pipeline.process import ImagePipeline
from fotowinnow.storage import ObjectNotFound, R2ObjectStore, variant_keys

logger = logging.getLogger(__name__)

RETRY_LATER = "Failed to process image, please try again later"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared pipeline, store and profile cache once per process."""
    settings = get_settings()
    app.state.settings = settings
    app.state.executor = PipelineExecutor(ImagePipeline(settings))
    app.state.store = R2ObjectStore(settings)
    app.state.profiles = ProfileResolver(ProfileCache())
    logger.info("FotoWinnow API %s ready", __version__)
    yield
    app.state.executor.shutdown(wait=False)


app = FastAPI(title="FotoWinnow Processing API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Dependencies ────────────────────────────────────────────────


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_conn(settings: Settings = Depends(get_app_settings)) -> Iterator[sqlite3.Connection]:
    """Yield an initialized DB connection, closed after the request."""
    conn = get_initialized_connection(settings.db_path_resolved)
    try:
        yield conn
    finally:
        conn.close()


def get_executor(request: Request) -> PipelineExecutor:
    return request.app.state.executor


def get_store(request: Request) -> R2ObjectStore:
    return request.app.state.store


def get_profiles(request: Request) -> ProfileResolver:
    return request.app.state.profiles


# ── Request/Response Models ─────────────────────────────────────


class ProcessImageRequest(BaseModel):
    """Single-image processing request (camelCase like the web client)."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = ""
    watermark: Optional[str] = None
    quality: Optional[str] = None
    font_name: Optional[str] = Field(default=None, alias="fontName")
    opacity: Optional[int] = None
    album_id: Optional[int] = Field(default=None, alias="albumId")


class ProcessImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    optimized_url: Optional[str] = Field(default=None, serialization_alias="optimizedUrl")
    watermarked_url: Optional[str] = Field(default=None, serialization_alias="watermarkedUrl")
    width: int
    height: int
    errors: dict[str, str] = Field(default_factory=dict)


class BatchPhoto(BaseModel):
    id: str
    storage_path: str


class WatermarkBatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    album_id: int = Field(..., alias="albumId")
    photos: list[BatchPhoto]
    watermark_text: Optional[str] = Field(default=None, alias="watermarkText")


# ── Health ──────────────────────────────────────────────────────


@app.get("/health")
def health(conn: sqlite3.Connection = Depends(get_conn)):
    """API health check, also verifies DB connectivity."""
    db_ok = False
    try:
        conn.execute("SELECT 1").fetchone()
        db_ok = True
    except sqlite3.Error as e:
        logger.error("Health check DB error: %s", e)
    return {
        "status": "online" if db_ok else "degraded",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "db": "ok" if db_ok else "error",
    }


# ── Processing ──────────────────────────────────────────────────


@app.post("/images/process", response_model=ProcessImageResponse, response_model_by_alias=True)
def process_image(
    req: ProcessImageRequest,
    x_user_id: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_app_settings),
    conn: sqlite3.Connection = Depends(get_conn),
    executor: PipelineExecutor = Depends(get_executor),
    store: R2ObjectStore = Depends(get_store),
):
    """Produce and store the optimized + watermarked variants of one upload."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    if not req.key:
        raise HTTPException(status_code=400, detail="Missing key")

    try:
        spec = build_spec(
            conn,
            req.album_id,
            settings,
            text=req.watermark,
            quality=req.quality,
            font=req.font_name,
            opacity=req.opacity,
        )
    except InvalidWatermarkSpec as e:
        raise HTTPException(status_code=422, detail=f"Invalid watermark settings: {e}")

    try:
        original = store.get(req.key)
    except ObjectNotFound:
        raise HTTPException(status_code=404, detail="File not found")

    try:
        result = executor.run(original.data, spec, original.content_type)
    except InvalidImage as e:
        raise HTTPException(status_code=422, detail=f"Invalid image: {e}")
    except ProcessingFailure as e:
        logger.error("Processing %s failed: %s", req.key, e)
        raise HTTPException(status_code=500, detail=RETRY_LATER)

    optimized_key, watermarked_key = variant_keys(req.key)
    tags = {"user-id": x_user_id}
    response = ProcessImageResponse(width=result.width, height=result.height, errors=result.errors())
    if result.optimized_bytes is not None:
        response.optimized_url = store.put(
            optimized_key, result.optimized_bytes, WEBP_CONTENT_TYPE, metadata=tags
        )
    if result.watermarked_bytes is not None:
        response.watermarked_url = store.put(
            watermarked_key, result.watermarked_bytes, WEBP_CONTENT_TYPE, metadata=tags
        )
    return response


@app.post("/watermark/process", status_code=202)
def process_album(
    req: WatermarkBatchRequest,
    x_user_id: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_app_settings),
    conn: sqlite3.Connection = Depends(get_conn),
    profiles: ProfileResolver = Depends(get_profiles),
):
    """Queue watermarking for a batch of album photos."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        if not profiles.owns_album(conn, x_user_id, req.album_id):
            raise HTTPException(status_code=403, detail="Album not owned by user")
    except ProfileNotFound:
        raise HTTPException(status_code=403, detail="No photographer profile")

    try:
        build_spec(conn, req.album_id, settings, text=req.watermark_text)
    except InvalidWatermarkSpec as e:
        raise HTTPException(status_code=422, detail=f"Invalid watermark settings: {e}")

    from fotowinnow.tasks import watermark_album_task

    photos = [p.model_dump() for p in req.photos]
    result = watermark_album_task(req.album_id, photos, req.watermark_text)
    logger.info("Queued album %s (%d photos) as task %s", req.album_id, len(photos), result.id)
    return {"taskId": result.id, "queued": len(photos)}


@app.get("/watermark/log")
def batch_log(
    limit: int = Query(default=50, ge=1, le=500),
    conn: sqlite3.Connection = Depends(get_conn),
):
    """Batch watermarking health: failure total plus the latest audit entries."""
    return {
        "failures": audit.failure_count(conn, "batch"),
        "items": audit.query(conn, component="batch", limit=limit),
    }


# ── CLI Entry Point ─────────────────────────────────────────────


def main():
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(app, host="127.0.0.1", port=8040, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
