from fastapi import APIRouter, Depends, UploadFile, File, Form, Request
from fastapi.responses import StreamingResponse
from typing import List, Optional
import json
import logging

from app.broadcast.bus import BroadcastBus, BroadcastEvent
from app.dependencies.dependencies import (
    get_broadcast_bus,
    get_catalog_service,
    get_settings,
    get_upload_pipeline,
)
from app.photo_wall.models import Blob, PhotoListResponse, UploadRequest, UploadResponse
from app.photo_wall.service import CatalogService, UploadPipeline
from app.settings import Settings

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["photo-wall"]
)

KEEPALIVE_FRAME = ": keep-alive\n\n"

def format_sse(event: BroadcastEvent) -> str:
    """Encodes one event as a Server-Sent Events frame."""
    data = json.dumps(event.payload, ensure_ascii=False, separators=(",", ":"))
    return f"event: {event.name}\ndata: {data}\n\n"

@router.get("/stream")
async def stream_events(
    bus: BroadcastBus = Depends(get_broadcast_bus),
    settings: Settings = Depends(get_settings),
):
    """
    Opens the live event channel.

    The first frame is ``hello``; every stored photo follows as ``new``.
    Nothing is replayed, so clients load ``/api/photos`` once connected.
    """
    subscriber = bus.subscribe()

    async def frames():
        try:
            async for event in subscriber.events(keepalive=settings.stream_keepalive_seconds):
                yield KEEPALIVE_FRAME if event is None else format_sse(event)
        finally:
            bus.unsubscribe(subscriber)

    return StreamingResponse(
        frames(),
        media_type="text/event-stream; charset=utf-8",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )

@router.get("/photos", response_model=PhotoListResponse)
def list_photos(catalog: CatalogService = Depends(get_catalog_service)):
    """Lists the wall, newest first."""
    return PhotoListResponse(items=catalog.list())

@router.post("/upload", response_model=UploadResponse)
async def upload_photos(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    uploader: Optional[str] = Form(None),
    pin: Optional[str] = Form(None),
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
):
    """Stores the uploaded images and announces each one on the live stream."""
    presented_pin = pin or request.query_params.get("pin") or request.headers.get("x-pin")
    parts = files or []

    # Bounds are checked on part headers before any part is read into memory
    pipeline.validate(UploadRequest(
        pin=presented_pin,
        files=[
            Blob(mime_type=f.content_type or "", size=f.size or 0, filename=f.filename)
            for f in parts
        ],
    ))

    blobs = []
    for f in parts:
        contents = await f.read()
        blobs.append(Blob(
            data=contents,
            mime_type=f.content_type or "",
            size=len(contents),
            filename=f.filename,
        ))

    uploaded = await pipeline.run(UploadRequest(
        uploader=uploader or "",
        pin=presented_pin,
        files=blobs,
    ))
    return UploadResponse(uploaded=uploaded)
