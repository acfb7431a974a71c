from typing import List, Optional
import asyncio
import hmac
import logging

from app.broadcast.bus import BroadcastBus
from app.storage.gateway import StorageGateway
from app.photo_wall.models import ANONYMOUS, Blob, Photo, Rendition, StoredObject, UploadRequest
from app.exceptions import PinMismatchException, UploadValidationException
from app.settings import Settings

log = logging.getLogger(__name__)

CATALOG_LIMIT = 200
DISPLAY_RENDITION = Rendition(format="auto", quality="auto")
NEW_PHOTO_EVENT = "new"


def normalize_uploader(value) -> str:
    """Blank or missing uploader names become the anonymous sentinel."""
    name = (value or "").strip()
    return name or ANONYMOUS


def to_photo(gateway: StorageGateway, stored: StoredObject, uploader: str) -> Photo:
    """Builds the display record; the URL is always derived, never stored."""
    return Photo(
        id=stored.id,
        created_at=stored.created_at,
        width=stored.width,
        height=stored.height,
        uploader=uploader,
        url=gateway.url_for(stored.id, DISPLAY_RENDITION),
    )


class UploadPipeline:
    """
        Validates an upload, stores each file and announces it on the bus.

        Every photo is published as soon as it is stored. If the provider
        fails part way through, the photos stored before the failure stay
        stored and announced, and the caller only receives the error.
    """

    def __init__(self, gateway: StorageGateway, bus: BroadcastBus, settings: Settings):
        self.gateway = gateway
        self.bus = bus
        self.settings = settings

    def validate(self, request: UploadRequest):
        """Raises before any storage call if the request is not acceptable."""
        secret = self.settings.photo_wall_pin
        if secret:
            presented = (request.pin or "").strip()
            if not hmac.compare_digest(presented.encode(), secret.encode()):
                raise PinMismatchException()

        count = len(request.files)
        if count == 0:
            raise UploadValidationException("no_files")
        if count > self.settings.max_files_per_upload:
            raise UploadValidationException("too_many_files")

        for blob in request.files:
            if not (blob.mime_type or "").startswith("image/"):
                raise UploadValidationException("only_images_allowed")
        for blob in request.files:
            if blob.size > self.settings.max_file_bytes:
                raise UploadValidationException("file_too_large")

    async def run(self, request: UploadRequest) -> List[Photo]:
        self.validate(request)
        uploader = normalize_uploader(request.uploader)

        if self.settings.upload_concurrency <= 1:
            uploaded = []
            for blob in request.files:
                uploaded.append(await self._store_and_announce(blob, uploader))
            return uploaded

        # Bounded parallel storage: announce on completion, answer in request order.
        # Stores already running finish and are announced; files not started yet are skipped.
        semaphore = asyncio.Semaphore(self.settings.upload_concurrency)
        failed = asyncio.Event()

        async def bounded(blob: Blob) -> Optional[Photo]:
            async with semaphore:
                if failed.is_set():
                    return None
                try:
                    return await self._store_and_announce(blob, uploader)
                except Exception:
                    failed.set()
                    raise

        results = await asyncio.gather(
            *(bounded(blob) for blob in request.files), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results

    async def _store_and_announce(self, blob: Blob, uploader: str) -> Photo:
        stored = await asyncio.to_thread(
            self.gateway.store, blob.data, blob.mime_type, {"uploader": uploader}
        )
        photo = to_photo(self.gateway, stored, uploader)
        self.bus.publish(NEW_PHOTO_EVENT, {"item": photo.model_dump(mode="json")})
        log.info("Uploaded photo %s by %s", photo.id, uploader)
        return photo


class CatalogService:
    """Current photo list, read straight from the storage provider."""

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    def list(self) -> List[Photo]:
        objects = self.gateway.list(self.gateway.folder, max_results=CATALOG_LIMIT, order="desc")
        return [
            to_photo(self.gateway, obj, obj.metadata.get("uploader", ""))
            for obj in objects
        ]
