from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from io import BytesIO
from uuid import uuid4
import logging
from PIL import Image, UnidentifiedImageError
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.s3 import S3Service
from app.storage.dynamodb import DynamoDBService
from app.photo_wall.models import StoredObject, Rendition
from app.exceptions import ProviderException

log = logging.getLogger(__name__)

# Fixed width so that string order on the index equals time order
CREATED_AT_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

def new_photo_key() -> str:
    """Generates a new unique photo key."""
    return uuid4().hex

def format_created_at(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(CREATED_AT_FORMAT)

def parse_created_at(value: str) -> datetime:
    return datetime.strptime(value, CREATED_AT_FORMAT).replace(tzinfo=timezone.utc)

def measure_image(data: bytes) -> Tuple[int, int]:
    """Reads width and height from the image header."""
    try:
        with Image.open(BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        log.warning(f"Could not read image dimensions: {e}")
        raise ProviderException("Invalid image file")


class StorageGateway:
    """
        Object storage for the photo wall.

        Image bytes live in S3, one record per photo lives in DynamoDB and is
        queried by folder in creation order. The gateway holds no local copy
        of what has been stored.
    """

    def __init__(self, s3: S3Service, db: DynamoDBService, folder: str):
        self.s3 = s3
        self.db = db
        self.folder = folder

    def store(self, data: bytes, mime_type: str, metadata: Dict[str, str]) -> StoredObject:
        width, height = measure_image(data)
        stored = StoredObject(
            id=f"{self.folder}/{new_photo_key()}",
            created_at=datetime.now(timezone.utc),
            width=width,
            height=height,
            metadata=dict(metadata),
        )
        try:
            self.s3.upload(fileobj=BytesIO(data), key=stored.id, content_type=mime_type)
            self.db.put_metadata({
                "photo_id": stored.id,
                "folder": self.folder,
                "created_at": format_created_at(stored.created_at),
                "width": width,
                "height": height,
                "content_type": mime_type,
                "size": len(data),
                **stored.metadata,
            })
        except (BotoCoreError, ClientError) as e:
            log.error(f"Storing {stored.id} failed: {e}")
            raise ProviderException(str(e))
        log.info("Stored photo %s (%dx%d)", stored.id, width, height)
        return stored

    def list(self, folder: Optional[str] = None, max_results: int = 200, order: str = "desc") -> List[StoredObject]:
        try:
            items = self.db.query_folder(
                folder or self.folder,
                limit=max_results,
                newest_first=(order == "desc"),
            )
        except (BotoCoreError, ClientError) as e:
            log.error(f"Listing folder failed: {e}")
            raise ProviderException(str(e))
        return [self._to_stored(it) for it in items]

    def url_for(self, photo_id: str, rendition: Optional[Rendition] = None) -> str:
        if self.s3.settings.cdn_base_url:
            params = rendition.model_dump() if rendition else None
            return self.s3.public_url(photo_id, params)
        # S3 serves the original bytes; renditions need a CDN in front
        return self.s3.generate_presigned_url(photo_id)

    def close(self):
        self.s3.close()
        self.db.close()

    @staticmethod
    def _to_stored(item) -> StoredObject:
        metadata = {}
        if item.get("uploader") is not None:
            metadata["uploader"] = str(item["uploader"])
        return StoredObject(
            id=item["photo_id"],
            created_at=parse_created_at(item["created_at"]),
            width=int(item.get("width", 0)),
            height=int(item.get("height", 0)),
            metadata=metadata,
        )
