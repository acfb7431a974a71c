from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

ANONYMOUS = "anonymous"

class Blob(BaseModel):
    data: bytes = b""
    mime_type: str
    size: int
    filename: Optional[str] = None

class UploadRequest(BaseModel):
    uploader: str = ANONYMOUS
    pin: Optional[str] = None
    files: List[Blob] = []

class StoredObject(BaseModel):
    """What the storage provider knows about one stored image."""
    id: str
    created_at: datetime
    width: int
    height: int
    metadata: Dict[str, str] = {}

class Rendition(BaseModel):
    format: str = "auto"
    quality: str = "auto"

class Photo(BaseModel):
    id: str
    created_at: datetime
    width: int
    height: int
    uploader: str
    url: str

class UploadResponse(BaseModel):
    ok: bool = True
    uploaded: List[Photo]

class PhotoListResponse(BaseModel):
    ok: bool = True
    items: List[Photo] = Field(default_factory=list)
