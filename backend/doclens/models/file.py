"""DocLens File Model

Per-user uploaded documents. The bytes live in S3; MongoDB keeps the key and
metadata so the user can list and re-download their files.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List
from datetime import datetime, timezone
from enum import Enum
import uuid


# Upper bound enforced by the presigned POST policy
MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024


class FileType(str, Enum):
    JPEG = "image/jpeg"
    PNG = "image/png"
    PDF = "application/pdf"
    TEXT = "text/*"
    QUICKTIME = "video/quicktime"
    MP4 = "video/mp4"


class StoredFile(BaseModel):
    file_id: str = Field(default_factory=lambda: f"DLF-{uuid.uuid4().hex[:12].upper()}")
    user_id: str
    name: str
    key: str
    type: FileType
    upload_url: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"extra": "ignore", "use_enum_values": True}


class CreateFileRequest(BaseModel):
    file_type: FileType
    file_name: str = Field(min_length=1)


class CreateFileResponse(BaseModel):
    """Presigned POST target: the client posts the file with these form fields."""
    upload_url: str
    upload_fields: Dict[str, Any]


class FileListResponse(BaseModel):
    files: List[StoredFile]


class DownloadUrlResponse(BaseModel):
    url: str
