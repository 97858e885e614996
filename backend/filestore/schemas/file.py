"""File catalog request/response schemas."""
import uuid
from typing import Literal, Optional
from datetime import datetime
from pydantic import Field
from filestore.schemas.base import CamelModel, CamelORMModel, StrictCamelModel

FileType = Literal["file", "folder"]


class FileRecordCreate(CamelModel):
    """Validated shape of a catalog row before insert."""
    name: str = Field(min_length=1)
    path: str = Field(min_length=1)
    type: FileType
    provider: Literal["local", "s3", "pcloud"]
    size: int = Field(0, ge=0)
    mime_type: Optional[str] = None
    url: Optional[str] = None
    owner_id: Optional[str] = None
    metadata: dict = {}


class FileUpdate(StrictCamelModel):
    """Partial update. Paths change only through a move."""
    name: Optional[str] = Field(None, min_length=1)
    mime_type: Optional[str] = None
    metadata: Optional[dict] = None
    is_public: Optional[bool] = None


class FolderCreate(CamelModel):
    name: str = Field(min_length=1)
    path: str = "/"
    owner_id: Optional[str] = None


class FileMove(CamelModel):
    new_path: str = Field(min_length=1)
    owner_id: Optional[str] = None


class FilePermissionResponse(CamelORMModel):
    id: uuid.UUID
    file_id: uuid.UUID
    user_id: Optional[str] = None
    can_read: bool = False
    can_write: bool = False
    can_delete: bool = False
    can_share: bool = False
    granted_by: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime


class FileResponse(CamelORMModel):
    id: uuid.UUID
    name: str
    path: str
    type: FileType
    provider: str
    size: int = 0
    mime_type: Optional[str] = None
    url: Optional[str] = None
    owner_id: Optional[str] = None
    metadata: Optional[dict] = None
    is_public: bool = False
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    permissions: Optional[list[FilePermissionResponse]] = None


class FileListResponse(CamelModel):
    files: list[FileResponse]
    total_count: int
    has_more: bool
    current_path: str


class UploadError(CamelModel):
    filename: str
    error: str
    code: Optional[str] = None


class UploadResponse(CamelModel):
    uploaded_files: list[FileResponse]
    errors: list[UploadError]
