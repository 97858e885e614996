"""Storage configuration request/response schemas and provider option maps."""
import uuid
from typing import Literal, Optional
from datetime import datetime
from pydantic import Field, model_validator
from filestore.schemas.base import CamelModel, CamelORMModel

ProviderName = Literal["local", "s3", "pcloud"]

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB


class ProviderOptions(CamelModel):
    """Settings every provider understands. Unknown keys are kept as-is."""
    model_config = {**CamelModel.model_config, "extra": "allow"}

    max_file_size: int = Field(DEFAULT_MAX_FILE_SIZE, gt=0)
    allowed_mime_types: list[str] = []
    max_files_per_upload: Optional[int] = Field(None, gt=0)
    enable_thumbnails: bool = False


class LocalStorageOptions(ProviderOptions):
    base_path: str = "./uploads"
    base_url: str = "/uploads"


class ObjectStorageOptions(ProviderOptions):
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: Optional[str] = None
    bucket: Optional[str] = None
    endpoint: Optional[str] = None


class CloudDriveOptions(ProviderOptions):
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class StorageConfigCreate(CamelModel):
    provider: ProviderName
    name: str = Field(min_length=1)
    description: Optional[str] = None
    config: dict = {}
    is_active: bool = False


class StorageConfigUpdate(CamelModel):
    provider: Optional[ProviderName] = None
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    config: Optional[dict] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _reject_nulls(self):
        # description is the only nullable column
        nulls = [f for f in ("provider", "name", "config", "is_active")
                 if f in self.model_fields_set and getattr(self, f) is None]
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self


class StorageConfigResponse(CamelORMModel):
    id: uuid.UUID
    provider: str
    name: str
    description: Optional[str] = None
    config: dict = {}
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ConnectionTestResponse(CamelModel):
    success: bool
    message: str
