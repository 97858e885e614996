"""Storage provider contract.

Every backend (local disk, object storage, cloud drive) implements the same
async capability set, so the catalog and the settings registry never need to
know which one is active.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from filestore.exceptions import StorageValidationError
from filestore.schemas.storage_config import ProviderOptions
from filestore.storage.paths import sanitize_path


@dataclass
class FileUpload:
    """An in-memory blob handed over by an upload endpoint."""
    name: str
    data: bytes
    mime_type: str
    size: int


@dataclass
class UploadResult:
    url: str
    path: str
    size: int
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ConnectionTestResult:
    success: bool
    message: str


class BaseStorageProvider(ABC):
    """Abstract base class for storage backends."""

    # Discriminator stored on StorageConfig.provider and FileRecord.provider
    name: str = ""
    options_model: type[ProviderOptions] = ProviderOptions

    def __init__(self, config: Optional[dict] = None):
        try:
            self.options = self.options_model.model_validate(config or {})
        except ValidationError as e:
            raise StorageValidationError(f"Invalid {self.name or 'storage'} config: {e}") from e

    @abstractmethod
    async def upload(self, file: FileUpload, path: str) -> UploadResult:
        """Write a blob to `path`. Failures propagate to the caller."""

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Remove the object at `path`. An absent object counts as deleted."""

    @abstractmethod
    async def get_url(self, path: str) -> str:
        """Public URL for the object at `path`."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    async def move(self, from_path: str, to_path: str) -> bool:
        pass

    @abstractmethod
    async def copy(self, from_path: str, to_path: str) -> bool:
        pass

    @abstractmethod
    async def list(self, path: str, recursive: bool = False) -> list[str]:
        """Relative paths of the files under `path` (whole subtree if recursive)."""

    @abstractmethod
    async def get_metadata(self, path: str) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    async def test_connection(self) -> ConnectionTestResult:
        """Round-trip check used by the settings registry."""

    @property
    def max_files_per_upload(self) -> Optional[int]:
        return self.options.max_files_per_upload

    def validate_file(self, file: FileUpload) -> None:
        """Reject a blob before any I/O happens."""
        max_size = self.options.max_file_size
        allowed = self.options.allowed_mime_types

        if file.size > max_size:
            raise StorageValidationError(
                f"File size exceeds maximum allowed size of {max_size} bytes"
            )
        if allowed and file.mime_type not in allowed:
            raise StorageValidationError(f"File type {file.mime_type} is not allowed")
        if not file.name or not file.name.strip():
            raise StorageValidationError("File name is required")

    def sanitize_path(self, path: str) -> str:
        return sanitize_path(path)
