"""Remote storage providers: S3-compatible object storage and pCloud drive.

Both satisfy the full provider contract but have no client wired in yet.
Uploads still run the shared validation first so a bad blob is reported as
a validation error rather than a missing backend.
"""
from typing import Any, Optional

from filestore.exceptions import ProviderNotImplementedError
from filestore.schemas.storage_config import CloudDriveOptions, ObjectStorageOptions
from filestore.storage.base import BaseStorageProvider, ConnectionTestResult, FileUpload, UploadResult


class _UnimplementedRemoteProvider(BaseStorageProvider):
    label = "Remote"

    def _unavailable(self):
        return ProviderNotImplementedError(f"{self.label} provider not yet implemented")

    async def upload(self, file: FileUpload, path: str) -> UploadResult:
        self.validate_file(file)
        raise self._unavailable()

    async def delete(self, path: str) -> bool:
        raise self._unavailable()

    async def get_url(self, path: str) -> str:
        raise self._unavailable()

    async def exists(self, path: str) -> bool:
        raise self._unavailable()

    async def move(self, from_path: str, to_path: str) -> bool:
        raise self._unavailable()

    async def copy(self, from_path: str, to_path: str) -> bool:
        raise self._unavailable()

    async def get_metadata(self, path: str) -> Optional[dict[str, Any]]:
        raise self._unavailable()

    async def test_connection(self) -> ConnectionTestResult:
        return ConnectionTestResult(False, f"{self.label} connection testing not yet implemented")

    async def list(self, path: str, recursive: bool = False) -> list[str]:
        raise self._unavailable()


class ObjectStorageProvider(_UnimplementedRemoteProvider):
    name = "s3"
    label = "S3"
    options_model = ObjectStorageOptions


class CloudDriveProvider(_UnimplementedRemoteProvider):
    name = "pcloud"
    label = "pCloud"
    options_model = CloudDriveOptions
