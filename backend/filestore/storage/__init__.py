"""Storage provider abstraction and concrete backends."""
from filestore.storage.base import BaseStorageProvider, ConnectionTestResult, FileUpload, UploadResult
from filestore.storage.factory import PROVIDERS, create_provider
from filestore.storage.local import LocalDiskProvider
from filestore.storage.remote import CloudDriveProvider, ObjectStorageProvider

__all__ = [
    "BaseStorageProvider", "ConnectionTestResult", "FileUpload", "UploadResult",
    "LocalDiskProvider", "ObjectStorageProvider", "CloudDriveProvider",
    "PROVIDERS", "create_provider",
]
