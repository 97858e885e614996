"""Provider factory: discriminator + config map -> provider instance."""
from typing import Optional

from filestore.exceptions import UnsupportedProviderError
from filestore.storage.base import BaseStorageProvider
from filestore.storage.local import LocalDiskProvider
from filestore.storage.remote import CloudDriveProvider, ObjectStorageProvider

PROVIDERS: dict[str, type[BaseStorageProvider]] = {
    "local": LocalDiskProvider,
    "s3": ObjectStorageProvider,
    "pcloud": CloudDriveProvider,
}


def create_provider(provider: str, config: Optional[dict] = None) -> BaseStorageProvider:
    """Build the provider registered under `provider`. No I/O beyond the provider constructor."""
    provider_cls = PROVIDERS.get(provider)
    if provider_cls is None:
        raise UnsupportedProviderError(f"Unsupported storage provider: {provider}")
    return provider_cls(config or {})
