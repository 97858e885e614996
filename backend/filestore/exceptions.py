"""Error taxonomy for the storage subsystem.

Every error carries the HTTP status the route layer should answer with, so
services stay free of FastAPI imports.
"""


class StorageError(Exception):
    """Base class for storage catalog and provider errors."""
    status_code: int = 500
    code: str = "STORAGE_ERROR"


class StorageValidationError(StorageError):
    """Input rejected before any I/O (size, mime type, name, patch, path)."""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(StorageError):
    """Record is missing or already soft-deleted."""
    status_code = 404
    code = "NOT_FOUND"


class ActiveConfigInUseError(StorageError):
    """Attempt to delete the currently active storage configuration."""
    status_code = 409
    code = "ACTIVE_CONFIG_IN_USE"


class UnsupportedProviderError(StorageError):
    """Provider discriminator outside the known set."""
    status_code = 400
    code = "UNSUPPORTED_PROVIDER"


class NoActiveStorageError(StorageError):
    """No storage configuration is active."""
    status_code = 409
    code = "NO_ACTIVE_STORAGE"


class StorageIOError(StorageError):
    """Provider I/O failure that the caller must learn about."""
    status_code = 502
    code = "STORAGE_IO_ERROR"


class ProviderNotImplementedError(StorageError, NotImplementedError):
    """Provider exists in the contract but has no backing client yet."""
    status_code = 501
    code = "NOT_IMPLEMENTED"
