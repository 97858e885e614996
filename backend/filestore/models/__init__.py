"""Import all models so SQLAlchemy metadata knows about them."""
from filestore.models.base import Base
from filestore.models.file_record import FileRecord
from filestore.models.file_permission import FilePermission
from filestore.models.storage_config import StorageConfig

__all__ = ["Base", "FileRecord", "FilePermission", "StorageConfig"]
