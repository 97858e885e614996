"""StorageConfig model - named storage backend configurations.

At most one row is active. That is maintained by the settings registry
(filestore.services.storage_settings), not by a table constraint.
"""
import uuid
from sqlalchemy import String, Text, Boolean, JSON, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from filestore.models.base import Base, TimestampMixin


class StorageConfig(Base, TimestampMixin):
    __tablename__ = "storage_configs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    config: Mapped[dict] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("idx_storage_configs_active", "is_active"),
        Index("idx_storage_configs_provider", "provider"),
    )
