"""FileRecord model - file and folder metadata (bytes live with a storage provider)."""
import uuid
from datetime import datetime
from sqlalchemy import String, BigInteger, Boolean, DateTime, JSON, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from filestore.models.base import Base, TimestampMixin


class FileRecord(Base, TimestampMixin):
    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    # Virtual parent directory, e.g. "/" or "/docs/2024"
    path: Mapped[str] = mapped_column(String(1000), nullable=False, default="/")
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    # Backend that wrote the bytes; historical, never updated
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    mime_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    owner_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # "metadata" is reserved on declarative classes
    file_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_files_path", "path"),
        Index("idx_files_path_name", "path", "name"),
        Index("idx_files_owner", "owner_id"),
        Index("idx_files_deleted", "is_deleted"),
    )
