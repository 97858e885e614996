"""File catalog.

Keeps one FileRecord per file or folder and drives whichever storage provider
is active at call time. The catalog is authoritative: metadata is committed
first and physical cleanup on the provider is best-effort.

Folders are virtual. A folder named "docs" at "/" owns every record whose
path is "/docs" or starts with "/docs/".
"""
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import case, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from filestore.exceptions import (
    NoActiveStorageError,
    NotFoundError,
    StorageError,
    StorageIOError,
    StorageValidationError,
)
from filestore.models.base import utcnow
from filestore.models.file_permission import FilePermission
from filestore.models.file_record import FileRecord
from filestore.models.storage_config import StorageConfig
from filestore.schemas.file import FileRecordCreate, FileUpdate, UploadError
from filestore.services.storage_settings import get_active_storage_config, provider_for
from filestore.storage.base import BaseStorageProvider, FileUpload
from filestore.storage.paths import (
    contains_traversal,
    generate_safe_name,
    is_within,
    join_path,
    normalize_virtual_path,
    sanitize_path,
)

logger = logging.getLogger(__name__)

# Folders carry no bytes; the discriminator only satisfies the column
FOLDER_PROVIDER = "local"


@dataclass
class FileListResult:
    files: list[FileRecord]
    total_count: int
    has_more: bool
    current_path: str


@dataclass
class UploadReport:
    uploaded_files: list[FileRecord] = field(default_factory=list)
    errors: list[UploadError] = field(default_factory=list)


async def get_active_provider(db: AsyncSession) -> tuple[BaseStorageProvider, StorageConfig]:
    config = await get_active_storage_config(db)
    if not config:
        raise NoActiveStorageError("No active storage provider configured")
    return provider_for(config), config


async def _provider_or_none(db: AsyncSession) -> Optional[BaseStorageProvider]:
    try:
        provider, _ = await get_active_provider(db)
    except StorageError as e:
        logger.warning(f"Skipping storage cleanup: {e}")
        return None
    return provider


def _as_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _clean_dir(path: Optional[str]) -> str:
    if contains_traversal(path or ""):
        raise StorageValidationError(f"Path traversal is not allowed: {path}")
    return normalize_virtual_path(path)


def _active(owner_id: Optional[str] = None) -> list:
    conditions = [FileRecord.is_deleted.is_(False)]
    if owner_id:
        conditions.append(FileRecord.owner_id == owner_id)
    return conditions


def _storage_path(record: FileRecord) -> str:
    """Provider-relative location of a file's bytes."""
    stored = (record.file_metadata or {}).get("storagePath")
    return stored or sanitize_path(join_path(record.path, record.name))


def _new_record(body: FileRecordCreate) -> FileRecord:
    values = body.model_dump()
    values["file_metadata"] = values.pop("metadata")
    return FileRecord(**values)


def _unique_safe_name(original_name: str, used: set[str]) -> str:
    """Safe name that is also distinct from every name already used in this batch."""
    timestamp = time.time_ns() // 1_000_000
    name = generate_safe_name(original_name, timestamp)
    while name in used:
        timestamp += 1
        name = generate_safe_name(original_name, timestamp)
    used.add(name)
    return name


def _check_entry_name(name: Optional[str]) -> str:
    """A single path segment: non-empty, no '/', not '.' or '..'."""
    name = (name or "").strip()
    if not name or "/" in name or name in (".", ".."):
        raise StorageValidationError("Name is required and cannot be '.', '..' or contain '/'")
    return name


async def _ensure_folder_free(
    db: AsyncSession,
    path: str,
    name: str,
    owner_id: Optional[str],
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    """Reject a second active folder with the same name, path and owner."""
    conditions = [
        FileRecord.path == path,
        FileRecord.name == name,
        FileRecord.type == "folder",
        FileRecord.owner_id == owner_id,
        FileRecord.is_deleted.is_(False),
    ]
    if exclude_id is not None:
        conditions.append(FileRecord.id != exclude_id)
    existing = await db.scalar(select(func.count()).select_from(FileRecord).where(*conditions))
    if existing:
        raise StorageValidationError(f"Folder {join_path(path, name)} already exists")


async def _records_under(
    db: AsyncSession, prefix: str, owner_id: Optional[str] = None
) -> list[FileRecord]:
    """Active records whose path is `prefix` or lies below it."""
    result = await db.execute(
        select(FileRecord).where(
            or_(
                FileRecord.path == prefix,
                FileRecord.path.startswith(prefix + "/", autoescape=True),
            ),
            *_active(owner_id),
        )
    )
    return list(result.scalars().all())


async def _cascade_prefix(
    db: AsyncSession, old_prefix: str, new_prefix: str, owner_id: Optional[str] = None
) -> int:
    """Rewrite the paths of every descendant of a renamed or moved folder."""
    now = utcnow()
    children = await _records_under(db, old_prefix, owner_id)
    for child in children:
        child.path = new_prefix + child.path[len(old_prefix):]
        child.updated_at = now
    return len(children)


async def list_files(
    db: AsyncSession,
    path: str = "/",
    page: int = 1,
    limit: int = 50,
    file_type: Optional[str] = None,
    owner_id: Optional[str] = None,
) -> FileListResult:
    """One page of the active records directly at `path`, folders first, newest first."""
    if page < 1 or limit < 1:
        raise StorageValidationError("page and limit must be positive")
    path = normalize_virtual_path(path)

    conditions = [FileRecord.path == path, *_active(owner_id)]
    if file_type:
        conditions.append(FileRecord.type == file_type)

    total = await db.scalar(select(func.count()).select_from(FileRecord).where(*conditions))
    result = await db.execute(
        select(FileRecord)
        .where(*conditions)
        .order_by(
            case((FileRecord.type == "folder", 0), else_=1),
            desc(FileRecord.created_at),
        )
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return FileListResult(
        files=list(result.scalars().all()),
        total_count=total or 0,
        has_more=page * limit < (total or 0),
        current_path=path,
    )


async def get_file_by_id(
    db: AsyncSession, file_id, owner_id: Optional[str] = None
) -> Optional[FileRecord]:
    """Active record by id, or None.

    With `owner_id` the record must belong to that owner, and the owner's
    FilePermission rows are attached as `record.permissions`. Without it no
    ownership or permission filtering happens; that form is for trusted
    internal callers.
    """
    record_id = _as_uuid(file_id)
    if record_id is None:
        return None
    result = await db.execute(
        select(FileRecord)
        .where(FileRecord.id == record_id, *_active(owner_id))
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if not record:
        return None

    record.permissions = None
    if owner_id:
        permissions = await db.execute(
            select(FilePermission).where(
                FilePermission.file_id == record.id,
                FilePermission.user_id == owner_id,
            )
        )
        record.permissions = list(permissions.scalars().all())
    return record


async def upload_files(
    db: AsyncSession,
    uploads: list[FileUpload],
    path: str = "/",
    owner_id: Optional[str] = None,
) -> UploadReport:
    """Write each blob through the active provider and catalog it.

    Each blob succeeds or fails on its own; failures are reported by original
    filename and never abort the rest of the batch.
    """
    path = _clean_dir(path)
    provider, config = await get_active_provider(db)

    max_files = provider.max_files_per_upload
    if max_files and len(uploads) > max_files:
        raise StorageValidationError(f"Too many files: at most {max_files} per upload")

    report = UploadReport()
    used_names: set[str] = set()

    for upload in uploads:
        try:
            safe_name = _unique_safe_name(upload.name, used_names)
            result = await provider.upload(upload, join_path(path, safe_name))
            body = FileRecordCreate(
                name=safe_name,
                path=path,
                type="file",
                provider=config.provider,
                size=upload.size,
                mime_type=upload.mime_type,
                url=result.url,
                owner_id=owner_id,
                metadata={
                    "originalName": upload.name,
                    "uploadedAt": utcnow().isoformat(),
                    **result.metadata,
                    "storagePath": result.path,
                },
            )
        except Exception as e:
            logger.error(f"Error uploading file {upload.name}: {e}")
            report.errors.append(_upload_error(upload.name, e))
            continue

        try:
            record = _new_record(body)
            db.add(record)
            await db.commit()
            await db.refresh(record)
        except Exception as e:
            logger.error(f"Error cataloging file {upload.name}: {e}")
            await db.rollback()
            # Rollback expires everything already returned in this batch
            for done in report.uploaded_files:
                await db.refresh(done)
            report.errors.append(_upload_error(upload.name, e))
            continue
        report.uploaded_files.append(record)

    logger.info(
        f"Uploaded {len(report.uploaded_files)} file(s) to {path} "
        f"via {config.provider} ({len(report.errors)} error(s))"
    )
    return report


def _upload_error(filename: str, error: Exception) -> UploadError:
    return UploadError(
        filename=filename,
        error=str(error) or type(error).__name__,
        code=getattr(error, "code", type(error).__name__),
    )


async def _remove_bytes(provider: Optional[BaseStorageProvider], record: FileRecord) -> None:
    if provider is None:
        return
    storage_path = _storage_path(record)
    try:
        removed = await provider.delete(storage_path)
    except Exception as e:
        logger.error(f"Error deleting {storage_path} from storage provider: {e}")
        return
    if not removed:
        logger.warning(f"Storage provider did not delete {storage_path}")


async def delete_file(db: AsyncSession, file_id, owner_id: Optional[str] = None) -> int:
    """Soft-delete a record; folders take every descendant with them.

    Returns the number of records soft-deleted. Raises NotFoundError when the
    record is missing or already deleted.
    """
    record = await get_file_by_id(db, file_id, owner_id)
    if not record:
        raise NotFoundError("File not found")

    targets = [record]
    if record.type == "folder":
        prefix = join_path(record.path, record.name)
        targets = await _records_under(db, prefix, owner_id) + [record]

    now = utcnow()
    await db.execute(
        update(FileRecord)
        .where(FileRecord.id.in_([t.id for t in targets]))
        .values(is_deleted=True, deleted_at=now, updated_at=now)
    )
    await db.commit()

    files = [t for t in targets if t.type == "file"]
    if files:
        provider = await _provider_or_none(db)
        for item in files:
            await _remove_bytes(provider, item)

    logger.info(f"Soft-deleted {len(targets)} record(s) starting at {record.id}")
    return len(targets)


async def update_file(
    db: AsyncSession, file_id, patch: FileUpdate | dict, owner_id: Optional[str] = None
) -> FileRecord:
    """Apply a validated partial update. Metadata keys are merged, not replaced."""
    try:
        body = patch if isinstance(patch, FileUpdate) else FileUpdate.model_validate(patch)
    except ValidationError as e:
        raise StorageValidationError(f"Validation error: {e}") from e
    update_data = body.model_dump(exclude_unset=True)
    new_name = update_data.get("name")
    if new_name is not None:
        new_name = update_data["name"] = _check_entry_name(new_name)

    record = await get_file_by_id(db, file_id, owner_id)
    if not record:
        raise NotFoundError("File not found")

    if new_name and record.type == "folder" and new_name != record.name:
        await _ensure_folder_free(db, record.path, new_name, record.owner_id, exclude_id=record.id)
        await _cascade_prefix(
            db,
            join_path(record.path, record.name),
            join_path(record.path, new_name),
            owner_id,
        )
    if "metadata" in update_data:
        record.file_metadata = {**(record.file_metadata or {}), **(update_data.pop("metadata") or {})}
    for key, value in update_data.items():
        if value is not None:
            setattr(record, key, value)
    record.updated_at = utcnow()

    await db.commit()
    await db.refresh(record)
    return record


async def create_folder(
    db: AsyncSession, name: str, path: str = "/", owner_id: Optional[str] = None
) -> FileRecord:
    """Insert a zero-size folder record. No provider is involved."""
    name = _check_entry_name(name)
    path = _clean_dir(path)
    await _ensure_folder_free(db, path, name, owner_id)

    try:
        body = FileRecordCreate(
            name=name,
            path=path,
            type="folder",
            provider=FOLDER_PROVIDER,
            size=0,
            owner_id=owner_id,
            metadata={"createdAt": utcnow().isoformat()},
        )
    except ValidationError as e:
        raise StorageValidationError(f"Validation error: {e}") from e

    folder = _new_record(body)
    db.add(folder)
    await db.commit()
    await db.refresh(folder)
    return folder


async def move_file(
    db: AsyncSession, file_id, new_path: str, owner_id: Optional[str] = None
) -> FileRecord:
    """Move a record under `new_path`.

    Files are moved on the active provider first and the row changes only if
    that succeeds. Folders are virtual: their own path changes and every
    descendant's path is rewritten to the new prefix.
    """
    new_path = _clean_dir(new_path)
    record = await get_file_by_id(db, file_id, owner_id)
    if not record:
        raise NotFoundError("File not found")

    if record.type == "folder":
        old_prefix = join_path(record.path, record.name)
        if is_within(new_path, old_prefix):
            raise StorageValidationError("Cannot move a folder into itself")
        if new_path != record.path:
            await _ensure_folder_free(db, new_path, record.name, record.owner_id, exclude_id=record.id)
        moved = await _cascade_prefix(db, old_prefix, join_path(new_path, record.name), owner_id)
        logger.info(f"Moved folder {old_prefix} to {new_path} with {moved} descendant(s)")
    else:
        provider, _ = await get_active_provider(db)
        old_storage = _storage_path(record)
        new_storage = sanitize_path(join_path(new_path, record.name))
        if new_storage != old_storage:
            if await provider.exists(new_storage):
                raise StorageValidationError(f"A file already exists at {new_storage}")
            if not await provider.move(old_storage, new_storage):
                raise StorageIOError("Failed to move file in storage")
            record.url = await provider.get_url(new_storage)
            record.file_metadata = {**(record.file_metadata or {}), "storagePath": new_storage}

    record.path = new_path
    record.updated_at = utcnow()
    await db.commit()
    await db.refresh(record)
    return record


async def search_files(
    db: AsyncSession,
    query: str,
    path: Optional[str] = None,
    owner_id: Optional[str] = None,
    file_type: Optional[str] = None,
    limit: int = 50,
) -> list[FileRecord]:
    """Case-insensitive literal substring match on name among active records."""
    conditions = [FileRecord.name.icontains(query or "", autoescape=True), *_active(owner_id)]
    if path:
        conditions.append(FileRecord.path == normalize_virtual_path(path))
    if file_type:
        conditions.append(FileRecord.type == file_type)

    result = await db.execute(
        select(FileRecord)
        .where(*conditions)
        .order_by(desc(FileRecord.created_at))
        .limit(limit)
    )
    return list(result.scalars().all())
