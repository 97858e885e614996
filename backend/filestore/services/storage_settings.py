"""Storage settings registry.

CRUD over named storage configurations plus activation. At most one config
is active at a time. Every path that can set `is_active` goes through
`_activation_lock` and writes the flag flip and the row change in a single
transaction, so neither sequential nor in-process concurrent calls can leave
two active rows behind. Separate processes are only serialized by the
database transaction itself.
"""
import asyncio
import logging
import uuid
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import case, desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from filestore.config import settings
from filestore.exceptions import ActiveConfigInUseError, NotFoundError, StorageValidationError
from filestore.models.base import utcnow
from filestore.models.storage_config import StorageConfig
from filestore.schemas.storage_config import StorageConfigCreate, StorageConfigUpdate
from filestore.storage.base import BaseStorageProvider, ConnectionTestResult
from filestore.storage.factory import create_provider

logger = logging.getLogger(__name__)

_activation_lock = asyncio.Lock()


def provider_for(config: StorageConfig) -> BaseStorageProvider:
    """Instantiate the provider described by a stored config."""
    return create_provider(config.provider, config.config or {})


async def list_storage_configs(db: AsyncSession) -> list[StorageConfig]:
    result = await db.execute(
        select(StorageConfig)
        .order_by(desc(StorageConfig.created_at))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_active_storage_config(db: AsyncSession) -> Optional[StorageConfig]:
    """Most recently created active config, or None."""
    result = await db.execute(
        select(StorageConfig)
        .where(StorageConfig.is_active.is_(True))
        .order_by(desc(StorageConfig.created_at))
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_storage_config(db: AsyncSession, config_id: uuid.UUID) -> Optional[StorageConfig]:
    # Bulk flag updates bypass the identity map, so always reload
    return await db.get(StorageConfig, config_id, populate_existing=True)


async def _require_config(db: AsyncSession, config_id: uuid.UUID) -> StorageConfig:
    config = await get_storage_config(db, config_id)
    if not config:
        raise NotFoundError("Storage settings not found")
    return config


def _check_provider_config(provider: str, config: dict) -> None:
    # Builds a throwaway instance so an unknown provider or bad options fail here,
    # not on the first upload
    create_provider(provider, config)


def _deactivate_all():
    return update(StorageConfig).where(StorageConfig.is_active.is_(True)).values(
        is_active=False, updated_at=utcnow()
    )


async def create_storage_config(db: AsyncSession, data: StorageConfigCreate | dict) -> StorageConfig:
    """Insert a config. If it is requested active, every other row is deactivated
    in the same transaction."""
    try:
        body = data if isinstance(data, StorageConfigCreate) else StorageConfigCreate.model_validate(data)
    except ValidationError as e:
        raise StorageValidationError(f"Validation error: {e}") from e
    _check_provider_config(body.provider, body.config)

    config = StorageConfig(**body.model_dump())
    async with _activation_lock:
        if config.is_active:
            await db.execute(_deactivate_all())
        db.add(config)
        await db.commit()
    await db.refresh(config)
    logger.info(f"Created storage config {config.id} ({config.provider}, active={config.is_active})")
    return config


async def update_storage_config(
    db: AsyncSession, config_id: uuid.UUID, data: StorageConfigUpdate | dict
) -> StorageConfig:
    try:
        body = data if isinstance(data, StorageConfigUpdate) else StorageConfigUpdate.model_validate(data)
    except ValidationError as e:
        raise StorageValidationError(f"Validation error: {e}") from e

    async with _activation_lock:
        config = await _require_config(db, config_id)
        update_data = body.model_dump(exclude_unset=True)
        if "provider" in update_data or "config" in update_data:
            _check_provider_config(
                update_data.get("provider", config.provider),
                update_data.get("config", config.config) or {},
            )

        if update_data.get("is_active"):
            await db.execute(_deactivate_all())
        for key, value in update_data.items():
            setattr(config, key, value)
        config.updated_at = utcnow()
        await db.commit()
    await db.refresh(config)
    return config


async def delete_storage_config(db: AsyncSession, config_id: uuid.UUID) -> bool:
    async with _activation_lock:
        config = await _require_config(db, config_id)
        if config.is_active:
            raise ActiveConfigInUseError(
                "Cannot delete active storage settings. Please activate another configuration first."
            )
        await db.delete(config)
        await db.commit()
    logger.info(f"Deleted storage config {config_id}")
    return True


async def activate_storage_config(db: AsyncSession, config_id: uuid.UUID) -> StorageConfig:
    """Make `config_id` the only active config with one conditional UPDATE."""
    async with _activation_lock:
        config = await _require_config(db, config_id)
        now = utcnow()
        await db.execute(
            update(StorageConfig)
            .where((StorageConfig.is_active.is_(True)) | (StorageConfig.id == config_id))
            .values(
                is_active=case((StorageConfig.id == config_id, True), else_=False),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    await db.refresh(config)
    logger.info(f"Activated storage config {config.id} ({config.provider})")
    return config


async def test_storage_connection(db: AsyncSession, config_id: uuid.UUID) -> ConnectionTestResult:
    config = await get_storage_config(db, config_id)
    if not config:
        return ConnectionTestResult(False, "Storage settings not found")
    try:
        provider = provider_for(config)
        return await provider.test_connection()
    except Exception as e:
        logger.error(f"Error testing storage connection for {config_id}: {e}")
        return ConnectionTestResult(False, f"Failed to test storage connection: {e}")


def default_local_config() -> StorageConfigCreate:
    return StorageConfigCreate(
        provider="local",
        name="Local Storage",
        description="Default local file storage",
        config={
            "basePath": settings.FILE_STORAGE_PATH,
            "baseUrl": settings.UPLOADS_URL_PREFIX,
            "maxFileSize": settings.DEFAULT_MAX_FILE_SIZE,
            "allowedMimeTypes": settings.allowed_mime_types,
            "maxFilesPerUpload": settings.DEFAULT_MAX_FILES_PER_UPLOAD,
            "enableThumbnails": True,
        },
        is_active=True,
    )


async def ensure_default_storage_config(db: AsyncSession) -> StorageConfig:
    """Return the active config, seeding the local default when none is active."""
    active = await get_active_storage_config(db)
    if active:
        return active
    logger.info("No active storage config, creating default local storage")
    return await create_storage_config(db, default_local_config())
