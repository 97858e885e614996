"""Storage settings API routes."""
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from filestore.database import get_db
from filestore.schemas.storage_config import (
    ConnectionTestResponse,
    StorageConfigCreate,
    StorageConfigResponse,
    StorageConfigUpdate,
)
from filestore.services import storage_settings as registry

router = APIRouter(prefix="/api/storage-settings", tags=["storage-settings"])


@router.get("", response_model=list[StorageConfigResponse])
async def list_storage_settings(
    active_only: bool = Query(False, alias="activeOnly"),
    db: AsyncSession = Depends(get_db),
):
    """List storage configurations, newest first."""
    if active_only:
        active = await registry.get_active_storage_config(db)
        return [active] if active else []
    return await registry.list_storage_configs(db)


@router.get("/active", response_model=StorageConfigResponse)
async def get_active_storage_settings(db: AsyncSession = Depends(get_db)):
    config = await registry.get_active_storage_config(db)
    if not config:
        raise HTTPException(status_code=404, detail="No active storage settings")
    return config


@router.get("/{config_id}", response_model=StorageConfigResponse)
async def get_storage_settings(config_id: UUID, db: AsyncSession = Depends(get_db)):
    config = await registry.get_storage_config(db, config_id)
    if not config:
        raise HTTPException(status_code=404, detail="Storage settings not found")
    return config


@router.post("", response_model=StorageConfigResponse, status_code=201)
async def create_storage_settings(
    body: StorageConfigCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a configuration. `isActive: true` deactivates every other one."""
    return await registry.create_storage_config(db, body)


@router.put("/{config_id}", response_model=StorageConfigResponse)
async def update_storage_settings(
    config_id: UUID,
    body: StorageConfigUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await registry.update_storage_config(db, config_id, body)


@router.delete("/{config_id}")
async def delete_storage_settings(config_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete an inactive configuration."""
    await registry.delete_storage_config(db, config_id)
    return {"deleted": True, "id": str(config_id)}


@router.post("/{config_id}/activate", response_model=StorageConfigResponse)
async def activate_storage_settings(config_id: UUID, db: AsyncSession = Depends(get_db)):
    return await registry.activate_storage_config(db, config_id)


@router.post("/{config_id}/test", response_model=ConnectionTestResponse)
async def test_storage_settings(config_id: UUID, db: AsyncSession = Depends(get_db)):
    """Round-trip a marker through the configured backend."""
    result = await registry.test_storage_connection(db, config_id)
    return {"success": result.success, "message": result.message}
