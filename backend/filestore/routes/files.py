"""Files API routes."""
from uuid import UUID
from typing import Literal, Optional
from fastapi import APIRouter, Depends, File as FastAPIFile, Form, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from filestore.database import get_db
from filestore.models.file_record import FileRecord
from filestore.schemas.file import (
    FileListResponse,
    FileMove,
    FileResponse,
    FileUpdate,
    FolderCreate,
    UploadResponse,
)
from filestore.services import file_catalog
from filestore.storage.base import FileUpload
from filestore.storage.paths import normalize_virtual_path

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("", response_model=FileListResponse)
async def list_files(
    path: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    type: Optional[Literal["file", "folder"]] = Query(None),
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """List a directory, or search by name when `search` is given.

    A search covers every directory unless `path` is passed, in which case it
    is limited to that directory (`/` included).
    """
    if search:
        results = await file_catalog.search_files(
            db, search,
            path=path,
            owner_id=owner_id, file_type=type, limit=limit,
        )
        return {
            "files": [_to_response(f) for f in results],
            "total_count": len(results),
            "has_more": False,
            "current_path": normalize_virtual_path(path),
        }

    listing = await file_catalog.list_files(
        db, path or "/", page=page, limit=limit, file_type=type, owner_id=owner_id,
    )
    return {
        "files": [_to_response(f) for f in listing.files],
        "total_count": listing.total_count,
        "has_more": listing.has_more,
        "current_path": listing.current_path,
    }


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_files(
    files: list[UploadFile] = FastAPIFile(...),
    path: str = Form("/"),
    owner_id: Optional[str] = Form(None, alias="ownerId"),
    db: AsyncSession = Depends(get_db),
):
    """Upload one or more files into `path`. Per-file failures come back in `errors`."""
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")

    uploads = []
    for file in files:
        contents = await file.read()
        uploads.append(FileUpload(
            name=file.filename or "",
            data=contents,
            mime_type=file.content_type or "application/octet-stream",
            size=len(contents),
        ))

    report = await file_catalog.upload_files(db, uploads, path=path, owner_id=owner_id)
    return {
        "uploaded_files": [_to_response(f) for f in report.uploaded_files],
        "errors": report.errors,
    }


@router.post("/folders", response_model=FileResponse, status_code=201)
async def create_folder(
    body: FolderCreate,
    db: AsyncSession = Depends(get_db),
):
    folder = await file_catalog.create_folder(db, body.name, body.path, body.owner_id)
    return _to_response(folder)


@router.get("/{file_id}", response_model=FileResponse)
async def get_file(
    file_id: UUID,
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    db: AsyncSession = Depends(get_db),
):
    """Get file metadata by ID."""
    record = await file_catalog.get_file_by_id(db, file_id, owner_id)
    if not record:
        raise HTTPException(status_code=404, detail="File not found")
    return _to_response(record)


@router.put("/{file_id}", response_model=FileResponse)
async def update_file(
    file_id: UUID,
    body: FileUpdate,
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    db: AsyncSession = Depends(get_db),
):
    """Update a file. Only provided fields are updated."""
    record = await file_catalog.update_file(db, file_id, body, owner_id)
    return _to_response(record)


@router.post("/{file_id}/move", response_model=FileResponse)
async def move_file(
    file_id: UUID,
    body: FileMove,
    db: AsyncSession = Depends(get_db),
):
    record = await file_catalog.move_file(db, file_id, body.new_path, body.owner_id)
    return _to_response(record)


@router.delete("/{file_id}")
async def delete_file(
    file_id: UUID,
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a file, or a folder and everything under it."""
    count = await file_catalog.delete_file(db, file_id, owner_id)
    return {"deleted": True, "id": str(file_id), "count": count}


def _to_response(record: FileRecord) -> dict:
    """Convert SQLAlchemy model to response dict."""
    permissions = getattr(record, "permissions", None)
    return {
        "id": record.id,
        "name": record.name,
        "path": record.path,
        "type": record.type,
        "provider": record.provider,
        "size": record.size or 0,
        "mime_type": record.mime_type,
        "url": record.url,
        "owner_id": record.owner_id,
        "metadata": record.file_metadata,
        "is_public": record.is_public,
        "is_deleted": record.is_deleted,
        "deleted_at": record.deleted_at,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "permissions": permissions,
    }
