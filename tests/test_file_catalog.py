import re
import uuid
from unittest.mock import patch

import pytest

from filestore.exceptions import (
    NoActiveStorageError,
    NotFoundError,
    ProviderNotImplementedError,
    StorageIOError,
    StorageValidationError,
)
from filestore.models.file_permission import FilePermission
from filestore.services import file_catalog
from filestore.services import storage_settings as registry
from filestore.storage.local import LocalDiskProvider
from tests.conftest import make_upload


async def upload_one(db, name="avatar.png", path="/", owner_id=None, **kwargs):
    report = await file_catalog.upload_files(db, [make_upload(name, **kwargs)], path=path, owner_id=owner_id)
    assert report.errors == []
    return report.uploaded_files[0]


# --- upload ---

async def test_upload_avatar(db, active_local, storage_root):
    report = await file_catalog.upload_files(db, [make_upload("avatar.png", size=2048)])

    assert report.errors == []
    record = report.uploaded_files[0]
    assert re.fullmatch(r"avatar_\d+\.png", record.name)
    assert record.url == f"/uploads/{record.name}"
    assert record.path == "/"
    assert record.type == "file"
    assert record.provider == "local"
    assert record.size == 2048
    assert record.mime_type == "image/png"
    assert record.is_deleted is False
    assert record.file_metadata["originalName"] == "avatar.png"
    assert record.file_metadata["storagePath"] == record.name
    assert (storage_root / record.name).stat().st_size == 2048


async def test_upload_into_subdirectory(db, active_local, storage_root):
    record = await upload_one(db, "doc.txt", path="docs//2024/", mime_type="text/plain", size=3)

    assert record.path == "/docs/2024"
    assert record.url == f"/uploads/docs/2024/{record.name}"
    assert (storage_root / "docs" / "2024" / record.name).exists()


async def test_oversize_file_reported_by_filename(db, active_local):
    report = await file_catalog.upload_files(
        db, [make_upload("ok.png", size=10), make_upload("huge.png", size=5000)]
    )

    assert [r.file_metadata["originalName"] for r in report.uploaded_files] == ["ok.png"]
    assert len(report.errors) == 1
    assert report.errors[0].filename == "huge.png"
    assert report.errors[0].code == "VALIDATION_ERROR"
    assert "exceeds maximum" in report.errors[0].error


async def test_same_name_in_one_batch_gets_distinct_names(db, active_local, storage_root):
    report = await file_catalog.upload_files(db, [make_upload("photo.png", size=1), make_upload("photo.png", size=2)])

    names = [r.name for r in report.uploaded_files]
    assert len(set(names)) == 2
    assert sorted((storage_root / n).stat().st_size for n in names) == [1, 2]


async def test_batch_over_limit_is_rejected(db, active_local, storage_root):
    uploads = [make_upload(f"f{i}.png", size=1) for i in range(6)]

    with pytest.raises(StorageValidationError, match="at most 5"):
        await file_catalog.upload_files(db, uploads)
    assert not storage_root.exists() or list(storage_root.iterdir()) == []


async def test_upload_rejects_traversal_directory(db, active_local):
    with pytest.raises(StorageValidationError):
        await file_catalog.upload_files(db, [make_upload()], path="/../outside")


async def test_upload_without_active_storage(db):
    with pytest.raises(NoActiveStorageError):
        await file_catalog.upload_files(db, [make_upload()])


async def test_upload_provider_failure_is_per_file(db, active_local):
    with patch.object(LocalDiskProvider, "upload", side_effect=PermissionError("read-only")):
        report = await file_catalog.upload_files(db, [make_upload("a.png", size=1)])

    assert report.uploaded_files == []
    assert report.errors[0].filename == "a.png"
    assert report.errors[0].code == "PermissionError"


# --- get / list / search ---

async def test_get_file_by_id(db, active_local):
    record = await upload_one(db, owner_id="u1")

    assert (await file_catalog.get_file_by_id(db, record.id)).id == record.id
    assert (await file_catalog.get_file_by_id(db, str(record.id))).id == record.id
    assert await file_catalog.get_file_by_id(db, uuid.uuid4()) is None
    assert await file_catalog.get_file_by_id(db, "not-a-uuid") is None


async def test_get_file_scoped_to_owner_attaches_permissions(db, active_local):
    record = await upload_one(db, owner_id="u1")
    db.add(FilePermission(file_id=record.id, user_id="u1", can_read=True, granted_by="admin"))
    db.add(FilePermission(file_id=record.id, user_id="u2", can_read=True))
    await db.commit()

    scoped = await file_catalog.get_file_by_id(db, record.id, owner_id="u1")
    assert [p.user_id for p in scoped.permissions] == ["u1"]
    assert scoped.permissions[0].can_read is True

    assert await file_catalog.get_file_by_id(db, record.id, owner_id="u2") is None
    assert (await file_catalog.get_file_by_id(db, record.id)).permissions is None


async def test_list_folders_first_and_paginated(db, active_local):
    await upload_one(db, "one.png", size=1)
    await upload_one(db, "two.png", size=1)
    for name in ["a", "b", "c"]:
        await file_catalog.create_folder(db, name)

    first = await file_catalog.list_files(db, "/", page=1, limit=2)
    assert first.total_count == 5
    assert first.has_more is True
    assert first.current_path == "/"
    assert [f.name for f in first.files] == ["c", "b"]

    last = await file_catalog.list_files(db, "", page=3, limit=2)
    assert last.has_more is False
    assert len(last.files) == 1
    assert last.files[0].type == "file"

    only_files = await file_catalog.list_files(db, "/", file_type="file")
    assert {f.type for f in only_files.files} == {"file"}
    assert only_files.total_count == 2


async def test_list_is_direct_children_only(db, active_local):
    await file_catalog.create_folder(db, "docs")
    await upload_one(db, "inner.png", path="/docs", size=1)

    root = await file_catalog.list_files(db, "/")
    assert [f.name for f in root.files] == ["docs"]
    docs = await file_catalog.list_files(db, "/docs/")
    assert docs.current_path == "/docs"
    assert docs.total_count == 1


async def test_list_filters_by_owner(db, active_local):
    await upload_one(db, "mine.png", owner_id="u1", size=1)
    await upload_one(db, "theirs.png", owner_id="u2", size=1)

    listing = await file_catalog.list_files(db, "/", owner_id="u1")
    assert [f.owner_id for f in listing.files] == ["u1"]


async def test_list_rejects_bad_paging(db):
    with pytest.raises(StorageValidationError):
        await file_catalog.list_files(db, "/", page=0)


async def test_search_is_case_insensitive_and_skips_deleted(db, active_local):
    report = await upload_one(db, "Report.pdf", mime_type="application/pdf", size=1)
    gone = await upload_one(db, "report-old.pdf", mime_type="application/pdf", size=1)
    await upload_one(db, "photo.png", size=1)
    await file_catalog.delete_file(db, gone.id)

    results = await file_catalog.search_files(db, "REPORT")
    assert [r.id for r in results] == [report.id]
    assert await file_catalog.search_files(db, "report", path="/elsewhere") == []


async def test_search_treats_wildcards_literally(db):
    for name in ["100%", "a_b", "axb"]:
        await file_catalog.create_folder(db, name)

    assert [r.name for r in await file_catalog.search_files(db, "%")] == ["100%"]
    assert [r.name for r in await file_catalog.search_files(db, "a_b")] == ["a_b"]


async def test_search_scoped_to_root(db, active_local):
    top = await upload_one(db, "report.pdf", mime_type="application/pdf", size=1)
    await upload_one(db, "report.pdf", path="/docs", mime_type="application/pdf", size=1)

    assert len(await file_catalog.search_files(db, "report")) == 2
    assert [r.id for r in await file_catalog.search_files(db, "report", path="/")] == [top.id]


# --- delete ---

async def test_delete_twice_is_not_found(db, active_local, storage_root):
    record = await upload_one(db)

    assert await file_catalog.delete_file(db, record.id) == 1
    assert not (storage_root / record.name).exists()
    assert await file_catalog.get_file_by_id(db, record.id) is None
    with pytest.raises(NotFoundError):
        await file_catalog.delete_file(db, record.id)


async def test_delete_folder_takes_descendants(db, active_local):
    docs = await file_catalog.create_folder(db, "docs")
    sub = await file_catalog.create_folder(db, "2024", path="/docs")
    inner = await upload_one(db, "a.png", path="/docs/2024", size=1)
    sibling = await file_catalog.create_folder(db, "docsx")

    assert await file_catalog.delete_file(db, docs.id) == 3

    for record in (docs, sub, inner):
        assert await file_catalog.get_file_by_id(db, record.id) is None
    assert await file_catalog.get_file_by_id(db, sibling.id) is not None


async def test_delete_survives_storage_failure(db, active_local, storage_root):
    record = await upload_one(db)

    with patch.object(LocalDiskProvider, "delete", side_effect=OSError("disk gone")):
        assert await file_catalog.delete_file(db, record.id) == 1

    assert await file_catalog.get_file_by_id(db, record.id) is None
    # Bytes stay behind; the catalog is authoritative
    assert (storage_root / record.name).exists()


# --- update ---

async def test_update_merges_metadata(db, active_local):
    record = await upload_one(db)

    updated = await file_catalog.update_file(
        db, record.id, {"metadata": {"caption": "me"}, "isPublic": True}
    )
    assert updated.is_public is True
    assert updated.file_metadata["caption"] == "me"
    assert updated.file_metadata["originalName"] == "avatar.png"


@pytest.mark.parametrize("patch_body", [
    {"path": "/elsewhere"}, {"name": ""}, {"name": "a/b"}, {"name": ".."}, {"name": "."}, {"size": 1},
])
async def test_update_rejects_invalid_patch(db, active_local, patch_body):
    record = await upload_one(db)
    with pytest.raises(StorageValidationError):
        await file_catalog.update_file(db, record.id, patch_body)


async def test_update_missing(db):
    with pytest.raises(NotFoundError):
        await file_catalog.update_file(db, uuid.uuid4(), {"name": "x"})


async def test_rename_folder_rewrites_descendant_paths(db, active_local):
    docs = await file_catalog.create_folder(db, "docs")
    inner = await file_catalog.create_folder(db, "2024", path="/docs")
    leaf = await upload_one(db, "a.png", path="/docs/2024", size=1)

    await file_catalog.update_file(db, docs.id, {"name": "papers"})

    assert (await file_catalog.get_file_by_id(db, inner.id)).path == "/papers"
    assert (await file_catalog.get_file_by_id(db, leaf.id)).path == "/papers/2024"


@pytest.mark.parametrize("bad_name", ["..", "."])
async def test_rename_folder_to_dot_segment_is_rejected(db, active_local, bad_name):
    docs = await file_catalog.create_folder(db, "docs")
    leaf = await upload_one(db, "a.png", path="/docs", size=1)

    with pytest.raises(StorageValidationError):
        await file_catalog.update_file(db, docs.id, {"name": bad_name})

    assert (await file_catalog.get_file_by_id(db, docs.id)).name == "docs"
    assert (await file_catalog.get_file_by_id(db, leaf.id)).path == "/docs"


async def test_rename_folder_onto_sibling_is_rejected(db):
    a = await file_catalog.create_folder(db, "a")
    await file_catalog.create_folder(db, "b")
    inner = await file_catalog.create_folder(db, "inner", path="/a")

    with pytest.raises(StorageValidationError, match="already exists"):
        await file_catalog.update_file(db, a.id, {"name": "b"})

    folders = await file_catalog.list_files(db, "/", file_type="folder")
    assert sorted(f.name for f in folders.files) == ["a", "b"]
    assert (await file_catalog.get_file_by_id(db, inner.id)).path == "/a"


async def test_rename_folder_to_own_name_is_allowed(db):
    a = await file_catalog.create_folder(db, "a")
    renamed = await file_catalog.update_file(db, a.id, {"name": "a", "isPublic": True})
    assert renamed.is_public is True


# --- folders ---

async def test_create_folder(db):
    folder = await file_catalog.create_folder(db, "docs", path="/", owner_id="u1")

    assert folder.type == "folder"
    assert folder.size == 0
    assert folder.path == "/"
    assert folder.owner_id == "u1"
    assert folder.url is None


async def test_create_folder_rejects_duplicates_and_bad_names(db):
    await file_catalog.create_folder(db, "docs")
    with pytest.raises(StorageValidationError, match="already exists"):
        await file_catalog.create_folder(db, "docs")
    for bad in ["", "  ", "a/b", ".."]:
        with pytest.raises(StorageValidationError):
            await file_catalog.create_folder(db, bad)
    with pytest.raises(StorageValidationError):
        await file_catalog.create_folder(db, "x", path="/docs/../..")


# --- move ---

async def test_move_file(db, active_local, storage_root):
    record = await upload_one(db)

    moved = await file_catalog.move_file(db, record.id, "/photos")

    assert moved.path == "/photos"
    assert moved.url == f"/uploads/photos/{record.name}"
    assert moved.file_metadata["storagePath"] == f"photos/{record.name}"
    assert (storage_root / "photos" / record.name).exists()
    assert not (storage_root / record.name).exists()


async def test_move_file_refuses_to_overwrite(db, active_local, storage_root):
    record = await upload_one(db)
    (storage_root / "photos").mkdir()
    (storage_root / "photos" / record.name).write_bytes(b"other")

    with pytest.raises(StorageValidationError, match="already exists"):
        await file_catalog.move_file(db, record.id, "/photos")
    assert (await file_catalog.get_file_by_id(db, record.id)).path == "/"


async def test_move_file_with_missing_bytes(db, active_local, storage_root):
    record = await upload_one(db)
    (storage_root / record.name).unlink()

    with pytest.raises(StorageIOError):
        await file_catalog.move_file(db, record.id, "/photos")
    assert (await file_catalog.get_file_by_id(db, record.id)).path == "/"


async def test_move_folder_cascades(db, active_local):
    docs = await file_catalog.create_folder(db, "docs")
    sub = await file_catalog.create_folder(db, "2024", path="/docs")
    leaf = await upload_one(db, "a.png", path="/docs/2024", size=1)

    moved = await file_catalog.move_file(db, docs.id, "/archive")

    assert moved.path == "/archive"
    assert (await file_catalog.get_file_by_id(db, sub.id)).path == "/archive/docs"
    assert (await file_catalog.get_file_by_id(db, leaf.id)).path == "/archive/docs/2024"


async def test_move_folder_into_itself(db):
    docs = await file_catalog.create_folder(db, "docs")
    with pytest.raises(StorageValidationError, match="into itself"):
        await file_catalog.move_file(db, docs.id, "/docs/2024")


async def test_move_missing(db):
    with pytest.raises(NotFoundError):
        await file_catalog.move_file(db, uuid.uuid4(), "/x")


async def test_move_folder_onto_existing_folder_is_rejected(db):
    a = await file_catalog.create_folder(db, "a")
    inner = await file_catalog.create_folder(db, "inner", path="/a")
    await file_catalog.create_folder(db, "x")
    await file_catalog.create_folder(db, "a", path="/x")

    with pytest.raises(StorageValidationError, match="already exists"):
        await file_catalog.move_file(db, a.id, "/x")

    assert (await file_catalog.get_file_by_id(db, a.id)).path == "/"
    assert (await file_catalog.get_file_by_id(db, inner.id)).path == "/a"


async def test_move_folder_next_to_other_owners_folder(db):
    a = await file_catalog.create_folder(db, "a", owner_id="u1")
    await file_catalog.create_folder(db, "x", owner_id="u1")
    await file_catalog.create_folder(db, "a", path="/x", owner_id="u2")

    moved = await file_catalog.move_file(db, a.id, "/x", owner_id="u1")
    assert moved.path == "/x"


# --- switching the active provider ---

async def test_records_resolve_through_newly_active_provider(db, active_local, storage_root, tmp_path):
    record = await upload_one(db)
    second_root = tmp_path / "second"
    await registry.create_storage_config(db, {
        "provider": "local", "name": "Second", "config": {"basePath": str(second_root)}, "isActive": True,
    })

    # The new root does not hold the bytes yet, so the move fails there
    with pytest.raises(StorageIOError):
        await file_catalog.move_file(db, record.id, "/photos")

    (second_root / record.name).write_bytes(b"x")
    moved = await file_catalog.move_file(db, record.id, "/photos")
    assert moved.provider == "local"
    assert (second_root / "photos" / record.name).exists()
    assert (storage_root / record.name).exists()

    assert await file_catalog.delete_file(db, record.id) == 1
    assert not (second_root / "photos" / record.name).exists()
    assert (storage_root / record.name).exists()


async def test_provider_column_is_fixed_at_creation(db, active_local, storage_root):
    record = await upload_one(db)
    await registry.create_storage_config(db, {"provider": "s3", "name": "Bucket", "config": {}, "isActive": True})

    with pytest.raises(ProviderNotImplementedError):
        await file_catalog.move_file(db, record.id, "/photos")

    updated = await file_catalog.update_file(db, record.id, {"metadata": {"caption": "x"}})
    assert updated.provider == "local"
    assert updated.path == "/"

    # Cleanup through the stub fails quietly; the record is still soft-deleted
    assert await file_catalog.delete_file(db, record.id) == 1
    assert await file_catalog.get_file_by_id(db, record.id) is None
    assert (storage_root / record.name).exists()
