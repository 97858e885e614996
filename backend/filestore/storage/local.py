"""Local filesystem storage provider."""
import asyncio
import logging
import shutil
import stat
from pathlib import Path
from typing import Any, Optional

import aiofiles
import aiofiles.os

from filestore.exceptions import StorageValidationError
from filestore.schemas.storage_config import LocalStorageOptions
from filestore.storage.base import BaseStorageProvider, ConnectionTestResult, FileUpload, UploadResult
from filestore.storage.paths import split_segments

logger = logging.getLogger(__name__)

CONNECTION_MARKER = "test-connection.txt"


class LocalDiskProvider(BaseStorageProvider):
    """Stores blobs under one root directory.

    Every path is resolved relative to `basePath`; a `..` segment or anything
    that resolves outside the root is rejected before touching the disk.
    """

    name = "local"
    options_model = LocalStorageOptions

    def __init__(self, config: Optional[dict] = None):
        super().__init__(config)
        self.base_path = Path(self.options.base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.base_url = self.options.base_url.rstrip("/")

    def _safe_relative(self, path: str) -> str:
        segments = split_segments(path)
        if ".." in segments:
            raise StorageValidationError(f"Path traversal is not allowed: {path}")
        return "/".join(segments)

    def _full_path(self, path: str) -> Path:
        full = (self.base_path / self._safe_relative(path)).resolve()
        if full != self.base_path and self.base_path not in full.parents:
            raise StorageValidationError(f"Path escapes storage root: {path}")
        return full

    async def _ensure_directory(self, directory: Path) -> None:
        await aiofiles.os.makedirs(directory, exist_ok=True)

    async def upload(self, file: FileUpload, path: str) -> UploadResult:
        self.validate_file(file)

        safe_path = self._safe_relative(path)
        if not safe_path:
            raise StorageValidationError("Destination path is required")
        full_path = self._full_path(safe_path)
        await self._ensure_directory(full_path.parent)

        async with aiofiles.open(full_path, "wb") as f:
            await f.write(file.data)

        return UploadResult(
            url=f"{self.base_url}/{safe_path}",
            path=safe_path,
            size=file.size,
            metadata={"fullPath": str(full_path), "directory": str(full_path.parent)},
        )

    async def delete(self, path: str) -> bool:
        full_path = self._full_path(path)
        try:
            await aiofiles.os.remove(full_path)
        except FileNotFoundError:
            # Already gone counts as deleted
            return True
        except OSError as e:
            logger.error(f"Error deleting {full_path}: {e}")
            return False
        return True

    async def get_url(self, path: str) -> str:
        return f"{self.base_url}/{self._safe_relative(path)}"

    async def exists(self, path: str) -> bool:
        full_path = self._full_path(path)
        try:
            return await aiofiles.os.path.exists(full_path)
        except OSError:
            return False

    async def move(self, from_path: str, to_path: str) -> bool:
        src = self._full_path(from_path)
        dst = self._full_path(to_path)
        try:
            await self._ensure_directory(dst.parent)
            await aiofiles.os.rename(src, dst)
        except OSError as e:
            logger.error(f"Error moving {src} to {dst}: {e}")
            return False
        return True

    async def copy(self, from_path: str, to_path: str) -> bool:
        src = self._full_path(from_path)
        dst = self._full_path(to_path)
        try:
            await self._ensure_directory(dst.parent)
            await asyncio.to_thread(shutil.copyfile, src, dst)
        except OSError as e:
            logger.error(f"Error copying {src} to {dst}: {e}")
            return False
        return True

    async def get_metadata(self, path: str) -> Optional[dict[str, Any]]:
        full_path = self._full_path(path)
        try:
            stats = await aiofiles.os.stat(full_path)
        except OSError as e:
            logger.error(f"Error reading metadata for {full_path}: {e}")
            return None
        return {
            "size": stats.st_size,
            "created": stats.st_ctime,
            "modified": stats.st_mtime,
            "isDirectory": stat.S_ISDIR(stats.st_mode),
            "isFile": stat.S_ISREG(stats.st_mode),
            "permissions": stats.st_mode,
        }

    async def test_connection(self) -> ConnectionTestResult:
        marker = self.base_path / CONNECTION_MARKER
        try:
            await self._ensure_directory(self.base_path)
            async with aiofiles.open(marker, "w") as f:
                await f.write("test")
            async with aiofiles.open(marker, "r") as f:
                content = await f.read()
            await aiofiles.os.remove(marker)
        except OSError as e:
            return ConnectionTestResult(False, f"Local storage test failed: {e}")
        if content != "test":
            return ConnectionTestResult(False, "Local storage test failed: marker content mismatch")
        return ConnectionTestResult(True, "Local storage connection successful")

    async def list(self, path: str, recursive: bool = False) -> list[str]:
        relative = self._safe_relative(path)
        directory = self._full_path(relative)
        try:
            entries = sorted(await aiofiles.os.listdir(directory))
        except OSError as e:
            logger.error(f"Error listing {directory}: {e}")
            return []

        files = []
        for entry in entries:
            entry_path = f"{relative}/{entry}" if relative else entry
            full = directory / entry
            if await aiofiles.os.path.isfile(full):
                files.append(entry_path)
            elif recursive and await aiofiles.os.path.isdir(full):
                files.extend(await self.list(entry_path, recursive=True))
        return files
