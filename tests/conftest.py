import os

# Must be set before filestore.database builds its engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from filestore.database import get_db
from filestore.main import app
from filestore.models import Base
from filestore.services import storage_settings as registry
from filestore.storage.base import FileUpload


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def local_config_data(storage_root):
    return {
        "provider": "local",
        "name": "Test Local",
        "config": {"basePath": str(storage_root), "maxFileSize": 4096, "maxFilesPerUpload": 5},
        "isActive": True,
    }


@pytest_asyncio.fixture
async def active_local(db, local_config_data):
    """An active local-disk config rooted in a temp dir."""
    return await registry.create_storage_config(db, local_config_data)


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def make_upload(name="avatar.png", size=2048, mime_type="image/png"):
    return FileUpload(name=name, data=b"x" * size, mime_type=mime_type, size=size)
