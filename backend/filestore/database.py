"""Async engine and the per-request session dependency.

Services take the session as their first argument; routes get one with
`db: AsyncSession = Depends(get_db)`. Objects stay usable after commit
(`expire_on_commit=False`) because responses are built from them after the
service returns.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from filestore.config import settings


def _engine_options(url: str) -> dict:
    options = {"echo": False, "pool_pre_ping": True}
    # aiosqlite runs on a static pool that rejects sizing arguments
    if not url.startswith("sqlite"):
        options.update(pool_size=10, max_overflow=20)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """Yield a session; anything left uncommitted by a failed request is rolled back."""
    async with async_session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
