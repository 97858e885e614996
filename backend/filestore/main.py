"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

from filestore.config import settings
from filestore.database import async_session, engine, get_db
from filestore.exceptions import StorageError
from filestore.models import Base

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup and make sure a storage backend is active."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    from filestore.services.storage_settings import ensure_default_storage_config
    async with async_session() as session:
        active = await ensure_default_storage_config(session)
        logger.info(f"Active storage: {active.name} ({active.provider})")

    yield

    # Cleanup
    await engine.dispose()


app = FastAPI(
    title="File Storage API",
    version="1.0.0",
    description="File catalog over pluggable storage providers.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    """Translate storage errors into their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "code": exc.code},
    )


@app.get("/api/health")
async def health_check():
    """Verify API and database connectivity."""
    try:
        async for db in get_db():
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from filestore.routes.files import router as files_router
from filestore.routes.storage_settings import router as storage_settings_router
app.include_router(files_router)
app.include_router(storage_settings_router)

# Bytes written by the default local provider, served at its URL prefix
app.mount(
    settings.UPLOADS_URL_PREFIX,
    StaticFiles(directory=settings.FILE_STORAGE_PATH, check_dir=False),
    name="uploads",
)
