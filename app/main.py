from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.config import settings
from app.api.v1.router import api_router
from app.database import init_db, async_session_factory
from app.jobs.scheduler import start_scheduler, shutdown_scheduler
from app.services.cache_service import get_cache

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup creates the engine tables and starts the scheduler that runs
    queued optimization jobs. Shutdown stops the scheduler and waits for
    in-flight runs.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()
    start_scheduler()

    yield

    shutdown_scheduler()
    logger.info(f"{settings.APP_NAME} stopped")


OPENAPI_TAGS = [
    {"name": "Slotting", "description": "ABC/XYZ classification and storage location recommendations"},
    {"name": "Wave Picking", "description": "Wave generation, picking task consolidation and picker paths"},
    {"name": "Health", "description": "Service health"},
]

API_DESCRIPTION = """
## Warehouse Optimization Engine

| Module | Description |
|--------|-------------|
| **Slotting** | Consumption-based ABC/XYZ classification and location scoring |
| **Wave Picking** | Order grouping into waves, consolidated picking tasks |
| **Route Planning** | Nearest-neighbor picker paths per wave |

Every request carries its tenant in the `X-Tenant-ID` header.

| Code | Meaning |
|------|---------|
| 400 | Missing or malformed tenant header |
| 404 | Unknown recommendation, wave or active slotting config |
| 409 | Recommendation already executed or rejected |
| 422 | Request validation failed |
"""

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    content = {
        "error": str(exc),
        "type": type(exc).__name__,
        "path": request.url.path,
    }
    if settings.DEBUG:
        content["traceback"] = traceback.format_exc()
    return JSONResponse(status_code=500, content=content)


@app.get("/health", tags=["Health"])
async def health_check():
    """Database connectivity plus the active cache backend."""
    checks = {
        "database": "unknown",
        "cache": type(get_cache().backend).__name__ if settings.CACHE_ENABLED else "disabled",
    }
    healthy = True
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except Exception as e:
        healthy = False
        checks["database"] = f"error: {e}"

    body = {
        "status": "healthy" if healthy else "unhealthy",
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
    return body if healthy else JSONResponse(status_code=503, content=body)
