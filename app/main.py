import asyncio
import logging
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import setup_logging
from app.core.redis import close_redis_client, health_check
from app.database.dependencies import get_db
from app.database.session import close_db, init_db
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.error_handling import ErrorHandlingMiddleware
from app.api.endpoints import templates, providers, generate, projects, generations
from app.api.deps import cleanup_resources, get_session_service
from app.services.generation.cleanup import periodic_cleanup

settings = get_settings()

# Initialize logging system
setup_logging(log_level=settings.log_level, log_dir=settings.log_dir, console=settings.log_to_console)

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.app_version)

# Add middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ErrorHandlingMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(templates.router, prefix="/api", tags=["templates"])
app.include_router(providers.router, prefix="/api", tags=["providers"])
app.include_router(generate.router, prefix="/api", tags=["generate"])
app.include_router(projects.router, prefix="/api", tags=["projects"])
app.include_router(generations.router, prefix="/api", tags=["generations"])

_cleanup_task: Optional[asyncio.Task] = None


# Root and health endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": settings.app_name, "version": settings.app_version}


@app.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    """Health check endpoint."""
    try:
        await db.execute(text("SELECT 1"))
        database_status = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database_status = "disconnected"

    redis_status = await health_check()
    return {
        "status": "healthy" if database_status == "connected" else "degraded",
        "database": database_status,
        "redis": redis_status,
    }


# Startup event to initialize the database
@app.on_event("startup")
async def startup_event():
    """Initialize the database and, if configured, the periodic cleanup."""
    global _cleanup_task
    await init_db(settings)
    logger.info(f"{settings.app_name} {settings.app_version} started")

    if settings.cleanup_interval_hours > 0:
        _cleanup_task = asyncio.create_task(periodic_cleanup(get_session_service(), settings))


# Shutdown event to cleanup resources
@app.on_event("shutdown")
async def shutdown_event():
    """Cancel running generations, then close database and Redis."""
    global _cleanup_task
    if _cleanup_task is not None:
        _cleanup_task.cancel()
        _cleanup_task = None
    await cleanup_resources()
    await close_db()
    await close_redis_client()
