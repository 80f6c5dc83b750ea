"""
Scheduled cleanup of expired generation sessions.

Run once from the CLI (`python -m app.cli cleanup`) or periodically inside the
API process when `cleanup_interval_hours` is set.
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings
from app.core.logging import operation_logger
from app.services.generation.session_service import GenerationSessionService

logger = logging.getLogger(__name__)


@operation_logger("session_cleanup")
async def run_cleanup(
    session_service: GenerationSessionService,
    settings: Settings,
    retention_days: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> int:
    """
    Delete failed and cancelled sessions past the retention window.

    Returns:
        Number of sessions deleted
    """
    retention_days = settings.session_retention_days if retention_days is None else retention_days
    batch_size = batch_size or settings.cleanup_batch_size
    logger.info(f"Cleaning up sessions older than {retention_days} day(s), {batch_size} per batch")
    return await session_service.cleanup_expired(retention_days, batch_size)


async def periodic_cleanup(session_service: GenerationSessionService, settings: Settings) -> None:
    """Run the cleanup every `cleanup_interval_hours` until cancelled."""
    interval = settings.cleanup_interval_hours * 3600
    logger.info(f"Session cleanup scheduled every {settings.cleanup_interval_hours}h")
    while True:
        await asyncio.sleep(interval)
        try:
            await run_cleanup(session_service, settings)
        except SQLAlchemyError as e:
            logger.error(f"Scheduled session cleanup failed: {e}")
