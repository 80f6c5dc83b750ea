"""
FastAPI dependencies for database session injection.
"""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.session import get_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a request-scoped database session.

    Usage in endpoints:
        @router.get("/health")
        async def health(db: AsyncSession = Depends(get_db)):
            await db.execute(text("SELECT 1"))

    Committed on success, rolled back on error. Background generation tasks
    outlive the request and open their own sessions through the factory.
    """
    session_factory = get_session_factory()

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
