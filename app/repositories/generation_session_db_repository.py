"""
Generation Session database repository - CRUD operations for the generation_sessions table.
Follows the module-level function pattern of other db repositories.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete as sql_delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.generation_session import GenerationSession


async def create(
    session: AsyncSession,
    session_id: str,
    user_id: str,
    request: Dict[str, Any],
    status: str,
    created_at: datetime,
    metadata: Optional[Dict[str, Any]] = None,
    app_id: Optional[str] = None,
) -> GenerationSession:
    """
    Insert a new generation session record.

    Args:
        session: Async database session
        session_id: Generated session id (uuid string)
        user_id: Owning user
        request: The original request payload
        status: Initial status, typically 'pending'
        created_at: Creation time; also used as the first updated_at
        metadata: Initial metadata (provider, model)
        app_id: Application the generation belongs to, if any

    Returns:
        Created GenerationSession instance
    """
    record = GenerationSession(
        id=session_id,
        user_id=user_id,
        app_id=app_id,
        status=status,
        request=request,
        files=[],
        session_metadata=metadata or {},
        version=1,
        created_at=created_at,
        updated_at=created_at,
    )
    session.add(record)
    await session.flush()
    return record


async def get_by_id(
    session: AsyncSession,
    session_id: str,
) -> Optional[GenerationSession]:
    """
    Look up a generation session by id.

    Returns:
        GenerationSession or None if not found
    """
    stmt = select(GenerationSession).where(GenerationSession.id == session_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def transition_status(
    session: AsyncSession,
    session_id: str,
    status: str,
    allowed_from: Iterable[str],
    updated_at: datetime,
    error: Optional[str] = None,
    completed_at: Optional[datetime] = None,
) -> bool:
    """
    Move a session to a new status if it is currently in one of `allowed_from`.

    The check and the write are a single conditional UPDATE, so a writer
    that lost a race (e.g. a background task finishing after a cancel)
    changes nothing.

    Args:
        session: Async database session
        session_id: Session to update
        status: Target status
        allowed_from: Statuses the session may currently be in
        updated_at: New updated_at timestamp
        error: Error message to store (failed transitions)
        completed_at: Completion timestamp to store (terminal transitions)

    Returns:
        True if the row was updated, False if it was missing or in another status
    """
    values: dict = {
        "status": status,
        "updated_at": updated_at,
        "version": GenerationSession.version + 1,
    }
    if error is not None:
        values["error"] = error
    if completed_at is not None:
        values["completed_at"] = completed_at

    stmt = (
        update(GenerationSession)
        .where(GenerationSession.id == session_id)
        .where(GenerationSession.status.in_(list(allowed_from)))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def update_files(
    session: AsyncSession,
    session_id: str,
    files: List[Dict[str, Any]],
    metadata: Dict[str, Any],
    updated_at: datetime,
    required_status: str,
) -> bool:
    """
    Store generated files and merge metadata, only while in `required_status`.

    Returns:
        True if the row was updated
    """
    record = await get_by_id(session, session_id)
    if record is None or record.status != required_status:
        return False

    merged = dict(record.session_metadata or {})
    merged.update(metadata)

    stmt = (
        update(GenerationSession)
        .where(GenerationSession.id == session_id)
        .where(GenerationSession.status == required_status)
        .where(GenerationSession.version == record.version)
        .values(
            files=files,
            session_metadata=merged,
            updated_at=updated_at,
            version=record.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0


async def list_by_user(
    session: AsyncSession,
    user_id: str,
    status_filter: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> List[GenerationSession]:
    """
    Return a user's sessions, newest first.

    Args:
        session: Async database session
        user_id: Owning user
        status_filter: Optional status to filter by
        limit: Maximum number of records to return
        offset: Number of records to skip

    Returns:
        List of GenerationSession instances
    """
    stmt = (
        select(GenerationSession)
        .where(GenerationSession.user_id == user_id)
        .order_by(GenerationSession.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    if status_filter:
        stmt = stmt.where(GenerationSession.status == status_filter)

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_by_user(
    session: AsyncSession,
    user_id: str,
    status_filter: Optional[str] = None,
) -> int:
    stmt = select(func.count()).select_from(GenerationSession).where(GenerationSession.user_id == user_id)
    if status_filter:
        stmt = stmt.where(GenerationSession.status == status_filter)
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def list_created_since(
    session: AsyncSession,
    user_id: str,
    since: Optional[datetime] = None,
) -> List[GenerationSession]:
    """All of a user's sessions, optionally only those created after `since`."""
    stmt = select(GenerationSession).where(GenerationSession.user_id == user_id)
    if since is not None:
        stmt = stmt.where(GenerationSession.created_at >= since)
    result = await session.execute(stmt.order_by(GenerationSession.created_at.desc()))
    return list(result.scalars().all())


async def delete(
    session: AsyncSession,
    session_id: str,
) -> bool:
    """
    Delete a session by id.

    Returns:
        True if a row was deleted
    """
    stmt = sql_delete(GenerationSession).where(GenerationSession.id == session_id)
    result = await session.execute(stmt)
    return result.rowcount > 0


async def find_expired_ids(
    session: AsyncSession,
    statuses: Iterable[str],
    created_before: datetime,
    limit: int,
) -> List[str]:
    """
    Ids of sessions in one of `statuses` created before the cutoff, oldest first.
    """
    stmt = (
        select(GenerationSession.id)
        .where(GenerationSession.status.in_(list(statuses)))
        .where(GenerationSession.created_at < created_before)
        .order_by(GenerationSession.created_at.asc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def delete_many(
    session: AsyncSession,
    session_ids: List[str],
) -> int:
    if not session_ids:
        return 0
    stmt = sql_delete(GenerationSession).where(GenerationSession.id.in_(session_ids))
    result = await session.execute(stmt)
    return result.rowcount
