"""
Generation session store.

Owns the lifecycle of GenerationSession records: creation, ownership checks,
status transitions and results. Transitions follow

    pending -> generating -> completed | failed
    pending | generating -> cancelled

and terminal sessions are never moved again. Each transition is a conditional
write, so late writers (for example a background task finishing after the user
cancelled) are rejected instead of overwriting the newer status.
"""
import logging
import uuid
from collections import Counter
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    InvalidStatusTransitionException,
    SessionNotFoundException,
    UnauthorizedException,
)
from app.database.models.generation_session import GenerationSession
from app.models.domain import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    GeneratedFile,
    SessionStatus,
    utcnow,
)
from app.models.session_schemas import GenerationSessionRequest
from app.repositories import generation_session_db_repository as session_repo

logger = logging.getLogger(__name__)

CLEANUP_STATUSES = (SessionStatus.FAILED.value, SessionStatus.CANCELLED.value)


class GenerationSessionService:
    """Persistence and state machine for generation sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(
        self,
        user_id: str,
        request: GenerationSessionRequest,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> GenerationSession:
        """Create a pending session for a new generation request."""
        session_id = str(uuid.uuid4())
        async with self._session_factory() as db:
            async with db.begin():
                record = await session_repo.create(
                    db,
                    session_id=session_id,
                    user_id=user_id,
                    request=request.model_dump(mode="json"),
                    status=SessionStatus.PENDING.value,
                    created_at=utcnow(),
                    metadata={"provider": provider, "model": model},
                    app_id=request.app_id,
                )
        logger.info(f"Created generation session {session_id} for user {user_id}")
        return record

    async def get_by_id(self, session_id: str) -> GenerationSession:
        """Load a session without an ownership check (internal use)."""
        async with self._session_factory() as db:
            record = await session_repo.get_by_id(db, session_id)
        if record is None:
            raise SessionNotFoundException(session_id)
        return record

    async def get(self, session_id: str, user_id: str) -> GenerationSession:
        """
        Load a session owned by `user_id`.

        Raises:
            SessionNotFoundException: No such session
            UnauthorizedException: Session belongs to another user
        """
        record = await self.get_by_id(session_id)
        if record.user_id != user_id:
            logger.warning(f"User {user_id} denied access to session {session_id}")
            raise UnauthorizedException("generation session", session_id)
        return record

    async def update_status(
        self,
        session_id: str,
        status: SessionStatus,
        error: Optional[str] = None,
    ) -> bool:
        """
        Move a session to `status` if the state machine allows it.

        Returns:
            True if the transition was applied, False if the session was
            missing or not in a status the target can be entered from
        """
        allowed_from = ALLOWED_TRANSITIONS.get(status)
        if not allowed_from:
            raise ValueError(f"{status.value} is not a transition target")

        now = utcnow()
        async with self._session_factory() as db:
            async with db.begin():
                applied = await session_repo.transition_status(
                    db,
                    session_id=session_id,
                    status=status.value,
                    allowed_from=[s.value for s in allowed_from],
                    updated_at=now,
                    error=error,
                    completed_at=now if status in TERMINAL_STATUSES else None,
                )

        if applied:
            logger.info(f"Session {session_id} -> {status.value}")
        else:
            logger.warning(f"Session {session_id}: transition to {status.value} rejected")
        return applied

    async def update_files(
        self,
        session_id: str,
        files: List[GeneratedFile],
        metadata: Dict[str, Any],
    ) -> bool:
        """Store generated files and merge `metadata`; only while generating."""
        async with self._session_factory() as db:
            async with db.begin():
                applied = await session_repo.update_files(
                    db,
                    session_id=session_id,
                    files=[f.to_dict() for f in files],
                    metadata=metadata,
                    updated_at=utcnow(),
                    required_status=SessionStatus.GENERATING.value,
                )
        if not applied:
            logger.warning(f"Session {session_id}: file update rejected (no longer generating)")
        return applied

    async def list(
        self,
        user_id: str,
        status: Optional[SessionStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[GenerationSession], int]:
        """
        A page of the user's sessions, newest first, and the total count.
        """
        status_value = status.value if status else None
        async with self._session_factory() as db:
            records = await session_repo.list_by_user(db, user_id, status_value, limit, offset)
            total = await session_repo.count_by_user(db, user_id, status_value)
        return records, total

    async def delete(self, session_id: str, user_id: str) -> None:
        """Delete a session owned by `user_id`."""
        await self.get(session_id, user_id)
        async with self._session_factory() as db:
            async with db.begin():
                await session_repo.delete(db, session_id)
        logger.info(f"Deleted generation session {session_id}")

    async def cancel(self, session_id: str, user_id: str) -> GenerationSession:
        """
        Mark a pending or generating session as cancelled.

        Raises:
            InvalidStatusTransitionException: The session already finished
        """
        record = await self.get(session_id, user_id)
        if not await self.update_status(session_id, SessionStatus.CANCELLED):
            current = await self.get_by_id(session_id)
            raise InvalidStatusTransitionException(session_id, current.status, SessionStatus.CANCELLED.value)
        return await self.get_by_id(record.id)

    async def get_stats(self, user_id: str) -> Dict[str, Any]:
        """
        Usage statistics for a user.

        Monthly usage covers the current month and the 11 before it, keyed
        "YYYY-MM".
        """
        async with self._session_factory() as db:
            records = await session_repo.list_created_since(db, user_id)

        status_counts = Counter(r.status for r in records)
        provider_usage = Counter(
            (r.session_metadata or {}).get("provider") or "unknown" for r in records
        )
        durations = [
            (r.session_metadata or {}).get("processing_time_seconds")
            for r in records
            if r.status == SessionStatus.COMPLETED.value
        ]
        durations = [d for d in durations if isinstance(d, (int, float))]

        now = utcnow()
        months = []
        year, month = now.year, now.month
        for _ in range(12):
            months.append(f"{year:04d}-{month:02d}")
            month -= 1
            if month == 0:
                year, month = year - 1, 12
        monthly_usage = {key: 0 for key in reversed(months)}
        for r in records:
            key = r.created_at.strftime("%Y-%m")
            if key in monthly_usage:
                monthly_usage[key] += 1

        return {
            "total_generations": len(records),
            "completed": status_counts.get(SessionStatus.COMPLETED.value, 0),
            "failed": status_counts.get(SessionStatus.FAILED.value, 0),
            "cancelled": status_counts.get(SessionStatus.CANCELLED.value, 0),
            "in_progress": status_counts.get(SessionStatus.PENDING.value, 0)
            + status_counts.get(SessionStatus.GENERATING.value, 0),
            "average_processing_time_seconds": sum(durations) / len(durations) if durations else None,
            "provider_usage": dict(provider_usage),
            "monthly_usage": monthly_usage,
        }

    async def cleanup_expired(self, retention_days: int, batch_size: int) -> int:
        """
        Delete failed and cancelled sessions older than the retention window.

        Deletes in batches of `batch_size`, one transaction per batch.

        Returns:
            Number of sessions deleted
        """
        cutoff = utcnow() - timedelta(days=retention_days)
        deleted = 0
        while True:
            async with self._session_factory() as db:
                async with db.begin():
                    ids = await session_repo.find_expired_ids(db, CLEANUP_STATUSES, cutoff, batch_size)
                    if not ids:
                        break
                    deleted += await session_repo.delete_many(db, ids)
            if len(ids) < batch_size:
                break

        logger.info(f"Cleanup removed {deleted} expired generation session(s) older than {cutoff.isoformat()}")
        return deleted
