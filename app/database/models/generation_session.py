"""
Generation Session model - one record per AI generation request.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, String, Integer, Text, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.database.base import Base


class GenerationSession(Base):
    """
    Generation Sessions table - lifecycle and output of a generation request.

    `version` is bumped on every status or file write so concurrent writers
    can be detected.
    """
    __tablename__ = "generation_sessions"

    # Columns
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    app_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    request: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    files: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    session_metadata: Mapped[Dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_generation_sessions_user_created", "user_id", "created_at"),
    )
