"""
Database models package.
All models must be imported here so Base.metadata can discover them.
"""
from app.database.models.generation_session import GenerationSession

__all__ = [
    "GenerationSession",
]
