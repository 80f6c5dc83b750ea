"""
Repository layer exports.

This module exports all database repositories for easy import.
"""
from app.repositories import generation_session_db_repository

__all__ = [
    'generation_session_db_repository',
]
