"""
Database connection utilities.
The engine is built lazily from settings so importing the engine modules never needs a live database.
"""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from src.common.settings import get_settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Cached SQLAlchemy engine for `DATABASE_URL`."""

    return create_engine(get_settings().DATABASE_URL, pool_pre_ping=True, future=True)

