# This file wraps the database connection used by the API process.
# It exists so readiness checks and the price list store share one SQLAlchemy engine.
# Table checks go through the SQLAlchemy inspector so they work on Postgres and SQLite alike.

from __future__ import annotations

import re

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class DatabaseClient:
    """Minimal SQLAlchemy wrapper for API connectivity checks."""

    def __init__(self, *, database_url: str) -> None:
        self._engine: Engine = create_engine(database_url, pool_pre_ping=True, future=True)

    @property
    def engine(self) -> Engine:
        return self._engine

    def can_connect(self) -> bool:
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def table_exists(self, table_name: str) -> bool:
        self._validate_identifier(table_name)
        try:
            return bool(inspect(self._engine).has_table(table_name))
        except SQLAlchemyError:
            return False

    def _validate_identifier(self, identifier: str) -> str:
        if not _IDENTIFIER_RE.match(identifier):
            raise ValueError(f"Unsafe SQL identifier: {identifier!r}")
        return identifier
