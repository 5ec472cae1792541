# This module persists price list aggregates as structural JSON documents in one SQL table.
# Saves are upserts keyed by price list id, so the last writer wins and reruns are idempotent.
# The table name comes from configuration and is checked as a plain SQL identifier before use.
# Database failures are wrapped in PersistenceError so callers can surface them for retry.

from __future__ import annotations

import json
import logging
import re
from datetime import UTC, datetime

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from src.occupancy_pricing.errors import PersistenceError, PriceListNotFoundError
from src.occupancy_pricing.models import PriceList
from src.occupancy_pricing.price_list import price_list_from_document, price_list_to_document

LOGGER = logging.getLogger("occupancy_pricing.store")

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _safe_identifier(identifier: str) -> str:
    if not _IDENTIFIER_RE.match(identifier):
        raise ValueError(f"Unsafe SQL identifier: {identifier!r}")
    return identifier


class PriceListStore:
    def __init__(self, engine: Engine, *, table_name: str = "price_list_document") -> None:
        self.engine = engine
        self.table_name = _safe_identifier(table_name)

    def create_table(self) -> None:
        statement = text(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                price_list_id VARCHAR(64) PRIMARY KEY,
                property_id VARCHAR(128) NOT NULL,
                validation_status VARCHAR(16) NOT NULL,
                document TEXT NOT NULL,
                updated_at VARCHAR(40) NOT NULL
            )
            """
        )
        try:
            with self.engine.begin() as connection:
                connection.execute(statement)
        except SQLAlchemyError as exc:
            LOGGER.error("price list table creation failed table=%s error=%s", self.table_name, exc)
            raise PersistenceError(
                f"Could not create table {self.table_name}",
                details={"table_name": self.table_name},
            ) from exc

    def save(self, price_list: PriceList) -> None:
        statement = text(
            f"""
            INSERT INTO {self.table_name} (price_list_id, property_id, validation_status, document, updated_at)
            VALUES (:price_list_id, :property_id, :validation_status, :document, :updated_at)
            ON CONFLICT (price_list_id) DO UPDATE SET
                property_id = EXCLUDED.property_id,
                validation_status = EXCLUDED.validation_status,
                document = EXCLUDED.document,
                updated_at = EXCLUDED.updated_at
            """
        )
        params = {
            "price_list_id": price_list.id,
            "property_id": price_list.property_id,
            "validation_status": price_list.validation_status.value,
            "document": json.dumps(price_list_to_document(price_list), sort_keys=True),
            "updated_at": datetime.now(tz=UTC).isoformat(),
        }
        try:
            with self.engine.begin() as connection:
                connection.execute(statement, params)
        except SQLAlchemyError as exc:
            LOGGER.error("price list save failed price_list_id=%s error=%s", price_list.id, exc)
            raise PersistenceError(
                f"Could not save price list {price_list.id}",
                details={"price_list_id": price_list.id},
            ) from exc
        LOGGER.info("price list saved price_list_id=%s status=%s", price_list.id, price_list.validation_status.value)

    def load(self, price_list_id: str) -> PriceList:
        statement = text(f"SELECT document FROM {self.table_name} WHERE price_list_id = :price_list_id")
        try:
            with self.engine.connect() as connection:
                row = connection.execute(statement, {"price_list_id": price_list_id}).first()
        except SQLAlchemyError as exc:
            LOGGER.error("price list load failed price_list_id=%s error=%s", price_list_id, exc)
            raise PersistenceError(
                f"Could not load price list {price_list_id}",
                details={"price_list_id": price_list_id},
            ) from exc
        if row is None:
            raise PriceListNotFoundError(
                f"Price list {price_list_id} does not exist",
                details={"price_list_id": price_list_id},
            )
        return price_list_from_document(json.loads(row[0]))

    def list_for_property(self, property_id: str) -> list[PriceList]:
        statement = text(
            f"""
            SELECT document
            FROM {self.table_name}
            WHERE property_id = :property_id
            ORDER BY price_list_id
            """
        )
        try:
            with self.engine.connect() as connection:
                rows = connection.execute(statement, {"property_id": property_id}).fetchall()
        except SQLAlchemyError as exc:
            LOGGER.error("price list listing failed property_id=%s error=%s", property_id, exc)
            raise PersistenceError(
                f"Could not list price lists for property {property_id}",
                details={"property_id": property_id},
            ) from exc
        return [price_list_from_document(json.loads(row[0])) for row in rows]
