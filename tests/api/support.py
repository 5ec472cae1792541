# This file provides shared helpers for API endpoint tests.
# It exists so tests can override service dependencies without touching real databases.
# The helpers build consistent config objects, a SQLite-backed service, and scoped TestClient contexts.

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from src.api.api_config import ApiConfig
from src.api.app import app
from src.api.dependencies import get_config, get_database_client, get_price_list_service
from src.api.services.price_list_service import PriceListService
from src.occupancy_pricing.price_list_store import PriceListStore
from src.occupancy_pricing.pricing_config import default_engine_config


def build_test_config(
    *,
    max_upload_bytes: int = 1024 * 1024,
    import_session_ttl_seconds: int = 3600,
    max_pending_imports: int = 100,
) -> ApiConfig:
    """Create deterministic API config for tests."""

    return ApiConfig(
        api_name="Test Occupancy Pricing API",
        api_version_path="/api/v1",
        schema_version="1.0.0",
        host="0.0.0.0",
        port=8000,
        environment="test",
        database_url="sqlite://",
        allowed_origins=[],
        price_list_table_name="price_list_document",
        engine_config_path="configs/occupancy_pricing.yaml",
        max_upload_bytes=max_upload_bytes,
        import_session_ttl_seconds=import_session_ttl_seconds,
        max_pending_imports=max_pending_imports,
        app_version="0.1.0",
    )


def build_price_list_service(
    tmp_path: Path,
    *,
    config: ApiConfig | None = None,
    clock: Callable[[], datetime] | None = None,
) -> PriceListService:
    """Real service over a throwaway SQLite file."""

    resolved_config = config or build_test_config()
    engine = create_engine(f"sqlite:///{tmp_path / 'api_prices.db'}")
    store = PriceListStore(engine, table_name=resolved_config.price_list_table_name)
    store.create_table()
    if clock is None:
        return PriceListService(config=resolved_config, engine_config=default_engine_config(), store=store)
    return PriceListService(config=resolved_config, engine_config=default_engine_config(), store=store, clock=clock)


class FakeDBClient:
    """Simple fake DB dependency for health/readiness endpoint tests."""

    def __init__(self, *, connected: bool = True, existing_tables: set[str] | None = None) -> None:
        self._connected = connected
        self._tables = {"price_list_document"} if existing_tables is None else existing_tables

    def can_connect(self) -> bool:
        return self._connected

    def table_exists(self, table_name: str) -> bool:
        return self._connected and table_name in self._tables


@contextmanager
def api_test_client(
    *,
    config: ApiConfig | None = None,
    db_client: Any | None = None,
    price_list_service: Any | None = None,
) -> Iterator[TestClient]:
    """Yield a TestClient with scoped dependency overrides."""

    resolved_config = config or build_test_config()

    app.dependency_overrides[get_config] = lambda: resolved_config
    if db_client is not None:
        app.dependency_overrides[get_database_client] = lambda: db_client
    if price_list_service is not None:
        app.dependency_overrides[get_price_list_service] = lambda: price_list_service

    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
