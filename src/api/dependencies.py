# This file provides dependency factories for FastAPI routes and middleware.
# It exists so services are created once and shared through dependency injection.
# The setup keeps routers thin and makes endpoint tests easy to override.

from __future__ import annotations

from functools import lru_cache

from src.api.api_config import ApiConfig, get_api_config
from src.api.db_access import DatabaseClient
from src.api.services.price_list_service import PriceListService
from src.occupancy_pricing.price_list_store import PriceListStore
from src.occupancy_pricing.pricing_config import PricingEngineConfig, load_engine_config


@lru_cache(maxsize=1)
def get_database_client() -> DatabaseClient:
    config = get_api_config()
    return DatabaseClient(database_url=config.database_url)


@lru_cache(maxsize=1)
def get_engine_config() -> PricingEngineConfig:
    return load_engine_config(config_path=get_api_config().engine_config_path)


@lru_cache(maxsize=1)
def get_price_list_service() -> PriceListService:
    config = get_api_config()
    db_client = get_database_client()
    store = PriceListStore(db_client.engine, table_name=config.price_list_table_name)
    store.create_table()
    return PriceListService(config=config, engine_config=get_engine_config(), store=store)


def get_config() -> ApiConfig:
    return get_api_config()
