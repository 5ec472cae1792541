# This test file validates SQL persistence of price list documents.
# It exists so saves stay idempotent upserts and missing or broken storage surfaces typed errors.
# Each test uses a throwaway SQLite database file.

from __future__ import annotations

from dataclasses import replace
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

from src.occupancy_pricing.errors import PersistenceError, PriceListNotFoundError
from src.occupancy_pricing.models import ValidationStatus
from src.occupancy_pricing.price_list import create_price_list
from src.occupancy_pricing.price_list_store import PriceListStore


@pytest.fixture()
def store(tmp_path: Path) -> PriceListStore:
    engine = create_engine(f"sqlite:///{tmp_path / 'prices.db'}")
    store = PriceListStore(engine)
    store.create_table()
    return store


def _price_list(price_list_id: str, property_id: str = "hotel-1"):
    return create_price_list(
        property_id=property_id,
        valid_from=date(2026, 5, 1),
        valid_to=date(2026, 10, 1),
        price_list_id=price_list_id,
    )


def test_save_and_load_round_trip(store: PriceListStore) -> None:
    price_list = _price_list("pricelist_a")

    store.save(price_list)

    assert store.load("pricelist_a") == price_list


def test_save_is_an_upsert(store: PriceListStore) -> None:
    store.save(_price_list("pricelist_a"))
    store.save(replace(_price_list("pricelist_a"), validation_status=ValidationStatus.REJECTED, validation_notes="dup"))

    loaded = store.load("pricelist_a")
    assert loaded.validation_status == ValidationStatus.REJECTED
    assert loaded.validation_notes == "dup"
    with store.engine.connect() as connection:
        count = connection.execute(text("SELECT COUNT(*) FROM price_list_document")).scalar_one()
    assert count == 1


def test_list_for_property_filters_and_orders(store: PriceListStore) -> None:
    store.save(_price_list("pricelist_b"))
    store.save(_price_list("pricelist_a"))
    store.save(_price_list("pricelist_c", property_id="hotel-2"))

    assert [item.id for item in store.list_for_property("hotel-1")] == ["pricelist_a", "pricelist_b"]
    assert store.list_for_property("hotel-3") == []


def test_load_missing_price_list(store: PriceListStore) -> None:
    with pytest.raises(PriceListNotFoundError) as exc_info:
        store.load("pricelist_missing")

    assert exc_info.value.details == {"price_list_id": "pricelist_missing"}


def test_missing_table_is_persistence_error(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    store = PriceListStore(engine)

    with pytest.raises(PersistenceError):
        store.load("pricelist_a")
    with pytest.raises(PersistenceError):
        store.save(_price_list("pricelist_a"))


def test_unsafe_table_name_is_rejected(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'prices.db'}")

    with pytest.raises(ValueError, match="Unsafe SQL identifier"):
        PriceListStore(engine, table_name="prices; DROP TABLE users")
