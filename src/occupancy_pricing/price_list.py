# This module implements operations on the price list aggregate that sit above single rules.
# It creates new lists with policy defaults, regenerates one room type block, and applies rule edits.
# Every operation returns a new PriceList; the input value is never mutated.
# The document helpers define the plain JSON shape handed to the persistence layer.

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, date, datetime, timedelta
from typing import Any

from src.occupancy_pricing.errors import PriceListNotFoundError
from src.occupancy_pricing.models import PriceList, RoomTypeDescriptor, RoomTypePricing, ValidationStatus
from src.occupancy_pricing.person_categories import PersonCategory, validate_person_categories
from src.occupancy_pricing.price_calculator import is_price_consistent, update_pricing_rule
from src.occupancy_pricing.pricing_config import PricingEngineConfig, default_engine_config
from src.occupancy_pricing.rule_generator import build_room_type_pricing

LOGGER = logging.getLogger("occupancy_pricing.price_list")


def new_price_list_id() -> str:
    return f"pricelist_{uuid.uuid4().hex}"


def create_price_list(
    *,
    property_id: str,
    name: str | None = None,
    valid_from: date | None = None,
    valid_to: date | None = None,
    person_categories: Sequence[PersonCategory] | None = None,
    config: PricingEngineConfig | None = None,
    price_list_id: str | None = None,
) -> PriceList:
    """Start an empty pending price list valid from today for the configured number of days."""

    cfg = config or default_engine_config()
    start = valid_from or datetime.now(UTC).date()
    end = valid_to or start + timedelta(days=cfg.default_validity_days)
    if end <= start:
        raise ValueError(f"validTo {end.isoformat()} must be after validFrom {start.isoformat()}")

    categories = tuple(person_categories) if person_categories is not None else cfg.default_person_categories
    category_errors = validate_person_categories(categories)
    if category_errors:
        raise ValueError(f"person categories are invalid: {'; '.join(category_errors)}")

    return PriceList(
        id=price_list_id or new_price_list_id(),
        name=name or f"Price list {start.isoformat()} - {end.isoformat()}",
        property_id=property_id,
        valid_from=start,
        valid_to=end,
        person_categories=categories,
        validation_status=ValidationStatus.PENDING,
    )


def _replace_block(price_list: PriceList, block: RoomTypePricing) -> PriceList:
    blocks = list(price_list.room_type_pricing)
    for position, existing in enumerate(blocks):
        if existing.room_type_id == block.room_type_id:
            blocks[position] = block
            break
    else:
        blocks.append(block)
    return replace(price_list, room_type_pricing=tuple(blocks))


def apply_generated_rules(
    price_list: PriceList,
    room_type: RoomTypeDescriptor,
    *,
    include_permutations: bool | None = None,
    config: PricingEngineConfig | None = None,
) -> PriceList:
    """Regenerate one room type's rules, carrying forward edits from the block being replaced."""

    cfg = config or default_engine_config()
    include = cfg.include_permutations_default if include_permutations is None else include_permutations
    block = build_room_type_pricing(
        room_type,
        price_list.person_categories,
        include,
        previous=price_list.room_type_block(room_type.room_type_id),
        config=cfg,
    )
    return _replace_block(price_list, block)


def update_rule_in_price_list(
    price_list: PriceList,
    *,
    room_type_id: str,
    rule_id: str,
    changes: dict[str, Any],
    config: PricingEngineConfig | None = None,
) -> PriceList:
    cfg = config or default_engine_config()
    block = price_list.room_type_block(room_type_id)
    if block is None:
        raise PriceListNotFoundError(
            f"Room type {room_type_id} is not priced in price list {price_list.id}",
            details={"price_list_id": price_list.id, "room_type_id": room_type_id},
        )

    rules = list(block.pricing_rules)
    for position, rule in enumerate(rules):
        if rule.id == rule_id:
            rules[position] = update_pricing_rule(rule, changes, decimals=cfg.price_decimals)
            break
    else:
        raise PriceListNotFoundError(
            f"Pricing rule {rule_id} does not exist for room type {room_type_id}",
            details={"price_list_id": price_list.id, "room_type_id": room_type_id, "rule_id": rule_id},
        )

    LOGGER.info(
        "pricing rule updated price_list_id=%s room_type_id=%s rule_id=%s fields=%s",
        price_list.id,
        room_type_id,
        rule_id,
        sorted(changes),
    )
    return _replace_block(price_list, replace(block, pricing_rules=tuple(rules)))


def validate_price_list(price_list: PriceList, *, decimals: int | None = None) -> list[str]:
    """Consistency problems in a stored price list; an empty list means it is coherent."""

    places = default_engine_config().price_decimals if decimals is None else decimals
    problems: list[str] = []
    if price_list.valid_from >= price_list.valid_to:
        problems.append(
            f"validFrom {price_list.valid_from.isoformat()} is not before validTo {price_list.valid_to.isoformat()}"
        )
    problems.extend(validate_person_categories(price_list.person_categories))

    defined = {str(category.code) for category in price_list.person_categories}
    for block in price_list.room_type_pricing:
        for rule in block.pricing_rules:
            missing = sorted(set(rule.category_codes()).difference(defined))
            if missing:
                problems.append(f"roomType={block.room_type_id} rule={rule.id}: undefined categories {missing}")
            if not is_price_consistent(rule, decimals=places):
                problems.append(f"roomType={block.room_type_id} rule={rule.id}: finalPrice {rule.final_price} is stale")
    return problems


def price_list_to_document(price_list: PriceList) -> dict[str, Any]:
    return price_list.to_dict()


def price_list_from_document(document: dict[str, Any]) -> PriceList:
    return PriceList.from_dict(document)
