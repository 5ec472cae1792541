# This test file validates pricing rule generation and carry-forward on regeneration.
# It exists so operator edits survive bed layout changes for every variant that still exists.
# The tests check stable rule ids, exact and canonical matching, and configuration failures.

from __future__ import annotations

from dataclasses import replace

import pytest

from src.occupancy_pricing.errors import ConfigurationError
from src.occupancy_pricing.models import PriceModifier, RoomTypeDescriptor, RoomTypePricing
from src.occupancy_pricing.person_categories import PersonCategory
from src.occupancy_pricing.price_calculator import update_pricing_rule
from src.occupancy_pricing.rule_generator import (
    build_room_type_pricing,
    canonical_variant_key,
    generate_pricing_rules,
    pricing_rule_id,
    slot_variant_key,
)

CATEGORIES = [
    PersonCategory(code="ADL", label="Adults", age_from=18, age_to=99),
    PersonCategory(code="CHD1", label="Children 2-7", age_from=2, age_to=7),
]


def _room(**overrides: object) -> RoomTypeDescriptor:
    values: dict[str, object] = {
        "room_type_id": "dbl",
        "room_type_name": "Double room",
        "min_occupancy": 1,
        "max_occupancy": 2,
        "max_adults": 2,
        "max_children": 1,
        "basic_beds": 1,
        "basic_bed_capacity": 2,
    }
    values.update(overrides)
    return RoomTypeDescriptor(**values)  # type: ignore[arg-type]


def _by_canonical(rules: list) -> dict[str, object]:
    return {canonical_variant_key(rule.bed_assignment): rule for rule in rules}


def test_new_rules_start_active_and_unpriced() -> None:
    rules = generate_pricing_rules(_room(), CATEGORIES)

    assert [rule.category_codes() for rule in rules] == [["ADL"], ["ADL", "ADL"], ["ADL", "CHD1"]]
    assert all(rule.is_active for rule in rules)
    assert all(rule.base_price == 0.0 and rule.final_price == 0.0 for rule in rules)
    assert all(rule.id.startswith("rule_") for rule in rules)


def test_rule_ids_are_stable_across_regeneration() -> None:
    first = generate_pricing_rules(_room(), CATEGORIES)
    second = generate_pricing_rules(_room(), CATEGORIES)

    assert [rule.id for rule in first] == [rule.id for rule in second]
    assert first[0].id == pricing_rule_id(room_type_id="dbl", bed_assignment=first[0].bed_assignment)
    assert first[0].id != pricing_rule_id(room_type_id="twin", bed_assignment=first[0].bed_assignment)


def test_adding_extra_bed_preserves_existing_prices() -> None:
    before = generate_pricing_rules(_room(), CATEGORIES)
    edited = [
        update_pricing_rule(
            rule,
            {
                "base_price": 50.0 * (position + 1),
                "discounts": [PriceModifier(type="early_booking", label="Early", percentage=10)],
                "notes": f"edited {position}",
            },
        )
        for position, rule in enumerate(before)
    ]

    after = generate_pricing_rules(
        _room(extra_beds=1, max_occupancy=3),
        CATEGORIES,
        previous_rules=edited,
    )
    after_by_key = _by_canonical(after)

    assert len(after) == 4
    for rule in edited:
        carried = after_by_key[canonical_variant_key(rule.bed_assignment)]
        assert carried.base_price == rule.base_price
        assert carried.discounts == rule.discounts
        assert carried.notes == rule.notes
        assert carried.final_price == rule.final_price

    new_rule = after_by_key["ADL+ADL+CHD1"]
    assert new_rule.base_price == 0.0
    assert new_rule.discounts == ()


def test_canonical_key_matches_when_slots_move() -> None:
    single_plus_extra = _room(basic_beds=1, basic_bed_capacity=1, extra_beds=1)
    before = generate_pricing_rules(single_plus_extra, CATEGORIES)
    mixed = next(rule for rule in before if rule.category_codes() == ["ADL", "CHD1"])
    priced = update_pricing_rule(mixed, {"base_price": 140.0, "is_active": False})

    after = generate_pricing_rules(_room(), CATEGORIES, previous_rules=[priced])
    moved = next(rule for rule in after if rule.category_codes() == ["ADL", "CHD1"])

    assert slot_variant_key(moved.bed_assignment) != slot_variant_key(priced.bed_assignment)
    assert moved.base_price == 140.0
    assert moved.is_active is False


def test_exact_slot_match_wins_over_canonical_match() -> None:
    permuted = generate_pricing_rules(_room(), CATEGORIES, include_permutations=True)
    adult_first = next(rule for rule in permuted if rule.category_codes() == ["ADL", "CHD1"])
    child_first = next(rule for rule in permuted if rule.category_codes() == ["CHD1", "ADL"])
    previous = [
        replace(child_first, base_price=70.0, final_price=70.0),
        replace(adult_first, base_price=80.0, final_price=80.0),
    ]

    regenerated = generate_pricing_rules(_room(), CATEGORIES, include_permutations=True, previous_rules=previous)
    prices = {tuple(rule.category_codes()): rule.base_price for rule in regenerated}

    assert prices[("ADL", "CHD1")] == 80.0
    assert prices[("CHD1", "ADL")] == 70.0


def test_contradictory_room_raises_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="exceeds maxOccupancy"):
        generate_pricing_rules(_room(min_occupancy=3, max_occupancy=2), CATEGORIES)


def test_room_type_block_labels_and_name() -> None:
    block = build_room_type_pricing(_room(), CATEGORIES)

    assert block.room_type_id == "dbl"
    assert block.room_type_name == "Double room"
    assert block.base_occupancy_variants == ("1ADL_0CHD", "2ADL_0CHD", "1ADL_1CHD")

    explicit = build_room_type_pricing(_room(allowed_occupancy_variants=("2ADL_0CHD",)), CATEGORIES)
    assert explicit.base_occupancy_variants == ("2ADL_0CHD",)


def test_room_type_block_keeps_previous_name_when_descriptor_has_none() -> None:
    previous = RoomTypePricing(room_type_id="dbl", room_type_name="Deluxe double")
    block = build_room_type_pricing(_room(room_type_name=""), CATEGORIES, previous=previous)
    assert block.room_type_name == "Deluxe double"
