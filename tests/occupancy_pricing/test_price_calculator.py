# This test file validates final price calculation for pricing rules.
# It exists to pin the discount-then-surcharge order and running-total semantics.
# The tests check the documented example, idempotence, clamping, rounding, and rule edits.

from __future__ import annotations

import logging
import math

import pytest

from src.occupancy_pricing.models import BedOccupant, BedType, PriceModifier, PricingRule
from src.occupancy_pricing.price_calculator import (
    calculate_final_price,
    is_price_consistent,
    update_pricing_rule,
    with_recomputed_price,
)


def _rule(**overrides: object) -> PricingRule:
    values: dict[str, object] = {
        "id": "rule_test",
        "is_active": True,
        "bed_assignment": (BedOccupant(bed_type=BedType.BASIC, bed_index=0, person_category="ADL"),),
        "base_price": 100.0,
    }
    values.update(overrides)
    return PricingRule(**values)  # type: ignore[arg-type]


def test_discount_then_surcharge_example() -> None:
    rule = _rule(
        discounts=(PriceModifier(type="early_booking", label="Early booking", percentage=10),),
        surcharges=(PriceModifier(type="sea_view", label="Sea view", amount=5),),
    )
    assert calculate_final_price(rule) == 95.0


def test_percentages_apply_to_running_total() -> None:
    rule = _rule(
        discounts=(
            PriceModifier(type="custom", label="Fixed", amount=20),
            PriceModifier(type="custom", label="Ten percent", percentage=10),
        ),
        surcharges=(PriceModifier(type="single_use", label="Single use", percentage=50),),
    )
    # (100 - 20) * 0.9 = 72, then * 1.5 = 108
    assert calculate_final_price(rule) == 108.0


def test_percentage_applies_before_amount_within_one_modifier() -> None:
    rule = _rule(discounts=(PriceModifier(type="custom", label="Both", amount=10, percentage=50),))
    assert calculate_final_price(rule) == 40.0


def test_calculation_is_idempotent() -> None:
    rule = with_recomputed_price(
        _rule(
            base_price=89.99,
            discounts=(PriceModifier(type="child_discount", label="Child", percentage=33.3),),
        )
    )
    assert calculate_final_price(rule) == calculate_final_price(rule)
    assert calculate_final_price(rule) == rule.final_price
    assert is_price_consistent(rule)


def test_negative_total_clamps_to_zero_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    rule = _rule(base_price=30.0, discounts=(PriceModifier(type="last_minute", label="Last minute", amount=50),))

    with caplog.at_level(logging.WARNING, logger="occupancy_pricing.calculator"):
        assert calculate_final_price(rule) == 0.0

    assert any("clamped to 0" in record.getMessage() for record in caplog.records)


def test_rounding_is_half_even() -> None:
    assert calculate_final_price(_rule(base_price=10.125)) == 10.12
    assert calculate_final_price(_rule(base_price=10.135)) == 10.14
    assert calculate_final_price(_rule(base_price=10.5), decimals=0) == 10.0


def test_non_finite_base_price_is_not_rounded() -> None:
    assert math.isinf(calculate_final_price(_rule(base_price=math.inf)))


def test_update_recomputes_final_price() -> None:
    rule = with_recomputed_price(_rule())
    updated = update_pricing_rule(
        rule,
        {"base_price": 120, "discounts": [PriceModifier(type="custom", label="Promo", percentage=25)]},
    )

    assert updated.base_price == 120.0
    assert isinstance(updated.discounts, tuple)
    assert updated.final_price == 90.0
    assert rule.final_price == 100.0


def test_update_rejects_final_price_and_unknown_fields() -> None:
    rule = with_recomputed_price(_rule())
    with pytest.raises(ValueError, match="not editable"):
        update_pricing_rule(rule, {"final_price": 1.0})
    with pytest.raises(ValueError, match="bed_assignment"):
        update_pricing_rule(rule, {"bed_assignment": ()})
