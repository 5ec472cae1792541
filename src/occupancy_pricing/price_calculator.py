# This module computes a pricing rule's final price from its base price and modifiers.
# Order is fixed: discounts in list order, then surcharges in list order, each on the running total.
# Within one modifier the percentage applies before the fixed amount.
# A negative result is clamped to zero and logged; it is never an error.

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import replace
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any

from src.occupancy_pricing.models import PriceModifier, PricingRule

LOGGER = logging.getLogger("occupancy_pricing.calculator")

DEFAULT_PRICE_DECIMALS = 2
EDITABLE_RULE_FIELDS = frozenset({"is_active", "base_price", "discounts", "surcharges", "notes"})


def _apply_modifiers(total: float, modifiers: Iterable[PriceModifier], *, sign: int) -> float:
    running = total
    for modifier in modifiers:
        if modifier.percentage is not None:
            running = running + sign * running * (float(modifier.percentage) / 100.0)
        if modifier.amount is not None:
            running = running + sign * float(modifier.amount)
    return running


def _round_price(value: float, decimals: int) -> float:
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_EVEN))


def calculate_final_price(rule: PricingRule, *, decimals: int = DEFAULT_PRICE_DECIMALS) -> float:
    total = float(rule.base_price)
    total = _apply_modifiers(total, rule.discounts, sign=-1)
    total = _apply_modifiers(total, rule.surcharges, sign=1)

    if not math.isfinite(total):
        return total
    if total < 0:
        LOGGER.warning("final price clamped to 0 for rule_id=%s (computed %.4f)", rule.id, total)
        total = 0.0
    return _round_price(total, decimals)


def with_recomputed_price(rule: PricingRule, *, decimals: int = DEFAULT_PRICE_DECIMALS) -> PricingRule:
    return replace(rule, final_price=calculate_final_price(rule, decimals=decimals))


def is_price_consistent(rule: PricingRule, *, decimals: int = DEFAULT_PRICE_DECIMALS) -> bool:
    return abs(rule.final_price - calculate_final_price(rule, decimals=decimals)) < 10 ** (-decimals) / 2


def update_pricing_rule(
    rule: PricingRule,
    changes: dict[str, Any],
    *,
    decimals: int = DEFAULT_PRICE_DECIMALS,
) -> PricingRule:
    """Apply a partial edit and recompute `final_price`; `final_price` itself is not editable."""

    unknown = set(changes).difference(EDITABLE_RULE_FIELDS)
    if unknown:
        raise ValueError(f"Pricing rule fields are not editable: {sorted(unknown)}")

    normalized = dict(changes)
    for key in ("discounts", "surcharges"):
        if key in normalized:
            normalized[key] = tuple(normalized[key])
    if "base_price" in normalized:
        normalized["base_price"] = float(normalized["base_price"])
    return with_recomputed_price(replace(rule, **normalized), decimals=decimals)
