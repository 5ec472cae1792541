# This module implements the format-agnostic business checks run on every import preview.
# It exists so no parser output can reach a live price list without passing the same rules.
# Hard failures (unknown categories, bad prices, duplicate variants) become errors; softer issues become warnings.
# Only errors block approval; warnings are informational and travel with the preview.

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any

from src.occupancy_pricing.models import (
    DISCOUNT_TYPES,
    SURCHARGE_TYPES,
    ImportPreview,
    PriceModifier,
    PricingRule,
    RoomTypePricing,
)
from src.occupancy_pricing.person_categories import validate_person_categories
from src.occupancy_pricing.price_calculator import DEFAULT_PRICE_DECIMALS, calculate_final_price, is_price_consistent
from src.occupancy_pricing.rule_generator import slot_variant_key


@dataclass(frozen=True)
class ImportCheckSummary:
    passed: bool
    errors: list[str]
    warnings: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"passed": self.passed, "errors": self.errors, "warnings": self.warnings}


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _check_modifier(
    modifier: PriceModifier,
    *,
    kind: str,
    where: str,
    errors: list[str],
    warnings: list[str],
) -> None:
    known_types = DISCOUNT_TYPES if kind == "discount" else SURCHARGE_TYPES
    if modifier.type not in known_types:
        warnings.append(f"{where}: {kind} type {modifier.type!r} is not one of {sorted(known_types)}")
    if modifier.amount is None and modifier.percentage is None:
        warnings.append(f"{where}: {kind} {modifier.label!r} has neither amount nor percentage and is ignored")
        return
    for field_name, value in (("amount", modifier.amount), ("percentage", modifier.percentage)):
        if value is None:
            continue
        if not _is_finite_number(value) or value < 0:
            errors.append(f"{where}: {kind} {modifier.label!r} {field_name} must be a finite non-negative number")
    if kind == "discount" and _is_finite_number(modifier.percentage) and modifier.percentage > 100:
        errors.append(f"{where}: discount {modifier.label!r} percentage {modifier.percentage} exceeds 100")


def _rule_is_computable(rule: PricingRule) -> bool:
    values = [rule.base_price]
    for modifier in (*rule.discounts, *rule.surcharges):
        values.extend(value for value in (modifier.amount, modifier.percentage) if value is not None)
    return all(_is_finite_number(value) for value in values)


def _check_room_block(
    block: RoomTypePricing,
    *,
    defined_codes: set[str],
    decimals: int,
    errors: list[str],
    warnings: list[str],
) -> None:
    seen_variants: dict[str, str] = {}
    for rule in block.pricing_rules:
        where = f"roomType={block.room_type_id} rule={rule.id or '<unnamed>'}"

        for code in rule.category_codes():
            if code not in defined_codes:
                errors.append(f"{where}: bedAssignment references person category {code} which is not defined")

        if not _is_finite_number(rule.base_price) or rule.base_price < 0:
            errors.append(f"{where}: basePrice {rule.base_price!r} must be a finite non-negative number")

        for modifier in rule.discounts:
            _check_modifier(modifier, kind="discount", where=where, errors=errors, warnings=warnings)
        for modifier in rule.surcharges:
            _check_modifier(modifier, kind="surcharge", where=where, errors=errors, warnings=warnings)

        variant_key = slot_variant_key(rule.bed_assignment)
        if variant_key in seen_variants:
            errors.append(
                f"{where}: duplicate occupancy variant {variant_key!r} (also priced by rule {seen_variants[variant_key]})"
            )
        else:
            seen_variants[variant_key] = rule.id or "<unnamed>"

        if _rule_is_computable(rule) and not is_price_consistent(rule, decimals=decimals):
            warnings.append(
                f"{where}: finalPrice {rule.final_price} disagrees with computed "
                f"{calculate_final_price(rule, decimals=decimals)} and will be recomputed"
            )


def run_import_checks(
    preview: ImportPreview,
    *,
    known_room_type_ids: Iterable[str] | None = None,
    decimals: int = DEFAULT_PRICE_DECIMALS,
) -> ImportCheckSummary:
    errors: list[str] = []
    warnings: list[str] = []

    errors.extend(validate_person_categories(preview.person_categories))
    defined_codes = {str(category.code) for category in preview.person_categories}

    if not preview.room_type_pricing:
        warnings.append("roomTypePricing is empty; no room type prices will change")

    known = set(known_room_type_ids) if known_room_type_ids is not None else None
    seen_blocks: set[str] = set()
    for block in preview.room_type_pricing:
        if known is not None and block.room_type_id not in known:
            warnings.append(f"roomType={block.room_type_id} is not a known room type for this property")
        if block.room_type_id in seen_blocks:
            errors.append(f"roomType={block.room_type_id} appears more than once in roomTypePricing")
        seen_blocks.add(block.room_type_id)
        _check_room_block(
            block,
            defined_codes=defined_codes,
            decimals=decimals,
            errors=errors,
            warnings=warnings,
        )

    return ImportCheckSummary(passed=not errors, errors=errors, warnings=warnings)


def validate_import_preview(
    preview: ImportPreview,
    known_room_type_ids: Iterable[str] | None = None,
    *,
    decimals: int = DEFAULT_PRICE_DECIMALS,
) -> list[str]:
    """Return the hard errors for a preview; an empty list means it may be approved."""

    summary = run_import_checks(preview, known_room_type_ids=known_room_type_ids, decimals=decimals)
    return list(dict.fromkeys((*preview.errors, *summary.errors)))


def _recompute_block(block: RoomTypePricing, *, decimals: int) -> RoomTypePricing:
    rules = tuple(
        replace(rule, final_price=calculate_final_price(rule, decimals=decimals)) if _rule_is_computable(rule) else rule
        for rule in block.pricing_rules
    )
    return replace(block, pricing_rules=rules)


def normalize_import_preview(
    preview: ImportPreview,
    *,
    known_room_type_ids: Iterable[str] | None = None,
    decimals: int = DEFAULT_PRICE_DECIMALS,
) -> ImportPreview:
    """Validate a parser's preview and return it with recomputed prices and merged errors/warnings."""

    summary = run_import_checks(preview, known_room_type_ids=known_room_type_ids, decimals=decimals)
    blocks = tuple(_recompute_block(block, decimals=decimals) for block in preview.room_type_pricing)
    return replace(
        preview,
        room_type_pricing=blocks,
        errors=tuple(dict.fromkeys((*preview.errors, *summary.errors))),
        warnings=tuple(dict.fromkeys((*preview.warnings, *summary.warnings))),
    )
