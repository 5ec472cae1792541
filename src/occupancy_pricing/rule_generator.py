# This module turns enumerated occupancy variants into editable pricing rules.
# Rule ids are hashes of the room type and slot assignment, so regenerating the same shape yields the same id.
# Regeneration replaces the whole rule set for a room type but carries operator edits forward: a prior rule is
# matched by exact slot assignment first, then by its order-independent canonical variant key.

from __future__ import annotations

import hashlib
import logging
from collections import defaultdict, deque
from collections.abc import Iterable, Sequence

from src.occupancy_pricing.models import BedOccupant, PricingRule, RoomTypeDescriptor, RoomTypePricing
from src.occupancy_pricing.occupancy_enumerator import OccupancyVariant, enumerate_occupancy_variants
from src.occupancy_pricing.person_categories import PersonCategory, code_sort_index
from src.occupancy_pricing.price_calculator import with_recomputed_price
from src.occupancy_pricing.pricing_config import PricingEngineConfig, default_engine_config

LOGGER = logging.getLogger("occupancy_pricing.generator")


def slot_variant_key(bed_assignment: Iterable[BedOccupant]) -> str:
    return "|".join(f"{occupant.slot_label()}:{occupant.person_category}" for occupant in bed_assignment)


def canonical_variant_key(bed_assignment: Iterable[BedOccupant]) -> str:
    codes = sorted(
        (occupant.person_category for occupant in bed_assignment),
        key=lambda code: (code_sort_index(code), code),
    )
    return "+".join(codes)


def pricing_rule_id(*, room_type_id: str, bed_assignment: Sequence[BedOccupant]) -> str:
    raw = f"{room_type_id}|{slot_variant_key(bed_assignment)}".encode()
    return f"rule_{hashlib.sha256(raw).hexdigest()[:16]}"


class _CarryForwardIndex:
    def __init__(self, previous_rules: Iterable[PricingRule]) -> None:
        self._by_slot: dict[str, PricingRule] = {}
        self._by_canonical: dict[str, deque[PricingRule]] = defaultdict(deque)
        self._used: set[int] = set()
        for rule in previous_rules:
            self._by_slot.setdefault(slot_variant_key(rule.bed_assignment), rule)
            self._by_canonical[canonical_variant_key(rule.bed_assignment)].append(rule)

    def assign(self, variants: Sequence[OccupancyVariant]) -> list[PricingRule | None]:
        """Match prior rules to variants: all exact slot matches first, then canonical fallbacks."""

        matches: list[PricingRule | None] = [None] * len(variants)
        for position, variant in enumerate(variants):
            exact = self._by_slot.get(slot_variant_key(variant.occupants))
            if exact is not None and id(exact) not in self._used:
                self._used.add(id(exact))
                matches[position] = exact

        for position, variant in enumerate(variants):
            if matches[position] is not None:
                continue
            candidates = self._by_canonical.get(canonical_variant_key(variant.occupants))
            while candidates:
                candidate = candidates.popleft()
                if id(candidate) not in self._used:
                    self._used.add(id(candidate))
                    matches[position] = candidate
                    break
        return matches

    @property
    def used_count(self) -> int:
        return len(self._used)


def _rule_for_variant(
    *,
    room_type_id: str,
    variant: OccupancyVariant,
    prior: PricingRule | None,
    decimals: int,
) -> PricingRule:
    rule = PricingRule(
        id=pricing_rule_id(room_type_id=room_type_id, bed_assignment=variant.occupants),
        is_active=True if prior is None else prior.is_active,
        bed_assignment=variant.occupants,
        base_price=0.0 if prior is None else prior.base_price,
        discounts=() if prior is None else prior.discounts,
        surcharges=() if prior is None else prior.surcharges,
        notes=None if prior is None else prior.notes,
    )
    return with_recomputed_price(rule, decimals=decimals)


def generate_pricing_rules(
    room_type: RoomTypeDescriptor,
    person_categories: Sequence[PersonCategory],
    include_permutations: bool = False,
    *,
    previous_rules: Iterable[PricingRule] = (),
    config: PricingEngineConfig | None = None,
) -> list[PricingRule]:
    """Generate one rule per valid occupancy variant; raises ConfigurationError when nothing can be generated."""

    cfg = config or default_engine_config()
    enumeration = enumerate_occupancy_variants(
        room_type,
        person_categories,
        include_permutations=include_permutations,
        infants_count_toward_occupancy=cfg.infants_count_toward_occupancy,
        allow_unaccompanied_minors=cfg.allow_unaccompanied_minors,
        variant_count_warning_threshold=cfg.variant_count_warning_threshold,
    )
    if enumeration.configuration_error is not None:
        raise enumeration.configuration_error

    previous = list(previous_rules)
    index = _CarryForwardIndex(previous)
    priors = index.assign(enumeration.variants)
    rules = [
        _rule_for_variant(
            room_type_id=room_type.room_type_id,
            variant=variant,
            prior=prior,
            decimals=cfg.price_decimals,
        )
        for variant, prior in zip(enumeration.variants, priors)
    ]

    if previous:
        LOGGER.info(
            "regenerated room_type_id=%s rules=%s carried_forward=%s dropped=%s",
            room_type.room_type_id,
            len(rules),
            index.used_count,
            len(previous) - index.used_count,
        )
    return rules


def build_room_type_pricing(
    room_type: RoomTypeDescriptor,
    person_categories: Sequence[PersonCategory],
    include_permutations: bool = False,
    *,
    previous: RoomTypePricing | None = None,
    config: PricingEngineConfig | None = None,
) -> RoomTypePricing:
    rules = generate_pricing_rules(
        room_type,
        person_categories,
        include_permutations,
        previous_rules=previous.pricing_rules if previous is not None else (),
        config=config,
    )

    if room_type.allowed_occupancy_variants:
        labels = tuple(room_type.allowed_occupancy_variants)
    else:
        labels = tuple(dict.fromkeys(OccupancyVariant(occupants=rule.bed_assignment).occupancy_label() for rule in rules))

    name = room_type.room_type_name or (previous.room_type_name if previous is not None else "")
    return RoomTypePricing(
        room_type_id=room_type.room_type_id,
        room_type_name=name,
        base_occupancy_variants=labels,
        pricing_rules=tuple(rules),
    )
