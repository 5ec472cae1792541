# This module enumerates every valid way guests of each age band can occupy a room type's beds.
# Candidates are produced lazily per occupant count and filtered eagerly against occupancy, adult, and child limits.
# Without permutations each category multiset appears once in canonical slot order; with permutations every
# slot-to-category mapping is kept, which grows combinatorially and is capped only by the caller's room setup.
# Contradictory room bounds yield an empty result carrying a ConfigurationError instead of raising.

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from src.occupancy_pricing.errors import ConfigurationError
from src.occupancy_pricing.models import BedOccupant, BedType, RoomTypeDescriptor
from src.occupancy_pricing.person_categories import (
    PersonCategory,
    PersonCategoryCode,
    code_sort_index,
    counts_toward_occupancy,
    is_adult,
    is_counted_child,
)

LOGGER = logging.getLogger("occupancy_pricing.enumerator")


@dataclass(frozen=True)
class OccupancyVariant:
    occupants: tuple[BedOccupant, ...]

    def category_codes(self) -> tuple[str, ...]:
        return tuple(occupant.person_category for occupant in self.occupants)

    def slot_layout(self) -> tuple[tuple[int, int], ...]:
        return tuple((0 if occupant.bed_type == BedType.BASIC else 1, occupant.bed_index) for occupant in self.occupants)

    def sort_key(self) -> tuple[int, tuple[int, ...], tuple[str, ...], tuple[tuple[int, int], ...]]:
        codes = self.category_codes()
        return (len(codes), tuple(code_sort_index(code) for code in codes), codes, self.slot_layout())

    def occupancy_label(self) -> str:
        adults = sum(1 for code in self.category_codes() if is_adult(code))
        others = len(self.occupants) - adults
        return f"{adults}ADL_{others}CHD"


@dataclass(frozen=True)
class OccupancyEnumeration:
    variants: list[OccupancyVariant] = field(default_factory=list)
    configuration_error: ConfigurationError | None = None
    include_permutations: bool = False

    @property
    def ok(self) -> bool:
        return self.configuration_error is None


def bed_slots(room_type: RoomTypeDescriptor) -> list[tuple[BedType, int]]:
    """Ordered bed slots: every basic slot first, then every extra slot."""

    basic = [(BedType.BASIC, index) for index in range(room_type.basic_slots)]
    extra = [(BedType.EXTRA, index) for index in range(room_type.extra_slots)]
    return basic + extra


def _ordered_codes(categories: Iterable[PersonCategory]) -> list[str]:
    codes = {str(category.code) for category in categories}
    return sorted(codes, key=lambda code: (code_sort_index(code), code))


def check_room_type_bounds(
    room_type: RoomTypeDescriptor,
    categories: Sequence[PersonCategory],
    *,
    allow_unaccompanied_minors: bool = False,
) -> ConfigurationError | None:
    details = {
        "room_type_id": room_type.room_type_id,
        "min_occupancy": room_type.min_occupancy,
        "max_occupancy": room_type.max_occupancy,
        "max_adults": room_type.max_adults,
        "max_children": room_type.max_children,
    }

    if min(room_type.basic_beds, room_type.extra_beds, room_type.max_adults, room_type.max_children) < 0:
        return ConfigurationError("Bed counts and occupancy limits must be nonnegative", details=details)
    if room_type.basic_bed_capacity < 1 or room_type.extra_bed_capacity < 1:
        return ConfigurationError("Bed capacity must be at least one slot per bed", details=details)
    if room_type.min_occupancy < 0:
        return ConfigurationError("minOccupancy must be nonnegative", details=details)
    if room_type.min_occupancy > room_type.max_occupancy:
        return ConfigurationError(
            f"minOccupancy={room_type.min_occupancy} exceeds maxOccupancy={room_type.max_occupancy}",
            details=details,
        )

    total_slots = room_type.basic_slots + room_type.extra_slots
    if room_type.min_occupancy > total_slots:
        return ConfigurationError(
            f"minOccupancy={room_type.min_occupancy} cannot be seated in {total_slots} bed slots",
            details=details | {"bed_slots": total_slots},
        )
    if not categories:
        return ConfigurationError("No person categories are defined", details=details)

    has_adult_category = any(is_adult(str(category.code)) for category in categories)
    if not allow_unaccompanied_minors:
        if room_type.max_adults == 0:
            return ConfigurationError(
                "maxAdults=0 cannot satisfy minOccupancy without unaccompanied minors",
                details=details,
            )
        if not has_adult_category:
            return ConfigurationError(
                f"Person categories do not include {PersonCategoryCode.ADL.value}",
                details=details,
            )
    return None


def _slot_layouts(
    slots: Sequence[tuple[BedType, int]],
    basic_slots: int,
    size: int,
    *,
    include_permutations: bool,
) -> Iterator[tuple[tuple[BedType, int], ...]]:
    """Slots occupied by a party of ``size``; basic slots always fill first."""

    if size <= basic_slots or not include_permutations:
        yield tuple(slots[:size])
        return
    # Any subset of extra slots may hold the overflow, so a layout can leave an earlier extra slot vacant.
    basic, extra = slots[:basic_slots], slots[basic_slots:]
    for chosen in itertools.combinations(extra, size - basic_slots):
        yield tuple(basic) + chosen


def _candidate_sequences(codes: Sequence[str], size: int, *, include_permutations: bool) -> Iterator[tuple[str, ...]]:
    if include_permutations:
        return itertools.product(codes, repeat=size)
    # Canonical order: codes already sorted, so each multiset is emitted once in sorted form.
    return itertools.combinations_with_replacement(codes, size)


def _passes_filters(
    sequence: Sequence[str],
    *,
    room_type: RoomTypeDescriptor,
    infants_count_toward_occupancy: bool,
    allow_unaccompanied_minors: bool,
) -> bool:
    counted = sum(
        1 for code in sequence if counts_toward_occupancy(code, infants_count_toward_occupancy=infants_count_toward_occupancy)
    )
    if counted < room_type.min_occupancy or counted > room_type.max_occupancy:
        return False

    adults = sum(1 for code in sequence if is_adult(code))
    if adults > room_type.max_adults:
        return False
    if adults == 0 and not allow_unaccompanied_minors:
        return False

    children = sum(
        1 for code in sequence if is_counted_child(code, infants_count_toward_occupancy=infants_count_toward_occupancy)
    )
    return children <= room_type.max_children


def enumerate_occupancy_variants(
    room_type: RoomTypeDescriptor,
    categories: Sequence[PersonCategory],
    *,
    include_permutations: bool = False,
    infants_count_toward_occupancy: bool = True,
    allow_unaccompanied_minors: bool = False,
    variant_count_warning_threshold: int | None = None,
) -> OccupancyEnumeration:
    error = check_room_type_bounds(
        room_type,
        categories,
        allow_unaccompanied_minors=allow_unaccompanied_minors,
    )
    if error is not None:
        LOGGER.warning("occupancy enumeration rejected room_type_id=%s reason=%s", room_type.room_type_id, error)
        return OccupancyEnumeration(configuration_error=error, include_permutations=include_permutations)

    slots = bed_slots(room_type)
    codes = _ordered_codes(categories)

    smallest = max(1, room_type.min_occupancy)
    largest = len(slots)
    if infants_count_toward_occupancy:
        largest = min(room_type.max_occupancy, len(slots))
    if room_type.max_occupancy > len(slots):
        LOGGER.info(
            "maxOccupancy=%s capped by %s bed slots for room_type_id=%s",
            room_type.max_occupancy,
            len(slots),
            room_type.room_type_id,
        )

    variants: list[OccupancyVariant] = []
    for size in range(smallest, largest + 1):
        sequences = [
            sequence
            for sequence in _candidate_sequences(codes, size, include_permutations=include_permutations)
            if _passes_filters(
                sequence,
                room_type=room_type,
                infants_count_toward_occupancy=infants_count_toward_occupancy,
                allow_unaccompanied_minors=allow_unaccompanied_minors,
            )
        ]
        for layout in _slot_layouts(slots, room_type.basic_slots, size, include_permutations=include_permutations):
            for sequence in sequences:
                occupants = tuple(
                    BedOccupant(bed_type=bed_type, bed_index=bed_index, person_category=code)
                    for (bed_type, bed_index), code in zip(layout, sequence)
                )
                variants.append(OccupancyVariant(occupants=occupants))

    variants.sort(key=lambda variant: variant.sort_key())

    if not variants:
        error = ConfigurationError(
            "No occupancy variant satisfies the room type limits",
            details={"room_type_id": room_type.room_type_id, "bed_slots": len(slots)},
        )
        LOGGER.warning("occupancy enumeration empty room_type_id=%s", room_type.room_type_id)
        return OccupancyEnumeration(configuration_error=error, include_permutations=include_permutations)

    if variant_count_warning_threshold is not None and len(variants) > variant_count_warning_threshold:
        LOGGER.warning(
            "room_type_id=%s produced %s occupancy variants (threshold=%s, include_permutations=%s)",
            room_type.room_type_id,
            len(variants),
            variant_count_warning_threshold,
            include_permutations,
        )

    LOGGER.info(
        "enumerated %s occupancy variants room_type_id=%s include_permutations=%s",
        len(variants),
        room_type.room_type_id,
        include_permutations,
    )
    return OccupancyEnumeration(variants=variants, include_permutations=include_permutations)
