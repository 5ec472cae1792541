# This test file validates occupancy variant enumeration for room bed layouts.
# It exists to keep variant sets, ordering, and bound checks stable across refactors.
# The tests cover the documented double-bed example, permutation growth, infant rules, and config errors.
# Inputs are small in-memory room types so the suite stays fast.

from __future__ import annotations

import logging

import pytest

from src.occupancy_pricing.errors import ConfigurationError
from src.occupancy_pricing.models import BedType, RoomTypeDescriptor
from src.occupancy_pricing.occupancy_enumerator import bed_slots, enumerate_occupancy_variants
from src.occupancy_pricing.person_categories import DEFAULT_PERSON_CATEGORIES, PersonCategory

ADL = PersonCategory(code="ADL", label="Adults", age_from=18, age_to=99)
CHD1 = PersonCategory(code="CHD1", label="Children 2-7", age_from=2, age_to=7)
INF = PersonCategory(code="INF", label="Infants 0-2", age_from=0, age_to=2)


def _room(**overrides: object) -> RoomTypeDescriptor:
    values: dict[str, object] = {
        "room_type_id": "double_plus_extra",
        "min_occupancy": 1,
        "max_occupancy": 3,
        "max_adults": 2,
        "max_children": 1,
        "basic_beds": 1,
        "basic_bed_capacity": 2,
        "extra_beds": 1,
    }
    values.update(overrides)
    return RoomTypeDescriptor(**values)  # type: ignore[arg-type]


def _codes(result: object) -> list[list[str]]:
    return [list(variant.category_codes()) for variant in result.variants]  # type: ignore[attr-defined]


def test_double_bed_with_extra_bed_example() -> None:
    result = enumerate_occupancy_variants(_room(), [ADL, CHD1])

    assert result.ok
    assert _codes(result) == [
        ["ADL"],
        ["ADL", "ADL"],
        ["ADL", "CHD1"],
        ["ADL", "ADL", "CHD1"],
    ]


def test_occupants_fill_basic_slots_before_extra_slots() -> None:
    result = enumerate_occupancy_variants(_room(), [ADL, CHD1])
    largest = result.variants[-1].occupants

    assert [(occupant.bed_type, occupant.bed_index) for occupant in largest] == [
        (BedType.BASIC, 0),
        (BedType.BASIC, 1),
        (BedType.EXTRA, 0),
    ]
    assert largest[-1].person_category == "CHD1"


def test_bed_slots_follow_capacity() -> None:
    slots = bed_slots(_room(basic_beds=2, basic_bed_capacity=1, extra_beds=1, extra_bed_capacity=2))
    assert slots == [(BedType.BASIC, 0), (BedType.BASIC, 1), (BedType.EXTRA, 0), (BedType.EXTRA, 1)]


@pytest.mark.parametrize(
    "overrides",
    [
        {},
        {"min_occupancy": 2, "max_occupancy": 2},
        {"max_children": 0},
        {"max_adults": 1, "max_children": 2},
        {"min_occupancy": 3, "max_occupancy": 3},
        {"basic_beds": 3, "basic_bed_capacity": 1, "extra_beds": 0, "max_occupancy": 5},
        {"min_occupancy": 0, "max_occupancy": 2, "basic_beds": 2, "basic_bed_capacity": 1, "extra_beds": 0},
    ],
)
def test_consistent_bounds_always_yield_a_variant(overrides: dict[str, object]) -> None:
    result = enumerate_occupancy_variants(_room(**overrides), DEFAULT_PERSON_CATEGORIES)

    assert result.configuration_error is None
    assert len(result.variants) >= 1


def test_min_above_max_is_configuration_error() -> None:
    result = enumerate_occupancy_variants(_room(min_occupancy=3, max_occupancy=2), [ADL, CHD1])

    assert result.variants == []
    assert isinstance(result.configuration_error, ConfigurationError)
    assert result.configuration_error.details["room_type_id"] == "double_plus_extra"


def test_min_occupancy_above_bed_slots_is_configuration_error() -> None:
    result = enumerate_occupancy_variants(
        _room(min_occupancy=4, max_occupancy=4, max_adults=4, max_children=4),
        [ADL, CHD1],
    )

    assert result.variants == []
    assert isinstance(result.configuration_error, ConfigurationError)


def test_zero_adults_rejected_unless_unaccompanied_minors_allowed() -> None:
    blocked = enumerate_occupancy_variants(_room(max_adults=0), [ADL, CHD1])
    assert isinstance(blocked.configuration_error, ConfigurationError)

    allowed = enumerate_occupancy_variants(
        _room(max_adults=0, max_occupancy=1),
        [ADL, CHD1],
        allow_unaccompanied_minors=True,
    )
    assert allowed.ok
    assert _codes(allowed) == [["CHD1"]]


def test_output_is_deterministic() -> None:
    first = enumerate_occupancy_variants(_room(), DEFAULT_PERSON_CATEGORIES, include_permutations=True)
    second = enumerate_occupancy_variants(_room(), DEFAULT_PERSON_CATEGORIES, include_permutations=True)

    assert first.variants == second.variants


def test_permutations_never_produce_fewer_variants() -> None:
    for overrides in ({}, {"max_children": 2}, {"max_adults": 1, "max_children": 2}):
        canonical = enumerate_occupancy_variants(_room(**overrides), DEFAULT_PERSON_CATEGORIES)
        permuted = enumerate_occupancy_variants(
            _room(**overrides),
            DEFAULT_PERSON_CATEGORIES,
            include_permutations=True,
        )
        assert len(canonical.variants) <= len(permuted.variants)


def test_permutations_keep_every_slot_assignment() -> None:
    result = enumerate_occupancy_variants(_room(), [ADL, CHD1], include_permutations=True)

    assert _codes(result) == [
        ["ADL"],
        ["ADL", "ADL"],
        ["ADL", "CHD1"],
        ["CHD1", "ADL"],
        ["ADL", "ADL", "CHD1"],
        ["ADL", "CHD1", "ADL"],
        ["CHD1", "ADL", "ADL"],
    ]


def test_infants_outside_occupancy_when_configured() -> None:
    room = _room(
        room_type_id="single_with_cot",
        max_occupancy=1,
        max_adults=1,
        max_children=0,
        basic_beds=2,
        basic_bed_capacity=1,
        extra_beds=0,
    )

    counted = enumerate_occupancy_variants(room, [ADL, INF])
    assert _codes(counted) == [["ADL"]]

    not_counted = enumerate_occupancy_variants(room, [ADL, INF], infants_count_toward_occupancy=False)
    assert _codes(not_counted) == [["ADL"], ["ADL", "INF"]]


def test_variant_threshold_logs_warning_without_truncating(caplog: pytest.LogCaptureFixture) -> None:
    room = _room(basic_beds=3, basic_bed_capacity=1, extra_beds=0, max_adults=3, max_children=2)

    with caplog.at_level(logging.WARNING, logger="occupancy_pricing.enumerator"):
        result = enumerate_occupancy_variants(
            room,
            DEFAULT_PERSON_CATEGORIES,
            include_permutations=True,
            variant_count_warning_threshold=5,
        )

    assert len(result.variants) > 5
    assert any("occupancy variants (threshold=5" in record.getMessage() for record in caplog.records)


def test_occupancy_label_counts_adults_and_others() -> None:
    result = enumerate_occupancy_variants(_room(), [ADL, CHD1])
    assert [variant.occupancy_label() for variant in result.variants] == [
        "1ADL_0CHD",
        "2ADL_0CHD",
        "1ADL_1CHD",
        "2ADL_1CHD",
    ]


def test_zero_min_occupancy_starts_at_one_guest() -> None:
    result = enumerate_occupancy_variants(
        _room(min_occupancy=0, max_occupancy=2, basic_beds=2, basic_bed_capacity=1, extra_beds=0),
        [ADL, CHD1],
    )

    assert result.ok
    assert _codes(result)[0] == ["ADL"]
    assert all(variant.occupants for variant in result.variants)


def test_negative_min_occupancy_is_configuration_error() -> None:
    result = enumerate_occupancy_variants(_room(min_occupancy=-1), [ADL, CHD1])

    assert result.variants == []
    assert isinstance(result.configuration_error, ConfigurationError)


def _layout(variant: object) -> tuple[str, ...]:
    return tuple(f"{occupant.bed_type.value}{occupant.bed_index}" for occupant in variant.occupants)  # type: ignore[attr-defined]


def test_permutations_can_leave_an_earlier_extra_slot_vacant() -> None:
    room = _room(basic_beds=1, basic_bed_capacity=1, extra_beds=2, min_occupancy=1, max_occupancy=2)

    permuted = enumerate_occupancy_variants(room, [ADL], include_permutations=True)
    layouts = [_layout(variant) for variant in permuted.variants]
    assert layouts == [("basic0",), ("basic0", "extra0"), ("basic0", "extra1")]

    canonical = enumerate_occupancy_variants(room, [ADL])
    assert [_layout(variant) for variant in canonical.variants] == [("basic0",), ("basic0", "extra0")]
