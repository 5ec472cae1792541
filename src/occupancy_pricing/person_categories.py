# This module holds the closed registry of guest age bands used across pricing.
# Codes are a fixed enumeration; labels and age ranges are configurable per price list.
# Helpers here classify codes as adult, child, or infant for the occupancy filters.

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class PersonCategoryCode(StrEnum):
    ADL = "ADL"
    CHD1 = "CHD1"
    CHD2 = "CHD2"
    CHD3 = "CHD3"
    INF = "INF"


KNOWN_CATEGORY_CODES: frozenset[str] = frozenset(code.value for code in PersonCategoryCode)
_CODE_ORDER = {code.value: index for index, code in enumerate(PersonCategoryCode)}


@dataclass(frozen=True)
class PersonCategory:
    code: str
    label: str
    age_from: int
    age_to: int

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "label": self.label, "ageFrom": self.age_from, "ageTo": self.age_to}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> PersonCategory:
        return cls(
            code=str(payload["code"]).strip().upper(),
            label=str(payload.get("label", payload["code"])),
            age_from=int(payload["ageFrom"]),
            age_to=int(payload["ageTo"]),
        )


DEFAULT_PERSON_CATEGORIES: tuple[PersonCategory, ...] = (
    PersonCategory(code=PersonCategoryCode.ADL, label="Adults", age_from=18, age_to=99),
    PersonCategory(code=PersonCategoryCode.CHD1, label="Children 2-7", age_from=2, age_to=7),
    PersonCategory(code=PersonCategoryCode.CHD2, label="Children 7-12", age_from=7, age_to=12),
    PersonCategory(code=PersonCategoryCode.CHD3, label="Children 12-18", age_from=12, age_to=18),
    PersonCategory(code=PersonCategoryCode.INF, label="Infants 0-2", age_from=0, age_to=2),
)


def code_sort_index(code: str) -> int:
    """Position of a code in the canonical ADL, CHD1..CHD3, INF order; unknown codes sort last."""

    return _CODE_ORDER.get(code, len(_CODE_ORDER))


def is_adult(code: str) -> bool:
    return code == PersonCategoryCode.ADL


def is_infant(code: str) -> bool:
    return code == PersonCategoryCode.INF


def counts_toward_occupancy(code: str, *, infants_count_toward_occupancy: bool) -> bool:
    if is_infant(code):
        return infants_count_toward_occupancy
    return True


def is_counted_child(code: str, *, infants_count_toward_occupancy: bool) -> bool:
    if is_adult(code):
        return False
    return counts_toward_occupancy(code, infants_count_toward_occupancy=infants_count_toward_occupancy)


def validate_person_categories(categories: Iterable[PersonCategory]) -> list[str]:
    errors: list[str] = []
    seen: set[str] = set()
    for category in categories:
        if category.code not in KNOWN_CATEGORY_CODES:
            errors.append(
                f"Person category code {category.code!r} is not one of {sorted(KNOWN_CATEGORY_CODES)}"
            )
        if category.code in seen:
            errors.append(f"Person category code {category.code!r} is defined more than once")
        seen.add(category.code)
        if category.age_from >= category.age_to:
            errors.append(
                f"Person category {category.code!r} has ageFrom={category.age_from} "
                f"which is not below ageTo={category.age_to}"
            )
    return errors
