# This file defines request and response schemas for pricing rule and price list endpoints.
# It exists so request bodies are validated at the edge before any engine call.
# Bodies use the camelCase names of the stored price list document and convert to engine types via from_dict.
# Responses reuse the standard envelope with the engine's structural JSON as data.

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import Field

from src.api.schemas.common import CamelModel, EnvelopeFields
from src.occupancy_pricing.models import (
    ImportPreview,
    PriceModifier,
    PricingRule,
    RoomTypeDescriptor,
    RoomTypePricing,
)
from src.occupancy_pricing.person_categories import PersonCategory


class PersonCategoryIn(CamelModel):
    code: str
    label: str
    age_from: int
    age_to: int

    def to_domain(self) -> PersonCategory:
        return PersonCategory.from_dict(self.model_dump(by_alias=True))


class BedOccupantIn(CamelModel):
    bed_type: str
    bed_index: int = Field(ge=0)
    person_category: str


class PriceModifierIn(CamelModel):
    type: str = "custom"
    label: str | None = None
    amount: float | None = None
    percentage: float | None = None

    def to_domain(self) -> PriceModifier:
        return PriceModifier.from_dict(self.model_dump(by_alias=True, exclude_none=True))


class PricingRuleIn(CamelModel):
    id: str = ""
    is_active: bool = True
    bed_assignment: list[BedOccupantIn]
    base_price: float
    discounts: list[PriceModifierIn] = Field(default_factory=list)
    surcharges: list[PriceModifierIn] = Field(default_factory=list)
    final_price: float = 0.0
    notes: str | None = None

    def to_domain(self) -> PricingRule:
        return PricingRule.from_dict(self.model_dump(by_alias=True, exclude_none=True))


class RoomTypeIn(CamelModel):
    room_type_id: str = Field(min_length=1)
    room_type_name: str = ""
    min_occupancy: int
    max_occupancy: int
    max_adults: int
    max_children: int = 0
    basic_beds: int
    extra_beds: int = 0
    basic_bed_capacity: int = 1
    extra_bed_capacity: int = 1
    allowed_occupancy_variants: list[str] = Field(default_factory=list)

    def to_domain(self) -> RoomTypeDescriptor:
        return RoomTypeDescriptor.from_dict(self.model_dump(by_alias=True))


class RoomTypePricingIn(CamelModel):
    room_type_id: str
    room_type_name: str = ""
    base_occupancy_variants: list[str] = Field(default_factory=list)
    pricing_rules: list[PricingRuleIn] = Field(default_factory=list)

    def to_domain(self) -> RoomTypePricing:
        return RoomTypePricing.from_dict(self.model_dump(by_alias=True, exclude_none=True))


class ImportPreviewIn(CamelModel):
    person_categories: list[PersonCategoryIn] = Field(default_factory=list)
    room_type_pricing: list[RoomTypePricingIn] = Field(default_factory=list)

    def to_domain(self) -> ImportPreview:
        return ImportPreview(
            person_categories=tuple(item.to_domain() for item in self.person_categories),
            room_type_pricing=tuple(item.to_domain() for item in self.room_type_pricing),
        )


class GenerateRulesRequest(CamelModel):
    room_type: RoomTypeIn
    person_categories: list[PersonCategoryIn] | None = None
    include_permutations: bool | None = None
    previous_rules: list[PricingRuleIn] = Field(default_factory=list)


class CalculatePriceRequest(CamelModel):
    rule: PricingRuleIn


class ValidateImportRequest(CamelModel):
    preview: ImportPreviewIn
    known_room_type_ids: list[str] | None = None


class CreatePriceListRequest(CamelModel):
    property_id: str = Field(min_length=1)
    name: str | None = None
    valid_from: date | None = None
    valid_to: date | None = None
    person_categories: list[PersonCategoryIn] | None = None


class RegenerateRoomTypeRequest(CamelModel):
    room_type: RoomTypeIn
    include_permutations: bool | None = None


class UpdateRuleRequest(CamelModel):
    is_active: bool | None = None
    base_price: float | None = None
    discounts: list[PriceModifierIn] | None = None
    surcharges: list[PriceModifierIn] | None = None
    notes: str | None = None

    def to_changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for key in self.model_fields_set:
            value = getattr(self, key)
            if value is None and key in {"is_active", "base_price"}:
                continue
            if key in {"discounts", "surcharges"}:
                value = tuple(item.to_domain() for item in value or [])
            changes[key] = value
        return changes


class ImportUploadRequest(CamelModel):
    file_name: str = Field(min_length=1)
    mime_type: str | None = None
    content_base64: str
    known_room_type_ids: list[str] | None = None


class RejectImportRequest(CamelModel):
    reason: str = Field(min_length=1)


class PricingEnvelopeV1(EnvelopeFields):
    data: Any
