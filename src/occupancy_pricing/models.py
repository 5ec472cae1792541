# This module defines the pricing document types: bed occupants, pricing rules, room blocks, and price lists.
# All types are frozen dataclasses; edits go through helpers that return new instances.
# `to_dict` / `from_dict` produce the plain structural JSON used for persistence and imports (camelCase keys).
# Boundary parsing maps legacy bed labels and rejects unknown enum values explicitly.

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from src.occupancy_pricing.person_categories import PersonCategory


class BedType(StrEnum):
    BASIC = "basic"
    EXTRA = "extra"


class ValidationStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class FileType(StrEnum):
    EXCEL = "excel"
    PDF = "pdf"
    JSON = "json"
    XML = "xml"
    HTML = "html"


DISCOUNT_TYPES = frozenset({"early_booking", "child_discount", "last_minute", "custom"})
SURCHARGE_TYPES = frozenset({"single_use", "extra_bed", "sea_view", "custom"})

_BED_TYPE_ALIASES = {
    "basic": BedType.BASIC,
    "osnovni": BedType.BASIC,
    "extra": BedType.EXTRA,
    "pomocni": BedType.EXTRA,
}


def parse_bed_type(value: Any) -> BedType:
    normalized = str(value).strip().lower()
    if normalized not in _BED_TYPE_ALIASES:
        raise ValueError(f"Unknown bed type {value!r}; expected one of {sorted(_BED_TYPE_ALIASES)}")
    return _BED_TYPE_ALIASES[normalized]


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if "T" in text:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    return date.fromisoformat(text)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class BedOccupant:
    bed_type: BedType
    bed_index: int
    person_category: str

    def slot_label(self) -> str:
        return f"{self.bed_type.value}{self.bed_index}"

    def to_dict(self) -> dict[str, Any]:
        return {"bedType": self.bed_type.value, "bedIndex": self.bed_index, "personCategory": self.person_category}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> BedOccupant:
        return cls(
            bed_type=parse_bed_type(payload["bedType"]),
            bed_index=int(payload["bedIndex"]),
            person_category=str(payload["personCategory"]).strip().upper(),
        )


@dataclass(frozen=True)
class PriceModifier:
    """A discount or surcharge; percentages are applied before fixed amounts."""

    type: str
    label: str
    amount: float | None = None
    percentage: float | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type, "label": self.label}
        if self.amount is not None:
            payload["amount"] = self.amount
        if self.percentage is not None:
            payload["percentage"] = self.percentage
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> PriceModifier:
        modifier_type = str(payload.get("type", "custom"))
        return cls(
            type=modifier_type,
            label=str(payload.get("label", modifier_type)),
            amount=_optional_float(payload.get("amount")),
            percentage=_optional_float(payload.get("percentage")),
        )


@dataclass(frozen=True)
class PricingRule:
    id: str
    is_active: bool
    bed_assignment: tuple[BedOccupant, ...]
    base_price: float
    discounts: tuple[PriceModifier, ...] = ()
    surcharges: tuple[PriceModifier, ...] = ()
    final_price: float = 0.0
    notes: str | None = None

    def category_codes(self) -> list[str]:
        return [occupant.person_category for occupant in self.bed_assignment]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "isActive": self.is_active,
            "bedAssignment": [occupant.to_dict() for occupant in self.bed_assignment],
            "basePrice": self.base_price,
            "discounts": [item.to_dict() for item in self.discounts],
            "surcharges": [item.to_dict() for item in self.surcharges],
            "finalPrice": self.final_price,
        }
        if self.notes is not None:
            payload["notes"] = self.notes
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> PricingRule:
        return cls(
            id=str(payload.get("id", "")),
            is_active=bool(payload.get("isActive", True)),
            bed_assignment=tuple(BedOccupant.from_dict(item) for item in payload.get("bedAssignment") or []),
            base_price=float(payload.get("basePrice", 0.0)),
            discounts=tuple(PriceModifier.from_dict(item) for item in payload.get("discounts") or []),
            surcharges=tuple(PriceModifier.from_dict(item) for item in payload.get("surcharges") or []),
            final_price=float(payload.get("finalPrice", 0.0)),
            notes=payload.get("notes"),
        )


@dataclass(frozen=True)
class RoomTypeDescriptor:
    """Room-type inventory and capacity bounds supplied by the property editor."""

    room_type_id: str
    min_occupancy: int
    max_occupancy: int
    max_adults: int
    max_children: int
    basic_beds: int
    extra_beds: int = 0
    basic_bed_capacity: int = 1
    extra_bed_capacity: int = 1
    room_type_name: str = ""
    allowed_occupancy_variants: tuple[str, ...] = ()

    @property
    def basic_slots(self) -> int:
        return self.basic_beds * self.basic_bed_capacity

    @property
    def extra_slots(self) -> int:
        return self.extra_beds * self.extra_bed_capacity

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> RoomTypeDescriptor:
        return cls(
            room_type_id=str(payload["roomTypeId"]),
            min_occupancy=int(payload["minOccupancy"]),
            max_occupancy=int(payload["maxOccupancy"]),
            max_adults=int(payload["maxAdults"]),
            max_children=int(payload.get("maxChildren", 0)),
            basic_beds=int(payload.get("basicBeds", 0)),
            extra_beds=int(payload.get("extraBeds", 0)),
            basic_bed_capacity=int(payload.get("basicBedCapacity", 1)),
            extra_bed_capacity=int(payload.get("extraBedCapacity", 1)),
            room_type_name=str(payload.get("roomTypeName", "")),
            allowed_occupancy_variants=tuple(str(item) for item in payload.get("allowedOccupancyVariants") or []),
        )


@dataclass(frozen=True)
class RoomTypePricing:
    room_type_id: str
    room_type_name: str
    base_occupancy_variants: tuple[str, ...] = ()
    pricing_rules: tuple[PricingRule, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "roomTypeId": self.room_type_id,
            "roomTypeName": self.room_type_name,
            "baseOccupancyVariants": list(self.base_occupancy_variants),
            "pricingRules": [rule.to_dict() for rule in self.pricing_rules],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> RoomTypePricing:
        return cls(
            room_type_id=str(payload.get("roomTypeId", "")),
            room_type_name=str(payload.get("roomTypeName", "")),
            base_occupancy_variants=tuple(str(item) for item in payload.get("baseOccupancyVariants") or []),
            pricing_rules=tuple(PricingRule.from_dict(item) for item in payload.get("pricingRules") or []),
        )


@dataclass(frozen=True)
class ImportSource:
    type: FileType
    file_name: str
    uploaded_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "fileName": self.file_name, "uploadedAt": self.uploaded_at.isoformat()}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ImportSource:
        return cls(
            type=FileType(str(payload["type"])),
            file_name=str(payload["fileName"]),
            uploaded_at=_parse_timestamp(payload["uploadedAt"]),
        )


@dataclass(frozen=True)
class PriceList:
    id: str
    name: str
    property_id: str
    valid_from: date
    valid_to: date
    person_categories: tuple[PersonCategory, ...]
    room_type_pricing: tuple[RoomTypePricing, ...] = ()
    validation_status: ValidationStatus = ValidationStatus.PENDING
    validation_notes: str | None = None
    import_source: ImportSource | None = None

    def room_type_block(self, room_type_id: str) -> RoomTypePricing | None:
        for block in self.room_type_pricing:
            if block.room_type_id == room_type_id:
                return block
        return None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "propertyId": self.property_id,
            "validFrom": self.valid_from.isoformat(),
            "validTo": self.valid_to.isoformat(),
            "personCategories": [category.to_dict() for category in self.person_categories],
            "roomTypePricing": [block.to_dict() for block in self.room_type_pricing],
            "validationStatus": self.validation_status.value,
        }
        if self.validation_notes is not None:
            payload["validationNotes"] = self.validation_notes
        if self.import_source is not None:
            payload["importSource"] = self.import_source.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> PriceList:
        import_source = payload.get("importSource")
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            property_id=str(payload.get("propertyId", "")),
            valid_from=_parse_date(payload["validFrom"]),
            valid_to=_parse_date(payload["validTo"]),
            person_categories=tuple(PersonCategory.from_dict(item) for item in payload.get("personCategories") or []),
            room_type_pricing=tuple(RoomTypePricing.from_dict(item) for item in payload.get("roomTypePricing") or []),
            validation_status=ValidationStatus(str(payload.get("validationStatus", ValidationStatus.PENDING))),
            validation_notes=payload.get("validationNotes"),
            import_source=ImportSource.from_dict(import_source) if import_source else None,
        )


@dataclass(frozen=True)
class ImportPreview:
    """Transient staging copy of imported pricing data awaiting approval."""

    person_categories: tuple[PersonCategory, ...] = ()
    room_type_pricing: tuple[RoomTypePricing, ...] = ()
    warnings: tuple[str, ...] = field(default_factory=tuple)
    errors: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "personCategories": [category.to_dict() for category in self.person_categories],
            "roomTypePricing": [block.to_dict() for block in self.room_type_pricing],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ImportPreview:
        return cls(
            person_categories=tuple(PersonCategory.from_dict(item) for item in payload.get("personCategories") or []),
            room_type_pricing=tuple(RoomTypePricing.from_dict(item) for item in payload.get("roomTypePricing") or []),
            warnings=tuple(str(item) for item in payload.get("warnings") or []),
            errors=tuple(str(item) for item in payload.get("errors") or []),
        )
