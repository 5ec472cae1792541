# This module maps uploaded price list files to format adapters that each produce an ImportPreview.
# JSON is the canonical document; Excel, HTML and XML share one tabular layout read through pandas.
# PDF extraction is delegated to an injected service because layout recovery is out of process.
# Adapters only translate; business validation happens afterwards in import_checks for every format.

from __future__ import annotations

import io
import json
import logging
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from pathlib import PurePath
from typing import Any, Protocol, runtime_checkable

import pandas as pd

from src.occupancy_pricing.errors import ParseFailure, UnsupportedFileTypeError
from src.occupancy_pricing.models import (
    BedOccupant,
    FileType,
    ImportPreview,
    PriceModifier,
    PricingRule,
    RoomTypePricing,
    parse_bed_type,
)
from src.occupancy_pricing.person_categories import DEFAULT_PERSON_CATEGORIES, PersonCategory
from src.occupancy_pricing.price_calculator import with_recomputed_price
from src.occupancy_pricing.rule_generator import pricing_rule_id

LOGGER = logging.getLogger("occupancy_pricing.parsers")

_EXTENSION_TYPES = {
    ".xlsx": FileType.EXCEL,
    ".xls": FileType.EXCEL,
    ".pdf": FileType.PDF,
    ".json": FileType.JSON,
    ".xml": FileType.XML,
    ".html": FileType.HTML,
    ".htm": FileType.HTML,
}
_MIME_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": FileType.EXCEL,
    "application/vnd.ms-excel": FileType.EXCEL,
    "application/pdf": FileType.PDF,
    "application/json": FileType.JSON,
    "application/xml": FileType.XML,
    "text/xml": FileType.XML,
    "text/html": FileType.HTML,
}
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

RULE_COLUMNS = frozenset({"room_type_id", "bed_assignment", "base_price"})
CATEGORY_COLUMNS = frozenset({"code", "age_from", "age_to"})


def detect_file_type(file_name: str, mime_type: str | None = None) -> FileType:
    """Resolve the import format from the extension, falling back to the MIME type."""

    suffix = PurePath(file_name).suffix.lower()
    if suffix in _EXTENSION_TYPES:
        return _EXTENSION_TYPES[suffix]
    if mime_type:
        normalized = mime_type.split(";", 1)[0].strip().lower()
        if normalized in _MIME_TYPES:
            return _MIME_TYPES[normalized]
    raise UnsupportedFileTypeError(
        f"unsupported file type (extension={suffix or '<none>'}, mime={mime_type or '<none>'}); "
        f"expected one of {sorted(_EXTENSION_TYPES)}",
        file_name=file_name,
    )


@runtime_checkable
class PriceListParser(Protocol):
    def parse(self, content: bytes, file_type: FileType, *, file_name: str) -> ImportPreview:
        ...


class JsonPriceListParser:
    """Reads the canonical structural JSON (a price list document or a bare preview)."""

    def parse(self, content: bytes, file_type: FileType, *, file_name: str) -> ImportPreview:
        try:
            payload = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ParseFailure(f"invalid JSON: {exc}", file_name=file_name) from exc
        if not isinstance(payload, dict):
            raise ParseFailure("JSON document must be an object", file_name=file_name)
        return preview_from_mapping(payload, file_name=file_name)


def preview_from_mapping(payload: Mapping[str, Any], *, file_name: str) -> ImportPreview:
    try:
        return ImportPreview(
            person_categories=tuple(
                PersonCategory.from_dict(item) for item in payload.get("personCategories") or []
            ),
            room_type_pricing=tuple(
                RoomTypePricing.from_dict(item) for item in payload.get("roomTypePricing") or []
            ),
            warnings=tuple(str(item) for item in payload.get("warnings") or []),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ParseFailure(f"malformed price list document: {exc}", file_name=file_name) from exc


def _normalize_column(name: Any) -> str:
    text = _CAMEL_BOUNDARY_RE.sub("_", str(name).strip())
    return re.sub(r"[\s\-]+", "_", text).lower()


def _normalize_frame(frame: pd.DataFrame) -> pd.DataFrame:
    normalized = frame.copy()
    normalized.columns = [_normalize_column(column) for column in normalized.columns]
    return normalized


def _cell(row: Mapping[str, Any], column: str) -> Any:
    value = row.get(column)
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


def _cell_float(row: Mapping[str, Any], column: str) -> float | None:
    value = _cell(row, column)
    if value is None:
        return None
    return float(value)


def _cell_bool(row: Mapping[str, Any], column: str, default: bool) -> bool:
    value = _cell(row, column)
    if value is None:
        return default
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "da", "active"}:
            return True
        if normalized in {"0", "false", "no", "n", "ne", "inactive"}:
            return False
        raise ValueError(f"is_active value {value!r} is not a boolean")
    return bool(value)


def parse_bed_assignment(text: str) -> tuple[BedOccupant, ...]:
    """Parse `basic:0:ADL;basic:1:ADL;extra:0:CHD1` into bed occupants."""

    occupants: list[BedOccupant] = []
    for chunk in str(text).split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = [part.strip() for part in chunk.split(":")]
        if len(parts) != 3:
            raise ValueError(f"bed slot {chunk!r} must look like bedType:bedIndex:category")
        occupants.append(
            BedOccupant(
                bed_type=parse_bed_type(parts[0]),
                bed_index=int(parts[1]),
                person_category=parts[2].upper(),
            )
        )
    if not occupants:
        raise ValueError("bed assignment is empty")
    return tuple(occupants)


def _row_modifiers(row: Mapping[str, Any], prefix: str, default_type: str) -> tuple[PriceModifier, ...]:
    percentage = _cell_float(row, f"{prefix}_pct")
    amount = _cell_float(row, f"{prefix}_amount")
    if percentage is None and amount is None:
        return ()
    modifier_type = str(_cell(row, f"{prefix}_type") or default_type)
    label = str(_cell(row, f"{prefix}_label") or modifier_type)
    return (PriceModifier(type=modifier_type, label=label, amount=amount, percentage=percentage),)


def _rule_from_row(row: Mapping[str, Any]) -> tuple[str, str, PricingRule]:
    room_type_id = str(_cell(row, "room_type_id") or "").strip()
    if not room_type_id:
        raise ValueError("room_type_id is empty")
    bed_assignment = parse_bed_assignment(str(_cell(row, "bed_assignment") or ""))
    base_price = _cell_float(row, "base_price")
    if base_price is None:
        raise ValueError("base_price is empty")
    final_price = _cell_float(row, "final_price")

    rule = PricingRule(
        id=str(_cell(row, "rule_id") or pricing_rule_id(room_type_id=room_type_id, bed_assignment=bed_assignment)),
        is_active=_cell_bool(row, "is_active", True),
        bed_assignment=bed_assignment,
        base_price=base_price,
        discounts=_row_modifiers(row, "discount", "custom"),
        surcharges=_row_modifiers(row, "surcharge", "custom"),
        notes=None if _cell(row, "notes") is None else str(_cell(row, "notes")),
    )
    if final_price is None:
        rule = with_recomputed_price(rule)
    else:
        rule = replace(rule, final_price=final_price)
    return room_type_id, str(_cell(row, "room_type_name") or ""), rule


def preview_from_frames(frames: Sequence[pd.DataFrame], *, file_name: str) -> ImportPreview:
    """Assemble a preview from tabular frames: one rules table and an optional categories table."""

    rule_frames: list[pd.DataFrame] = []
    category_frames: list[pd.DataFrame] = []
    for frame in frames:
        normalized = _normalize_frame(frame)
        columns = set(normalized.columns)
        if RULE_COLUMNS.issubset(columns):
            rule_frames.append(normalized)
        elif CATEGORY_COLUMNS.issubset(columns):
            category_frames.append(normalized)

    if not rule_frames:
        raise ParseFailure(
            f"no pricing table found; expected columns {sorted(RULE_COLUMNS)}",
            file_name=file_name,
        )

    warnings: list[str] = []
    errors: list[str] = []

    categories: list[PersonCategory] = []
    for frame in category_frames:
        for position, row in enumerate(frame.to_dict(orient="records"), start=1):
            try:
                categories.append(
                    PersonCategory.from_dict(
                        {
                            "code": _cell(row, "code"),
                            "label": _cell(row, "label") or _cell(row, "code"),
                            "ageFrom": _cell(row, "age_from"),
                            "ageTo": _cell(row, "age_to"),
                        }
                    )
                )
            except (TypeError, ValueError) as exc:
                errors.append(f"categories row {position}: {exc}")
    if not category_frames:
        warnings.append("no person category table found; default person categories assumed")
        categories = list(DEFAULT_PERSON_CATEGORIES)

    blocks: dict[str, dict[str, Any]] = {}
    for frame in rule_frames:
        for position, row in enumerate(frame.to_dict(orient="records"), start=1):
            try:
                room_type_id, room_type_name, rule = _rule_from_row(row)
            except (TypeError, ValueError) as exc:
                errors.append(f"pricing row {position}: {exc}")
                continue
            block = blocks.setdefault(room_type_id, {"name": room_type_name, "rules": []})
            if room_type_name and not block["name"]:
                block["name"] = room_type_name
            block["rules"].append(rule)

    LOGGER.info(
        "tabular import file_name=%s room_types=%s categories=%s row_errors=%s",
        file_name,
        len(blocks),
        len(categories),
        len(errors),
    )
    return ImportPreview(
        person_categories=tuple(categories),
        room_type_pricing=tuple(
            RoomTypePricing(room_type_id=room_type_id, room_type_name=block["name"], pricing_rules=tuple(block["rules"]))
            for room_type_id, block in blocks.items()
        ),
        warnings=tuple(warnings),
        errors=tuple(errors),
    )


class TabularPriceListParser:
    """Excel workbooks, HTML tables and XML records sharing the tabular rule layout."""

    def __init__(self, *, rule_xpath: str = "//rule", category_xpath: str = "//category") -> None:
        self.rule_xpath = rule_xpath
        self.category_xpath = category_xpath

    def _read_frames(self, content: bytes, file_type: FileType) -> list[pd.DataFrame]:
        if file_type == FileType.EXCEL:
            sheets = pd.read_excel(io.BytesIO(content), sheet_name=None)
            return list(sheets.values())
        if file_type == FileType.HTML:
            return pd.read_html(io.StringIO(content.decode("utf-8")))
        if file_type == FileType.XML:
            frames: list[pd.DataFrame] = []
            for xpath in (self.rule_xpath, self.category_xpath):
                try:
                    frames.append(pd.read_xml(io.BytesIO(content), xpath=xpath))
                except ValueError:
                    # read_xml raises when the xpath matches nothing.
                    continue
            return frames
        raise ValueError(f"tabular parser does not handle {file_type.value}")

    def parse(self, content: bytes, file_type: FileType, *, file_name: str) -> ImportPreview:
        try:
            frames = self._read_frames(content, file_type)
        except Exception as exc:
            raise ParseFailure(f"could not read {file_type.value} tables: {exc}", file_name=file_name) from exc
        return preview_from_frames(frames, file_name=file_name)


PdfExtractor = Callable[[bytes, str], Mapping[str, Any]]


class PdfPriceListParser:
    """Delegates PDF layout recovery to an extraction service returning the structural document."""

    def __init__(self, extractor: PdfExtractor | None = None) -> None:
        self.extractor = extractor

    def parse(self, content: bytes, file_type: FileType, *, file_name: str) -> ImportPreview:
        if self.extractor is None:
            raise ParseFailure("no PDF extraction service is configured", file_name=file_name)
        try:
            payload = self.extractor(content, file_name)
        except ParseFailure:
            raise
        except Exception as exc:
            raise ParseFailure(f"PDF extraction failed: {exc}", file_name=file_name) from exc
        if not isinstance(payload, Mapping):
            raise ParseFailure("PDF extraction did not return a document mapping", file_name=file_name)
        return preview_from_mapping(payload, file_name=file_name)


def build_parser_registry(pdf_extractor: PdfExtractor | None = None) -> dict[FileType, PriceListParser]:
    tabular = TabularPriceListParser()
    return {
        FileType.JSON: JsonPriceListParser(),
        FileType.EXCEL: tabular,
        FileType.HTML: tabular,
        FileType.XML: tabular,
        FileType.PDF: PdfPriceListParser(pdf_extractor),
    }
