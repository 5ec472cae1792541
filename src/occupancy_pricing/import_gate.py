# This module implements the approval gate for imported price list files.
# A session moves NoImport -> Parsing -> Preview(pending) -> Approved | Rejected; no other transition is legal.
# Approval re-runs validation itself and merges atomically, replacing categories and room pricing in one step.
# Rejection needs an audit reason and never touches live pricing content.

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import StrEnum

from src.occupancy_pricing.errors import (
    ImportValidationError,
    InvalidTransitionError,
    ParseFailure,
    UnsupportedFileTypeError,
)
from src.occupancy_pricing.format_parsers import PriceListParser, build_parser_registry, detect_file_type
from src.occupancy_pricing.import_checks import normalize_import_preview, validate_import_preview
from src.occupancy_pricing.models import (
    FileType,
    ImportPreview,
    ImportSource,
    PriceList,
    ValidationStatus,
)
from src.occupancy_pricing.pricing_config import PricingEngineConfig, default_engine_config

LOGGER = logging.getLogger("occupancy_pricing.import_gate")

Persist = Callable[[PriceList], None]


class ImportState(StrEnum):
    NO_IMPORT = "no_import"
    PARSING = "parsing"
    PREVIEW = "preview"
    APPROVED = "approved"
    REJECTED = "rejected"


_TRANSITIONS: dict[tuple[ImportState, str], ImportState] = {
    (ImportState.NO_IMPORT, "select_file"): ImportState.PARSING,
    (ImportState.PARSING, "parsed"): ImportState.PREVIEW,
    (ImportState.PARSING, "failed"): ImportState.NO_IMPORT,
    (ImportState.PREVIEW, "approve"): ImportState.APPROVED,
    (ImportState.PREVIEW, "reject"): ImportState.REJECTED,
}


@dataclass(frozen=True)
class ImportTransition:
    from_state: ImportState
    to_state: ImportState
    trigger: str
    at: datetime


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ImportSession:
    """One import attempt against one price list."""

    def __init__(
        self,
        price_list: PriceList,
        *,
        parsers: Mapping[FileType, PriceListParser] | None = None,
        known_room_type_ids: Iterable[str] | None = None,
        config: PricingEngineConfig | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.price_list = price_list
        self.parsers = dict(parsers) if parsers is not None else build_parser_registry()
        self.known_room_type_ids = None if known_room_type_ids is None else tuple(known_room_type_ids)
        self.config = config or default_engine_config()
        self.clock = clock
        self.state = ImportState.NO_IMPORT
        self.preview: ImportPreview | None = None
        self.file_type: FileType | None = None
        self.file_name: str | None = None
        self.history: list[ImportTransition] = []

    def _target(self, trigger: str) -> ImportState:
        target = _TRANSITIONS.get((self.state, trigger))
        if target is None:
            raise InvalidTransitionError(
                f"Import cannot '{trigger}' while in state {self.state.value}",
                details={"state": self.state.value, "trigger": trigger, "price_list_id": self.price_list.id},
            )
        return target

    def _transition(self, trigger: str) -> None:
        target = self._target(trigger)
        self.history.append(ImportTransition(from_state=self.state, to_state=target, trigger=trigger, at=self.clock()))
        LOGGER.info(
            "import transition price_list_id=%s %s -> %s (%s)",
            self.price_list.id,
            self.state.value,
            target.value,
            trigger,
        )
        self.state = target

    def _fail(self) -> None:
        self._transition("failed")
        self.preview = None
        self.file_type = None
        self.file_name = None

    def select_file(self, file_name: str, mime_type: str | None = None) -> FileType:
        self._transition("select_file")
        try:
            file_type = detect_file_type(file_name, mime_type)
            if file_type not in self.parsers:
                raise UnsupportedFileTypeError(f"no parser registered for {file_type.value}", file_name=file_name)
        except UnsupportedFileTypeError:
            LOGGER.warning("import rejected unsupported file file_name=%s mime=%s", file_name, mime_type)
            self._fail()
            raise
        self.file_type = file_type
        self.file_name = file_name
        return file_type

    def load_preview(self, content: bytes) -> ImportPreview:
        if self.state != ImportState.PARSING or self.file_type is None or self.file_name is None:
            raise InvalidTransitionError(
                f"Import has no file being parsed (state {self.state.value})",
                details={"state": self.state.value, "price_list_id": self.price_list.id},
            )

        file_name = self.file_name
        parser = self.parsers[self.file_type]
        try:
            raw = parser.parse(content, self.file_type, file_name=file_name)
            if not isinstance(raw, ImportPreview):
                raise ParseFailure(
                    f"parser returned {type(raw).__name__} instead of an import preview",
                    file_name=file_name,
                )
        except ParseFailure as exc:
            LOGGER.warning("import parse failed price_list_id=%s error=%s", self.price_list.id, exc)
            self._fail()
            raise
        except Exception as exc:
            LOGGER.warning("import parser raised price_list_id=%s file_name=%s error=%s", self.price_list.id, file_name, exc)
            self._fail()
            raise ParseFailure(str(exc), file_name=file_name) from exc

        self.preview = normalize_import_preview(
            raw,
            known_room_type_ids=self.known_room_type_ids,
            decimals=self.config.price_decimals,
        )
        self._transition("parsed")
        LOGGER.info(
            "import preview ready price_list_id=%s file_name=%s errors=%s warnings=%s",
            self.price_list.id,
            file_name,
            len(self.preview.errors),
            len(self.preview.warnings),
        )
        return self.preview

    def import_file(self, content: bytes, *, file_name: str, mime_type: str | None = None) -> ImportPreview:
        self.select_file(file_name, mime_type)
        return self.load_preview(content)

    def approve(self, *, persist: Persist | None = None) -> PriceList:
        """Merge the preview into the price list; refuses while any validation error remains.

        ``persist`` receives the merged list before the session leaves Preview. If it raises,
        the session keeps its preview and the approval can be attempted again.
        """

        self._target("approve")
        if self.preview is None:
            raise InvalidTransitionError(
                "Import has no preview to approve",
                details={"state": self.state.value, "price_list_id": self.price_list.id},
            )

        errors = validate_import_preview(
            self.preview,
            self.known_room_type_ids,
            decimals=self.config.price_decimals,
        )
        if errors:
            LOGGER.warning(
                "import approval blocked price_list_id=%s errors=%s",
                self.price_list.id,
                len(errors),
            )
            raise ImportValidationError(
                f"Import has {len(errors)} validation error(s) and cannot be approved",
                errors=errors,
                details={"price_list_id": self.price_list.id},
            )

        merged = replace(
            self.price_list,
            person_categories=self.preview.person_categories,
            room_type_pricing=self.preview.room_type_pricing,
            validation_status=ValidationStatus.APPROVED,
            validation_notes=None,
            import_source=ImportSource(type=self.file_type, file_name=str(self.file_name), uploaded_at=self.clock()),
        )
        if persist is not None:
            persist(merged)
        self._transition("approve")
        self.price_list = merged
        self.preview = None
        LOGGER.info("import approved price_list_id=%s file_name=%s", merged.id, self.file_name)
        return merged

    def reject(self, reason: str, *, persist: Persist | None = None) -> PriceList:
        if not reason or not reason.strip():
            raise ValueError("A rejection reason is required")
        self._target("reject")
        rejected = replace(
            self.price_list,
            validation_status=ValidationStatus.REJECTED,
            validation_notes=reason.strip(),
        )
        if persist is not None:
            persist(rejected)
        self._transition("reject")
        self.price_list = rejected
        self.preview = None
        LOGGER.info("import rejected price_list_id=%s reason=%s", rejected.id, reason.strip())
        return rejected
