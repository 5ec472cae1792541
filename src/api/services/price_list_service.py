# This file implements the service behind pricing rule and price list endpoints.
# It exists so routers stay transport-focused while engine calls and persistence live in one layer.
# Pending import sessions are transient, held in process memory keyed by import id, and expire after a TTL.
# Every change to a stored price list is written back through the price list store.

from __future__ import annotations

import base64
import binascii
import logging
import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any

from src.api.api_config import ApiConfig
from src.api.error_handlers import APIError
from src.occupancy_pricing.errors import InvalidTransitionError
from src.occupancy_pricing.import_checks import ImportCheckSummary, run_import_checks
from src.occupancy_pricing.import_gate import ImportSession
from src.occupancy_pricing.models import ImportPreview, PriceList, PricingRule, RoomTypeDescriptor
from src.occupancy_pricing.person_categories import PersonCategory
from src.occupancy_pricing.price_calculator import calculate_final_price
from src.occupancy_pricing.price_list import (
    apply_generated_rules,
    create_price_list,
    update_rule_in_price_list,
    validate_price_list,
)
from src.occupancy_pricing.price_list_store import PriceListStore
from src.occupancy_pricing.pricing_config import PricingEngineConfig
from src.occupancy_pricing.rule_generator import generate_pricing_rules

LOGGER = logging.getLogger("occupancy_pricing.api")


@dataclass(frozen=True)
class PendingImport:
    price_list_id: str
    session: ImportSession
    created_at: datetime


def _utc_now() -> datetime:
    return datetime.now(UTC)


class PriceListService:
    """Engine operations and price list persistence for API routes."""

    def __init__(
        self,
        *,
        config: ApiConfig,
        engine_config: PricingEngineConfig,
        store: PriceListStore,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.config = config
        self.engine_config = engine_config
        self.store = store
        self.clock = clock
        self._sessions: dict[str, PendingImport] = {}
        self._lock = threading.Lock()

    def generate_rules(
        self,
        *,
        room_type: RoomTypeDescriptor,
        person_categories: Sequence[PersonCategory] | None,
        include_permutations: bool | None,
        previous_rules: Sequence[PricingRule] = (),
    ) -> list[PricingRule]:
        categories = person_categories if person_categories is not None else self.engine_config.default_person_categories
        include = self.engine_config.include_permutations_default if include_permutations is None else include_permutations
        return generate_pricing_rules(
            room_type,
            categories,
            include,
            previous_rules=previous_rules,
            config=self.engine_config,
        )

    def calculate_price(self, rule: PricingRule) -> float:
        return calculate_final_price(rule, decimals=self.engine_config.price_decimals)

    def validate_preview(
        self,
        preview: ImportPreview,
        *,
        known_room_type_ids: Sequence[str] | None,
    ) -> ImportCheckSummary:
        return run_import_checks(
            preview,
            known_room_type_ids=known_room_type_ids,
            decimals=self.engine_config.price_decimals,
        )

    def create_price_list(
        self,
        *,
        property_id: str,
        name: str | None,
        valid_from: date | None,
        valid_to: date | None,
        person_categories: Sequence[PersonCategory] | None,
    ) -> PriceList:
        try:
            price_list = create_price_list(
                property_id=property_id,
                name=name,
                valid_from=valid_from,
                valid_to=valid_to,
                person_categories=person_categories,
                config=self.engine_config,
            )
        except ValueError as exc:
            raise APIError(status_code=422, error_code="INVALID_PRICE_LIST", message=str(exc)) from exc
        self.store.save(price_list)
        return price_list

    def get_price_list(self, price_list_id: str) -> dict[str, Any]:
        price_list = self.store.load(price_list_id)
        return {
            "price_list": price_list,
            "problems": validate_price_list(price_list, decimals=self.engine_config.price_decimals),
        }

    def regenerate_room_type(
        self,
        *,
        price_list_id: str,
        room_type: RoomTypeDescriptor,
        include_permutations: bool | None,
    ) -> PriceList:
        price_list = self.store.load(price_list_id)
        updated = apply_generated_rules(
            price_list,
            room_type,
            include_permutations=include_permutations,
            config=self.engine_config,
        )
        self.store.save(updated)
        return updated

    def update_rule(
        self,
        *,
        price_list_id: str,
        room_type_id: str,
        rule_id: str,
        changes: dict[str, Any],
    ) -> PriceList:
        if not changes:
            raise APIError(status_code=400, error_code="EMPTY_RULE_UPDATE", message="No editable fields were supplied.")
        price_list = self.store.load(price_list_id)
        try:
            updated = update_rule_in_price_list(
                price_list,
                room_type_id=room_type_id,
                rule_id=rule_id,
                changes=changes,
                config=self.engine_config,
            )
        except ValueError as exc:
            raise APIError(status_code=400, error_code="INVALID_RULE_UPDATE", message=str(exc)) from exc
        self.store.save(updated)
        return updated

    def start_import(
        self,
        *,
        price_list_id: str,
        file_name: str,
        mime_type: str | None,
        content_base64: str,
        known_room_type_ids: Sequence[str] | None,
    ) -> tuple[str, ImportPreview]:
        try:
            content = base64.b64decode(content_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise APIError(status_code=400, error_code="INVALID_UPLOAD", message="contentBase64 is not valid base64.") from exc
        if len(content) > self.config.max_upload_bytes:
            raise APIError(
                status_code=413,
                error_code="UPLOAD_TOO_LARGE",
                message=f"Upload exceeds {self.config.max_upload_bytes} bytes.",
            )

        price_list = self.store.load(price_list_id)
        if known_room_type_ids is None:
            known_room_type_ids = [block.room_type_id for block in price_list.room_type_pricing]
        session = ImportSession(
            price_list,
            known_room_type_ids=known_room_type_ids,
            config=self.engine_config,
        )
        preview = session.import_file(content, file_name=file_name, mime_type=mime_type)

        import_id = f"import_{uuid.uuid4().hex}"
        now = self.clock()
        with self._lock:
            self._prune_sessions(now)
            while len(self._sessions) >= self.config.max_pending_imports:
                oldest = min(self._sessions, key=lambda key: self._sessions[key].created_at)
                LOGGER.warning("pending import evicted import_id=%s reason=capacity", oldest)
                del self._sessions[oldest]
            self._sessions[import_id] = PendingImport(price_list_id=price_list_id, session=session, created_at=now)
        LOGGER.info("import pending import_id=%s price_list_id=%s", import_id, price_list_id)
        return import_id, preview

    def pending_import_count(self) -> int:
        with self._lock:
            self._prune_sessions(self.clock())
            return len(self._sessions)

    def _prune_sessions(self, now: datetime) -> None:
        # Caller holds self._lock.
        cutoff = now - timedelta(seconds=self.config.import_session_ttl_seconds)
        expired = [key for key, entry in self._sessions.items() if entry.created_at <= cutoff]
        for key in expired:
            LOGGER.info("pending import expired import_id=%s", key)
            del self._sessions[key]

    def _take_session(self, *, price_list_id: str, import_id: str) -> ImportSession:
        with self._lock:
            self._prune_sessions(self.clock())
            entry = self._sessions.get(import_id)
        if entry is None or entry.price_list_id != price_list_id:
            raise APIError(
                status_code=404,
                error_code="IMPORT_NOT_FOUND",
                message=f"No pending import {import_id} for price list {price_list_id}.",
            )
        return entry.session

    def _finish_session(self, import_id: str) -> None:
        with self._lock:
            self._sessions.pop(import_id, None)

    def approve_import(self, *, price_list_id: str, import_id: str) -> PriceList:
        session = self._take_session(price_list_id=price_list_id, import_id=import_id)
        # The stored list may have been edited since the upload; merge into the current copy.
        session.price_list = self.store.load(price_list_id)
        # A failed save leaves the session in Preview so the approval can be retried.
        approved = session.approve(persist=self.store.save)
        self._finish_session(import_id)
        return approved

    def reject_import(self, *, price_list_id: str, import_id: str, reason: str) -> PriceList:
        session = self._take_session(price_list_id=price_list_id, import_id=import_id)
        session.price_list = self.store.load(price_list_id)
        try:
            rejected = session.reject(reason, persist=self.store.save)
        except ValueError as exc:
            raise APIError(status_code=400, error_code="REJECTION_REASON_REQUIRED", message=str(exc)) from exc
        except InvalidTransitionError:
            self._finish_session(import_id)
            raise
        self._finish_session(import_id)
        return rejected
