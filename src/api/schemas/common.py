# This file defines shared schema pieces reused by multiple API endpoints.
# It exists so envelope metadata and error payloads stay consistent.
# These classes are also used by tests to validate response shape stability.

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class EnvelopeFields(BaseModel):
    api_version: str
    schema_version: str
    request_id: str
    generated_at: datetime
    warnings: list[str] | None = None


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Any | None = None
    request_id: str
    timestamp: datetime


class CamelModel(BaseModel):
    """Request bodies use the camelCase field names of the price list document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")
