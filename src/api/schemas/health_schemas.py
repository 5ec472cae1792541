# This file defines response schemas for the operational endpoints.
# Every payload shares one envelope carrying version metadata and the request id.
# Readiness is reported as a list of named dependency checks so new checks do not change the contract.

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class OperationalEnvelope(BaseModel):
    api_version: str
    schema_version: str
    request_id: str
    timestamp: datetime


class HealthResponse(OperationalEnvelope):
    status: Literal["ok"]
    environment: str
    service_name: str


class DependencyCheck(BaseModel):
    name: str
    ok: bool
    detail: str


class ReadinessResponse(OperationalEnvelope):
    ready: bool
    checks: list[DependencyCheck]


class PricingPolicySummary(BaseModel):
    """Engine settings that change which rules get generated."""

    policy_version: str
    include_permutations_default: bool
    infants_count_toward_occupancy: bool
    allow_unaccompanied_minors: bool
    price_decimals: int


class VersionResponse(OperationalEnvelope):
    api_version_path: str
    app_version: str
    pricing_policy: PricingPolicySummary
