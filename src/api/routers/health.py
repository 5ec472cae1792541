# This file defines liveness, readiness, and version endpoints for the pricing API.
# Readiness answers 503 until the database is reachable and the price list table exists.
# Version reports the deployed app version next to the pricing policy that generates rules.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status

from src.api.api_config import ApiConfig
from src.api.db_access import DatabaseClient
from src.api.dependencies import get_config, get_database_client, get_engine_config
from src.api.schema_versions import build_version_fields
from src.api.schemas.health_schemas import HealthResponse, ReadinessResponse, VersionResponse
from src.occupancy_pricing.pricing_config import PricingEngineConfig

router = APIRouter(tags=["health"])
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
DBDep = Annotated[DatabaseClient, Depends(get_database_client)]
EngineConfigDep = Annotated[PricingEngineConfig, Depends(get_engine_config)]


def _envelope(request: Request, config: ApiConfig) -> dict[str, object]:
    return {
        **build_version_fields(
            api_version_path=config.api_version_path,
            schema_version=config.schema_version,
        ),
        "request_id": request.state.request_id,
        "timestamp": datetime.now(tz=UTC),
    }


def _readiness_checks(config: ApiConfig, db: DatabaseClient) -> list[dict[str, object]]:
    db_connected = db.can_connect()
    table = config.price_list_table_name
    table_ready = db_connected and db.table_exists(table)
    return [
        {"name": "database", "ok": db_connected, "detail": "reachable" if db_connected else "unreachable"},
        {"name": "price_list_table", "ok": table_ready, "detail": table if table_ready else f"{table} missing"},
    ]


@router.get("/health", response_model=HealthResponse)
def health(request: Request, config: ConfigDep) -> dict[str, object]:
    return {
        **_envelope(request, config),
        "status": "ok",
        "environment": config.environment,
        "service_name": config.api_name,
    }


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ReadinessResponse}},
)
def ready(request: Request, response: Response, config: ConfigDep, db: DBDep) -> dict[str, object]:
    checks = _readiness_checks(config, db)
    is_ready = all(check["ok"] for check in checks)
    if not is_ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {**_envelope(request, config), "ready": is_ready, "checks": checks}


@router.get("/version", response_model=VersionResponse)
def version(request: Request, config: ConfigDep, engine_config: EngineConfigDep) -> dict[str, object]:
    return {
        **_envelope(request, config),
        "api_version_path": config.api_version_path,
        "app_version": config.app_version,
        "pricing_policy": {
            "policy_version": engine_config.policy_version,
            "include_permutations_default": engine_config.include_permutations_default,
            "infants_count_toward_occupancy": engine_config.infants_count_toward_occupancy,
            "allow_unaccompanied_minors": engine_config.allow_unaccompanied_minors,
            "price_decimals": engine_config.price_decimals,
        },
    }
