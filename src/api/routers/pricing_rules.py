# This file defines stateless pricing rule endpoints under the versioned API path.
# It exists so editors can preview generated rules, price a single rule, and pre-check an import.
# Nothing here touches stored price lists; those routes live in the price list router.

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, Request

from src.api.api_config import ApiConfig
from src.api.dependencies import get_config, get_price_list_service
from src.api.error_handlers import APIError
from src.api.response_envelope import build_object_envelope
from src.api.schemas.common import ErrorResponse
from src.api.schemas.pricing_schemas import (
    CalculatePriceRequest,
    GenerateRulesRequest,
    PricingEnvelopeV1,
    ValidateImportRequest,
)
from src.api.services.price_list_service import PriceListService

router = APIRouter(tags=["pricing-rules"], responses={422: {"model": ErrorResponse}})
ServiceDep = Annotated[PriceListService, Depends(get_price_list_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]

T = TypeVar("T")


def to_domain(factory: Callable[[], T]) -> T:
    try:
        return factory()
    except (KeyError, TypeError, ValueError) as exc:
        raise APIError(status_code=422, error_code="INVALID_PAYLOAD", message=str(exc)) from exc


@router.post("/pricing-rules/generate", response_model=PricingEnvelopeV1)
def generate_rules(
    request: Request,
    body: GenerateRulesRequest,
    service: ServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    room_type = to_domain(body.room_type.to_domain)
    categories = (
        None
        if body.person_categories is None
        else to_domain(lambda: [item.to_domain() for item in body.person_categories or []])
    )
    previous = to_domain(lambda: [item.to_domain() for item in body.previous_rules])

    rules = service.generate_rules(
        room_type=room_type,
        person_categories=categories,
        include_permutations=body.include_permutations,
        previous_rules=previous,
    )
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data={"roomTypeId": room_type.room_type_id, "pricingRules": [rule.to_dict() for rule in rules]},
    )


@router.post("/pricing-rules/calculate", response_model=PricingEnvelopeV1)
def calculate_price(
    request: Request,
    body: CalculatePriceRequest,
    service: ServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    rule = to_domain(body.rule.to_domain)
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data={"ruleId": rule.id, "finalPrice": service.calculate_price(rule)},
    )


@router.post("/imports/validate", response_model=PricingEnvelopeV1)
def validate_import(
    request: Request,
    body: ValidateImportRequest,
    service: ServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    preview = to_domain(body.preview.to_domain)
    summary = service.validate_preview(preview, known_room_type_ids=body.known_room_type_ids)
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=summary.to_dict(),
        warnings=summary.warnings or None,
    )
