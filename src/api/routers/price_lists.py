# This file defines price list endpoints under the versioned API path.
# It exists so editors can create lists, regenerate room type rules, edit rules, and run imports.
# Import upload returns a pending preview; approval and rejection are separate gate transitions.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.api.api_config import ApiConfig
from src.api.dependencies import get_config, get_price_list_service
from src.api.response_envelope import build_object_envelope
from src.api.routers.pricing_rules import to_domain
from src.api.schemas.common import ErrorResponse
from src.api.schemas.pricing_schemas import (
    CreatePriceListRequest,
    ImportUploadRequest,
    PricingEnvelopeV1,
    RegenerateRoomTypeRequest,
    RejectImportRequest,
    UpdateRuleRequest,
)
from src.api.services.price_list_service import PriceListService

router = APIRouter(
    prefix="/price-lists",
    tags=["price-lists"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
ServiceDep = Annotated[PriceListService, Depends(get_price_list_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


def _envelope(request: Request, config: ApiConfig, data: dict[str, object], warnings: list[str] | None = None) -> dict[str, object]:
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=data,
        warnings=warnings or None,
    )


@router.post("", response_model=PricingEnvelopeV1, status_code=201)
def create_price_list(
    request: Request,
    body: CreatePriceListRequest,
    service: ServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    categories = (
        None
        if body.person_categories is None
        else to_domain(lambda: [item.to_domain() for item in body.person_categories or []])
    )
    price_list = service.create_price_list(
        property_id=body.property_id,
        name=body.name,
        valid_from=body.valid_from,
        valid_to=body.valid_to,
        person_categories=categories,
    )
    return _envelope(request, config, price_list.to_dict())


@router.get("/{price_list_id}", response_model=PricingEnvelopeV1)
def get_price_list(
    request: Request,
    price_list_id: str,
    service: ServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.get_price_list(price_list_id)
    return _envelope(request, config, result["price_list"].to_dict(), result["problems"])


@router.post("/{price_list_id}/room-types/generate", response_model=PricingEnvelopeV1)
def regenerate_room_type(
    request: Request,
    price_list_id: str,
    body: RegenerateRoomTypeRequest,
    service: ServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    room_type = to_domain(body.room_type.to_domain)
    price_list = service.regenerate_room_type(
        price_list_id=price_list_id,
        room_type=room_type,
        include_permutations=body.include_permutations,
    )
    return _envelope(request, config, price_list.to_dict())


@router.patch("/{price_list_id}/room-types/{room_type_id}/rules/{rule_id}", response_model=PricingEnvelopeV1)
def update_rule(
    request: Request,
    price_list_id: str,
    room_type_id: str,
    rule_id: str,
    body: UpdateRuleRequest,
    service: ServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    changes = to_domain(body.to_changes)
    price_list = service.update_rule(
        price_list_id=price_list_id,
        room_type_id=room_type_id,
        rule_id=rule_id,
        changes=changes,
    )
    return _envelope(request, config, price_list.to_dict())


@router.post("/{price_list_id}/imports", response_model=PricingEnvelopeV1, status_code=201)
def upload_import(
    request: Request,
    price_list_id: str,
    body: ImportUploadRequest,
    service: ServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    import_id, preview = service.start_import(
        price_list_id=price_list_id,
        file_name=body.file_name,
        mime_type=body.mime_type,
        content_base64=body.content_base64,
        known_room_type_ids=body.known_room_type_ids,
    )
    return _envelope(
        request,
        config,
        {"importId": import_id, "validationStatus": "pending", "preview": preview.to_dict()},
        list(preview.warnings),
    )


@router.post("/{price_list_id}/imports/{import_id}/approve", response_model=PricingEnvelopeV1)
def approve_import(
    request: Request,
    price_list_id: str,
    import_id: str,
    service: ServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    price_list = service.approve_import(price_list_id=price_list_id, import_id=import_id)
    return _envelope(request, config, price_list.to_dict())


@router.post("/{price_list_id}/imports/{import_id}/reject", response_model=PricingEnvelopeV1)
def reject_import(
    request: Request,
    price_list_id: str,
    import_id: str,
    body: RejectImportRequest,
    service: ServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    price_list = service.reject_import(price_list_id=price_list_id, import_id=import_id, reason=body.reason)
    return _envelope(request, config, price_list.to_dict())
