# backend/slotbook/routes/v1/consultants.py
"""
Consultant routes - API v1

Endpoints:
    GET / - List consultants
    POST / - Register a consultant (admin)
    GET /{consultant_id} - Consultant details
    PATCH /{consultant_id} - Update a consultant (admin)
    DELETE /{consultant_id} - Remove a consultant (admin)
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import get_consultant_service, get_current_principal, require_admin
from ...core.constants import ULID_PATH_PATTERN
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...principal import CallerPrincipal
from ...repositories.filters import page_request
from ...schemas.base_responses import PaginatedResponse, SuccessResponse
from ...schemas.consultant import (
    ConsultantCreate,
    ConsultantListQuery,
    ConsultantResponse,
    ConsultantUpdate,
)
from ...services.consultant_service import ConsultantService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["consultants-v1"])

ConsultantId = Annotated[str, Path(description="Consultant ULID", pattern=ULID_PATH_PATTERN)]


@router.get("", response_model=PaginatedResponse[ConsultantResponse])
async def list_consultants(
    query: Annotated[ConsultantListQuery, Query()],
    principal: CallerPrincipal = Depends(get_current_principal),
    consultant_service: ConsultantService = Depends(get_consultant_service),
) -> PaginatedResponse[ConsultantResponse]:
    include_inactive = query.include_inactive and principal.is_admin
    try:
        items, total = await asyncio.to_thread(
            consultant_service.list_consultants, page_request(query), include_inactive
        )
    except DomainException as e:
        handle_domain_exception(e)
    return PaginatedResponse[ConsultantResponse].build(items, query.page, query.limit, total)


@router.post("", response_model=ConsultantResponse, status_code=status.HTTP_201_CREATED)
async def create_consultant(
    payload: ConsultantCreate,
    _admin: CallerPrincipal = Depends(require_admin),
    consultant_service: ConsultantService = Depends(get_consultant_service),
) -> ConsultantResponse:
    try:
        consultant = await asyncio.to_thread(consultant_service.create_consultant, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return ConsultantResponse.model_validate(consultant)


@router.get("/{consultant_id}", response_model=ConsultantResponse)
async def get_consultant(
    consultant_id: ConsultantId,
    _principal: CallerPrincipal = Depends(get_current_principal),
    consultant_service: ConsultantService = Depends(get_consultant_service),
) -> ConsultantResponse:
    try:
        consultant = await asyncio.to_thread(consultant_service.get_consultant, consultant_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ConsultantResponse.model_validate(consultant)


@router.patch("/{consultant_id}", response_model=ConsultantResponse)
async def update_consultant(
    consultant_id: ConsultantId,
    payload: ConsultantUpdate,
    _admin: CallerPrincipal = Depends(require_admin),
    consultant_service: ConsultantService = Depends(get_consultant_service),
) -> ConsultantResponse:
    try:
        consultant = await asyncio.to_thread(
            consultant_service.update_consultant, consultant_id, payload
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ConsultantResponse.model_validate(consultant)


@router.delete("/{consultant_id}", response_model=SuccessResponse)
async def delete_consultant(
    consultant_id: ConsultantId,
    _admin: CallerPrincipal = Depends(require_admin),
    consultant_service: ConsultantService = Depends(get_consultant_service),
) -> SuccessResponse:
    try:
        await asyncio.to_thread(consultant_service.delete_consultant, consultant_id)
    except DomainException as e:
        handle_domain_exception(e)
    return SuccessResponse(message="Consultant deleted", data={"consultant_id": consultant_id})
