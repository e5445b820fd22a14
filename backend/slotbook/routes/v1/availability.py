# backend/slotbook/routes/v1/availability.py
"""
Availability window routes - API v1

Reads are open to every identified caller; mutations are administrative.

Endpoints:
    GET / - List windows (consultant, date range, recurring, blocked filters)
    POST / - Create a window (admin)
    GET /{availability_id} - Window details
    PATCH /{availability_id} - Update a window (admin)
    DELETE /{availability_id} - Remove a window (admin)
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import get_availability_service, get_current_principal, require_admin
from ...core.constants import ULID_PATH_PATTERN
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...principal import CallerPrincipal
from ...repositories.filters import availability_filter, page_request
from ...schemas.availability import (
    AvailabilityCreate,
    AvailabilityListQuery,
    AvailabilityResponse,
    AvailabilityUpdate,
)
from ...schemas.base_responses import PaginatedResponse, SuccessResponse
from ...services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability-v1"])

AvailabilityId = Annotated[str, Path(description="Availability ULID", pattern=ULID_PATH_PATTERN)]


@router.get("", response_model=PaginatedResponse[AvailabilityResponse])
async def list_availability(
    query: Annotated[AvailabilityListQuery, Query()],
    _principal: CallerPrincipal = Depends(get_current_principal),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> PaginatedResponse[AvailabilityResponse]:
    """List availability windows; a weekly window matches a date range when its weekday occurs in it."""
    try:
        items, total = await asyncio.to_thread(
            availability_service.list_availability, availability_filter(query), page_request(query)
        )
    except DomainException as e:
        handle_domain_exception(e)
    return PaginatedResponse[AvailabilityResponse].build(items, query.page, query.limit, total)


@router.post(
    "",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Overlaps an existing window"}},
)
async def create_availability(
    payload: AvailabilityCreate,
    _admin: CallerPrincipal = Depends(require_admin),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    try:
        window = await asyncio.to_thread(availability_service.create_availability, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return AvailabilityResponse.model_validate(window)


@router.get("/{availability_id}", response_model=AvailabilityResponse)
async def get_availability(
    availability_id: AvailabilityId,
    _principal: CallerPrincipal = Depends(get_current_principal),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    try:
        return await asyncio.to_thread(availability_service.get_availability, availability_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{availability_id}", response_model=AvailabilityResponse)
async def update_availability(
    availability_id: AvailabilityId,
    payload: AvailabilityUpdate,
    _admin: CallerPrincipal = Depends(require_admin),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    try:
        window = await asyncio.to_thread(
            availability_service.update_availability, availability_id, payload
        )
    except DomainException as e:
        handle_domain_exception(e)
    return AvailabilityResponse.model_validate(window)


@router.delete("/{availability_id}", response_model=SuccessResponse)
async def delete_availability(
    availability_id: AvailabilityId,
    _admin: CallerPrincipal = Depends(require_admin),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> SuccessResponse:
    try:
        await asyncio.to_thread(availability_service.delete_availability, availability_id)
    except DomainException as e:
        handle_domain_exception(e)
    return SuccessResponse(
        message="Availability window deleted", data={"availability_id": availability_id}
    )
