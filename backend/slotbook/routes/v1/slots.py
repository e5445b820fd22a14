# backend/slotbook/routes/v1/slots.py
"""
Time slot routes - API v1

Endpoints:
    GET / - List slots (consultant, availability, showroom, date range, available-only)
    POST / - Create one slot (admin)
    POST /bulk - Create a batch of slots, all or nothing (admin)
    POST /generate - Generate slots from an availability window (admin)
    GET /{slot_id} - Slot details
    PATCH /{slot_id} - Edit times or flags; refused while a booking holds the slot (admin)
    DELETE /{slot_id} - Soft delete an empty slot (admin)
"""

import asyncio
import logging
from typing import Annotated, List

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import get_current_principal, get_slot_service, require_admin
from ...core.constants import ULID_PATH_PATTERN
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...principal import CallerPrincipal
from ...repositories.filters import page_request, slot_filter
from ...schemas.base_responses import PaginatedResponse, SuccessResponse
from ...schemas.time_slot import (
    BulkSlotCreate,
    SlotCreate,
    SlotGenerateRequest,
    SlotGenerationResult,
    SlotListQuery,
    SlotUpdate,
    TimeSlotResponse,
)
from ...services.slot_service import SlotService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["slots-v1"])

SlotId = Annotated[str, Path(description="Time slot ULID", pattern=ULID_PATH_PATTERN)]


# ============================================================================
# Static routes (no path parameters)
# ============================================================================


@router.get("", response_model=PaginatedResponse[TimeSlotResponse])
async def list_slots(
    query: Annotated[SlotListQuery, Query()],
    _principal: CallerPrincipal = Depends(get_current_principal),
    slot_service: SlotService = Depends(get_slot_service),
) -> PaginatedResponse[TimeSlotResponse]:
    try:
        items, total = await asyncio.to_thread(
            slot_service.list_slots, slot_filter(query), page_request(query)
        )
    except DomainException as e:
        handle_domain_exception(e)
    return PaginatedResponse[TimeSlotResponse].build(items, query.page, query.limit, total)


@router.post(
    "",
    response_model=TimeSlotResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Overlaps an existing slot"}},
)
async def create_slot(
    payload: SlotCreate,
    _admin: CallerPrincipal = Depends(require_admin),
    slot_service: SlotService = Depends(get_slot_service),
) -> TimeSlotResponse:
    try:
        slot = await asyncio.to_thread(slot_service.create_slot, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return TimeSlotResponse.model_validate(slot)


@router.post(
    "/bulk",
    response_model=List[TimeSlotResponse],
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "A slot overlaps another slot in the batch or an existing slot"}},
)
async def bulk_create_slots(
    payload: BulkSlotCreate,
    _admin: CallerPrincipal = Depends(require_admin),
    slot_service: SlotService = Depends(get_slot_service),
) -> List[TimeSlotResponse]:
    """Create every slot in the batch or none of them."""
    try:
        slots = await asyncio.to_thread(slot_service.bulk_create_slots, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return [TimeSlotResponse.model_validate(slot) for slot in slots]


@router.post("/generate", response_model=SlotGenerationResult, status_code=status.HTTP_201_CREATED)
async def generate_slots(
    payload: SlotGenerateRequest,
    _admin: CallerPrincipal = Depends(require_admin),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotGenerationResult:
    try:
        return await asyncio.to_thread(slot_service.generate_from_availability, payload)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# Dynamic routes (with path parameters)
# ============================================================================


@router.get("/{slot_id}", response_model=TimeSlotResponse)
async def get_slot(
    slot_id: SlotId,
    _principal: CallerPrincipal = Depends(get_current_principal),
    slot_service: SlotService = Depends(get_slot_service),
) -> TimeSlotResponse:
    try:
        return await asyncio.to_thread(slot_service.get_slot, slot_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{slot_id}",
    response_model=TimeSlotResponse,
    responses={409: {"description": "Slot holds an active booking or overlaps another slot"}},
)
async def update_slot(
    slot_id: SlotId,
    payload: SlotUpdate,
    _admin: CallerPrincipal = Depends(require_admin),
    slot_service: SlotService = Depends(get_slot_service),
) -> TimeSlotResponse:
    try:
        slot = await asyncio.to_thread(slot_service.update_slot, slot_id, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return TimeSlotResponse.model_validate(slot)


@router.delete(
    "/{slot_id}",
    response_model=SuccessResponse,
    responses={409: {"description": "Slot holds an active booking"}},
)
async def delete_slot(
    slot_id: SlotId,
    _admin: CallerPrincipal = Depends(require_admin),
    slot_service: SlotService = Depends(get_slot_service),
) -> SuccessResponse:
    try:
        await asyncio.to_thread(slot_service.delete_slot, slot_id)
    except DomainException as e:
        handle_domain_exception(e)
    return SuccessResponse(message="Time slot deleted", data={"slot_id": slot_id})
