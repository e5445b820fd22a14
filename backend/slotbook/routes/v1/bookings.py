# backend/slotbook/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    GET / - List bookings (customers only see their own)
    POST / - Book a slot
    GET /{booking_id} - Booking details
    POST /{booking_id}/cancel - Cancel a booking
    POST /{booking_id}/reschedule - Move a booking to another slot
    POST /{booking_id}/confirm - Confirm a pending booking (admin)
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import get_booking_service, get_current_principal
from ...core.constants import ULID_PATH_PATTERN
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...principal import CallerPrincipal
from ...repositories.filters import booking_filter, page_request
from ...schemas.base_responses import PaginatedResponse
from ...schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingListQuery,
    BookingReschedule,
    BookingResponse,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

BookingId = Annotated[
    str,
    Path(
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    ),
]


@router.get("", response_model=PaginatedResponse[BookingResponse])
async def list_bookings(
    query: Annotated[BookingListQuery, Query()],
    principal: CallerPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaginatedResponse[BookingResponse]:
    """List bookings with filters and pagination."""
    criteria = booking_filter(query, customer_id=None if principal.is_admin else principal.user_id)
    try:
        items, total = await asyncio.to_thread(
            booking_service.list_bookings, criteria, page_request(query)
        )
    except DomainException as e:
        handle_domain_exception(e)
    return PaginatedResponse[BookingResponse].build(items, query.page, query.limit, total)


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Slot not found"},
        409: {"description": "Slot unavailable or already booked"},
    },
)
async def create_booking(
    payload: BookingCreate,
    principal: CallerPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Book a slot. Concurrent requests for one slot yield exactly one booking."""
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, payload, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: BookingId,
    principal: CallerPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    responses={409: {"description": "Booking already cancelled"}},
)
async def cancel_booking(
    booking_id: BookingId,
    payload: BookingCancel,
    principal: CallerPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking, booking_id, payload.reason, principal
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/reschedule",
    response_model=BookingResponse,
    responses={409: {"description": "Booking cancelled or new slot unavailable"}},
)
async def reschedule_booking(
    booking_id: BookingId,
    payload: BookingReschedule,
    principal: CallerPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.reschedule_booking,
            booking_id,
            payload.new_slot_id,
            payload.reason,
            principal,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: BookingId,
    principal: CallerPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.confirm_booking, booking_id, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)
