# backend/slotbook/routes/v1/reminders.py
"""
Reminder routes - API v1

Endpoints:
    GET / - List reminders (customers only see their own)
    POST / - Schedule a reminder for a booking
    POST /process - Deliver every due reminder now (admin)
    GET /{reminder_id} - Reminder details
    PATCH /{reminder_id} - Change channel or time of an unsent reminder
    POST /{reminder_id}/send - Deliver an unsent reminder now
    POST /{reminder_id}/cancel - Cancel an unsent reminder
    DELETE /{reminder_id} - Remove an unsent reminder
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import get_current_principal, get_reminder_service, require_admin
from ...core.constants import ULID_PATH_PATTERN
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...principal import CallerPrincipal
from ...repositories.filters import page_request, reminder_filter
from ...schemas.base_responses import PaginatedResponse, SuccessResponse
from ...schemas.reminder import (
    ReminderCreate,
    ReminderListQuery,
    ReminderProcessingResult,
    ReminderResponse,
    ReminderUpdate,
)
from ...services.reminder_service import ReminderService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reminders-v1"])

ReminderId = Annotated[str, Path(description="Reminder ULID", pattern=ULID_PATH_PATTERN)]


# ============================================================================
# Static routes (no path parameters)
# ============================================================================


@router.get("", response_model=PaginatedResponse[ReminderResponse])
async def list_reminders(
    query: Annotated[ReminderListQuery, Query()],
    principal: CallerPrincipal = Depends(get_current_principal),
    reminder_service: ReminderService = Depends(get_reminder_service),
) -> PaginatedResponse[ReminderResponse]:
    criteria = reminder_filter(query, customer_id=None if principal.is_admin else principal.user_id)
    try:
        items, total = await asyncio.to_thread(
            reminder_service.list_reminders, criteria, page_request(query)
        )
    except DomainException as e:
        handle_domain_exception(e)
    return PaginatedResponse[ReminderResponse].build(items, query.page, query.limit, total)


@router.post(
    "",
    response_model=ReminderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Booking already cancelled"}},
)
async def create_reminder(
    payload: ReminderCreate,
    principal: CallerPrincipal = Depends(get_current_principal),
    reminder_service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    try:
        reminder = await asyncio.to_thread(reminder_service.create_reminder, payload, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return ReminderResponse.model_validate(reminder)


@router.post("/process", response_model=ReminderProcessingResult)
async def process_reminders(
    _admin: CallerPrincipal = Depends(require_admin),
    reminder_service: ReminderService = Depends(get_reminder_service),
) -> ReminderProcessingResult:
    """Run one delivery pass; the periodic worker does the same on its schedule."""
    try:
        return await asyncio.to_thread(reminder_service.process_reminders)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# Dynamic routes (with path parameters)
# ============================================================================


@router.get("/{reminder_id}", response_model=ReminderResponse)
async def get_reminder(
    reminder_id: ReminderId,
    principal: CallerPrincipal = Depends(get_current_principal),
    reminder_service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    try:
        reminder = await asyncio.to_thread(reminder_service.get_reminder, reminder_id, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return ReminderResponse.model_validate(reminder)


@router.patch(
    "/{reminder_id}",
    response_model=ReminderResponse,
    responses={409: {"description": "Reminder already sent or cancelled"}},
)
async def update_reminder(
    reminder_id: ReminderId,
    payload: ReminderUpdate,
    principal: CallerPrincipal = Depends(get_current_principal),
    reminder_service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    try:
        reminder = await asyncio.to_thread(
            reminder_service.update_reminder, reminder_id, payload, principal
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ReminderResponse.model_validate(reminder)


@router.post(
    "/{reminder_id}/send",
    response_model=ReminderResponse,
    responses={
        409: {"description": "Reminder already sent or cancelled, or booking cancelled"},
        502: {"description": "Notification sender failed; reminder recorded as FAILED"},
    },
)
async def send_reminder(
    reminder_id: ReminderId,
    principal: CallerPrincipal = Depends(get_current_principal),
    reminder_service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    try:
        reminder = await asyncio.to_thread(reminder_service.send_reminder, reminder_id, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return ReminderResponse.model_validate(reminder)


@router.post("/{reminder_id}/cancel", response_model=ReminderResponse)
async def cancel_reminder(
    reminder_id: ReminderId,
    principal: CallerPrincipal = Depends(get_current_principal),
    reminder_service: ReminderService = Depends(get_reminder_service),
) -> ReminderResponse:
    try:
        reminder = await asyncio.to_thread(reminder_service.cancel_reminder, reminder_id, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return ReminderResponse.model_validate(reminder)


@router.delete("/{reminder_id}", response_model=SuccessResponse)
async def delete_reminder(
    reminder_id: ReminderId,
    principal: CallerPrincipal = Depends(get_current_principal),
    reminder_service: ReminderService = Depends(get_reminder_service),
) -> SuccessResponse:
    try:
        await asyncio.to_thread(reminder_service.delete_reminder, reminder_id, principal)
    except DomainException as e:
        handle_domain_exception(e)
    return SuccessResponse(message="Reminder deleted", data={"reminder_id": reminder_id})
