# backend/slotbook/routes/v1/reschedules.py
"""
Reschedule history routes - API v1

Endpoints:
    GET / - List reschedule records (customers only see their own)
    GET /{reschedule_id} - Reschedule record details
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from ...api.dependencies import get_booking_service, get_current_principal
from ...core.constants import ULID_PATH_PATTERN
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...principal import CallerPrincipal
from ...repositories.filters import page_request, reschedule_filter
from ...schemas.base_responses import PaginatedResponse
from ...schemas.booking import RescheduleListQuery, RescheduleResponse
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reschedules-v1"])

RescheduleId = Annotated[str, Path(description="Reschedule ULID", pattern=ULID_PATH_PATTERN)]


@router.get("", response_model=PaginatedResponse[RescheduleResponse])
async def list_reschedules(
    query: Annotated[RescheduleListQuery, Query()],
    principal: CallerPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaginatedResponse[RescheduleResponse]:
    criteria = reschedule_filter(
        query, customer_id=None if principal.is_admin else principal.user_id
    )
    try:
        items, total = await asyncio.to_thread(
            booking_service.list_reschedules, criteria, page_request(query)
        )
    except DomainException as e:
        handle_domain_exception(e)
    return PaginatedResponse[RescheduleResponse].build(items, query.page, query.limit, total)


@router.get("/{reschedule_id}", response_model=RescheduleResponse)
async def get_reschedule(
    reschedule_id: RescheduleId,
    principal: CallerPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> RescheduleResponse:
    try:
        reschedule = await asyncio.to_thread(
            booking_service.get_reschedule, reschedule_id, principal
        )
    except DomainException as e:
        handle_domain_exception(e)
    return RescheduleResponse.model_validate(reschedule)
