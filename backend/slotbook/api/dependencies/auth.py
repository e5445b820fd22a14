# backend/slotbook/api/dependencies/auth.py
"""
Caller identity dependencies.

Authentication happens upstream: the gateway forwards the caller id and role
as headers. These dependencies turn them into a CallerPrincipal and enforce
the administrator role where a route requires it.
"""

import logging
from typing import Optional

from fastapi import Depends, Header

from ...core.constants import CALLER_ID_HEADER, CALLER_ROLE_HEADER
from ...core.enums import RoleName
from ...core.exceptions import ForbiddenException, UnauthorizedException
from ...principal import CallerPrincipal

logger = logging.getLogger(__name__)


def get_current_principal(
    user_id: Optional[str] = Header(default=None, alias=CALLER_ID_HEADER),
    role: Optional[str] = Header(default=None, alias=CALLER_ROLE_HEADER),
) -> CallerPrincipal:
    """
    Resolve the caller from the gateway headers.

    Raises:
        UnauthorizedException: Either header is missing or the role is unknown
    """
    if not user_id or not user_id.strip() or not role:
        raise UnauthorizedException(
            "Caller identity is required",
            code="IDENTITY_REQUIRED",
        )
    try:
        role_name = RoleName(role.strip().upper())
    except ValueError:
        logger.warning("Rejected unknown caller role", extra={"role": role})
        raise UnauthorizedException(
            "Caller role is not recognised",
            code="UNKNOWN_ROLE",
            details={"role": role},
        )
    return CallerPrincipal(user_id=user_id.strip(), role=role_name)


def require_admin(
    principal: CallerPrincipal = Depends(get_current_principal),
) -> CallerPrincipal:
    if not principal.is_admin:
        raise ForbiddenException(
            "Administrator role required",
            code="ADMIN_REQUIRED",
        )
    return principal
