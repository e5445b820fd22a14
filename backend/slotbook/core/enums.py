# backend/slotbook/core/enums.py
"""
Core enums for the booking platform.

Role names come from the identity gateway; the core only distinguishes
administrators from customers.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles understood by the booking core."""

    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
