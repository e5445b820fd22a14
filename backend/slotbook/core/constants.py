"""Application-wide constants for the Slotbook booking core."""

from __future__ import annotations

BRAND_NAME = "Slotbook"

API_TITLE = f"{BRAND_NAME} API"
API_VERSION = "1.0.0"
API_DESCRIPTION = (
    "Consultant availability, slot allocation and booking lifecycle API. "
    "Slots are claimed with conditional writes so a slot is never double booked."
)
API_PREFIX = "/api/v1"

# Identity headers injected by the upstream gateway
CALLER_ID_HEADER = "X-User-Id"
CALLER_ROLE_HEADER = "X-User-Role"
REQUEST_ID_HEADER = "X-Request-ID"

# Text constraints
MAX_REASON_LENGTH = 500
MAX_BLOCK_REASON_LENGTH = 255
MAX_NAME_LENGTH = 200
MAX_APPOINTMENT_TYPE_LENGTH = 50

DEFAULT_APPOINTMENT_TYPE = "consultation"
DEFAULT_TIMEZONE = "UTC"

# Crockford base32 ULIDs as issued by python-ulid
ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"
