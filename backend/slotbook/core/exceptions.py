# backend/slotbook/core/exceptions.py
"""
Domain-specific exceptions for the Slotbook booking core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every domain error carries the ids needed to render a precise message
in ``details``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def headers(self) -> Optional[Dict[str, str]]:
        return None

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
            headers=self.headers(),
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class UnauthorizedException(DomainException):
    """Raised when the caller identity is missing."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails. The message is logged, never returned."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": "An error occurred processing your request",
                "code": self.code,
                "details": {},
            },
        )


class TransientStoreException(DomainException):
    """Raised when the store keeps reporting serialization failures after retries."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(
        self,
        operation: str,
        attempts: int,
        retry_after_seconds: int = 1,
    ):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            message="The store is temporarily busy. Please retry.",
            code="TRANSIENT_STORE_ERROR",
            details={"operation": operation, "attempts": attempts},
        )

    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after_seconds)}


# Specific business exceptions


class BookingWindowExceededException(ValidationException):
    """Raised when a slot or booking lies beyond the advance booking window."""

    def __init__(self, target_date: str, window_days: int):
        super().__init__(
            message=f"Bookings can only be made up to {window_days} days in advance",
            code="BOOKING_WINDOW_EXCEEDED",
            details={"date": target_date, "window_days": window_days},
        )


class AvailabilityOverlapException(ConflictException):
    """Raised when an availability window overlaps with an existing window."""

    def __init__(
        self,
        day_key: str,
        new_range: str,
        conflicting_range: str,
        conflicting_id: str,
    ):
        super().__init__(
            message=(
                f"Overlapping availability on {day_key}: {new_range} conflicts with {conflicting_range}"
            ),
            code="AVAILABILITY_OVERLAP",
            details={
                "day": day_key,
                "new_window": new_range,
                "conflicting_window": conflicting_range,
                "conflicting_id": conflicting_id,
            },
        )


class SlotOverlapException(ConflictException):
    """Raised when a time slot overlaps another slot of the same consultant."""

    def __init__(
        self,
        slot_date: str,
        new_range: str,
        conflicting_range: str,
        conflicting_id: Optional[str] = None,
    ):
        details: Dict[str, Any] = {
            "date": slot_date,
            "new_slot": new_range,
            "conflicting_slot": conflicting_range,
        }
        if conflicting_id:
            details["conflicting_id"] = conflicting_id
        super().__init__(
            message=f"Overlapping slot on {slot_date}: {new_range} conflicts with {conflicting_range}",
            code="SLOT_OVERLAP",
            details=details,
        )


class SlotUnavailableException(ConflictException):
    """Raised when a slot cannot be claimed because it is booked or blocked."""

    def __init__(self, slot_id: str, message: Optional[str] = None):
        super().__init__(
            message=message or "This time slot is no longer available",
            code="SLOT_UNAVAILABLE",
            details={"slot_id": slot_id},
        )


class SlotOccupiedException(ConflictException):
    """Raised when an admin edit would evict the booking holding a slot."""

    def __init__(self, slot_id: str, action: str):
        super().__init__(
            message=f"Cannot {action} a time slot that holds an active booking",
            code="SLOT_OCCUPIED",
            details={"slot_id": slot_id, "action": action},
        )


class BookingAlreadyCancelledException(ConflictException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking is already cancelled",
            code="BOOKING_ALREADY_CANCELLED",
            details={"booking_id": booking_id},
        )


class ReminderAlreadySentException(ConflictException):
    def __init__(self, reminder_id: str):
        super().__init__(
            message="Reminder has already been sent",
            code="REMINDER_ALREADY_SENT",
            details={"reminder_id": reminder_id},
        )


class ReminderCancelledException(ConflictException):
    def __init__(self, reminder_id: str):
        super().__init__(
            message="Reminder has been cancelled",
            code="REMINDER_CANCELLED",
            details={"reminder_id": reminder_id},
        )


class ReminderDeliveryException(DomainException):
    """Raised when a manually sent reminder is rejected by the notification sender."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, reminder_id: str, reason: str):
        super().__init__(
            message="Reminder could not be delivered",
            code="REMINDER_DELIVERY_FAILED",
            details={"reminder_id": reminder_id, "reason": reason},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
