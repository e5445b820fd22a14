"""Tests for domain exception to HTTP mapping."""

from slotbook.core.exceptions import (
    BookingWindowExceededException,
    ServiceException,
    SlotOccupiedException,
    TransientStoreException,
)


def test_conflict_maps_to_409_with_details():
    http_exc = SlotOccupiedException("slot-1", "delete").to_http_exception()
    assert http_exc.status_code == 409
    assert http_exc.detail["code"] == "SLOT_OCCUPIED"
    assert http_exc.detail["details"]["slot_id"] == "slot-1"


def test_booking_window_is_a_validation_error():
    http_exc = BookingWindowExceededException("2099-01-01", 90).to_http_exception()
    assert http_exc.status_code == 400
    assert http_exc.detail["code"] == "BOOKING_WINDOW_EXCEEDED"


def test_transient_store_error_is_retryable():
    http_exc = TransientStoreException("create_booking", 3).to_http_exception()
    assert http_exc.status_code == 503
    assert "Retry-After" in (http_exc.headers or {})


def test_service_exception_hides_internal_message():
    http_exc = ServiceException("Database operation failed: secret table").to_http_exception()
    assert http_exc.status_code == 500
    assert "secret" not in str(http_exc.detail)
