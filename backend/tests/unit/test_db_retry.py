"""Tests for bounded retry of transient store failures."""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from slotbook.core.exceptions import RepositoryException, TransientStoreException
from slotbook.database import is_transient_error, with_db_retry
from slotbook.models.booking import Booking
from slotbook.repositories.booking_repository import BookingRepository
from slotbook.services.base import BaseService


def _locked():
    return OperationalError("UPDATE time_slots", {}, Exception("database is locked"))


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__(f"pg error {pgcode}")
        self.pgcode = pgcode


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("slotbook.database.time.sleep") as sleep:
        yield sleep


class TestIsTransientError:
    def test_sqlite_writer_contention(self):
        assert is_transient_error(_locked()) is True

    @pytest.mark.parametrize("pgcode", ["40001", "40P01"])
    def test_serialization_and_deadlock_codes(self, pgcode):
        assert is_transient_error(DBAPIError("SELECT 1", {}, _PgError(pgcode))) is True

    def test_constraint_violation_is_not_transient(self):
        error = IntegrityError("INSERT INTO bookings", {}, Exception("UNIQUE constraint failed"))
        assert is_transient_error(error) is False

    def test_non_database_error(self):
        assert is_transient_error(RuntimeError("database is locked")) is False


class TestWithDbRetry:
    def test_succeeds_after_transient_failure(self, no_sleep):
        func = MagicMock(side_effect=[_locked(), _locked(), "done"])
        on_retry = MagicMock()

        result = with_db_retry("claim_slot", func, max_attempts=3, base_delay=0.01, on_retry=on_retry)

        assert result == "done"
        assert func.call_count == 3
        assert [c.args[0] for c in on_retry.call_args_list] == [1, 2]
        assert no_sleep.call_count == 2

    def test_gives_up_with_retry_after(self):
        func = MagicMock(side_effect=_locked())

        with pytest.raises(TransientStoreException) as exc_info:
            with_db_retry("claim_slot", func, max_attempts=4, base_delay=0.01)

        assert func.call_count == 4
        http_exc = exc_info.value.to_http_exception()
        assert http_exc.status_code == 503
        assert http_exc.headers == {"Retry-After": "1"}
        assert exc_info.value.details == {"operation": "claim_slot", "attempts": 4}
        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_other_database_errors_are_not_retried(self):
        error = DBAPIError("SELECT 1", {}, Exception("syntax error"))
        func = MagicMock(side_effect=error)

        with pytest.raises(DBAPIError):
            with_db_retry("list_slots", func, max_attempts=5, base_delay=0.01)

        assert func.call_count == 1

    def test_non_database_errors_propagate(self):
        func = MagicMock(side_effect=ValueError("bad input"))

        with pytest.raises(ValueError):
            with_db_retry("create_slot", func, max_attempts=5, base_delay=0.01)

        assert func.call_count == 1


class TestRepositoryReads:
    def test_transient_error_is_not_wrapped(self):
        session = MagicMock()
        session.query.side_effect = _locked()

        with pytest.raises(OperationalError):
            BookingRepository(session).get_by_id("01HF4G12ABCDEF3456789XYZAB")

    def test_other_errors_are_wrapped(self):
        session = MagicMock()
        session.query.side_effect = DBAPIError("SELECT 1", {}, Exception("no such table"))

        with pytest.raises(RepositoryException):
            BookingRepository(session).get_by_id("01HF4G12ABCDEF3456789XYZAB")

    def test_read_inside_transaction_is_retried(self, db, test_settings, monkeypatch):
        service = BaseService(db, settings=test_settings)
        repository = BookingRepository(db)
        real_query = db.query
        calls = []

        def _query(*entities, **kwargs):
            calls.append(entities)
            if len(calls) == 1:
                raise _locked()
            return real_query(*entities, **kwargs)

        monkeypatch.setattr(db, "query", _query)

        assert service.run_in_transaction("load_booking", lambda: repository.get_by_id("missing")) is None
        assert len(calls) == 2
        assert calls[0] == (Booking,)
