# backend/slotbook/services/base.py
"""
Base Service Pattern for the booking core.

Provides common functionality for all service classes including:
- Transaction management with bounded retry of serialization failures
- Logging
- Cache integration
- Error handling
- Performance monitoring
"""

from contextlib import contextmanager
from datetime import datetime
from functools import wraps
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, Sequence, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import DomainException, RepositoryException, ServiceException
from ..core.timezone_utils import utc_now
from ..database import is_transient_error, with_db_retry
from ..monitoring.prometheus_metrics import prometheus_metrics

# Use TYPE_CHECKING to avoid circular imports
if TYPE_CHECKING:
    from .cache_service import CacheService

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """
    Base class for all service layer components.

    Services receive an open session and an optional cache. They own the
    transaction boundary: repositories flush, services commit.
    """

    def __init__(
        self,
        db: Session,
        cache: Optional["CacheService"] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.cache = cache
        self.settings = settings or default_settings
        self.logger = logging.getLogger(self.__class__.__name__)

    def now(self) -> datetime:
        return utc_now()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for a single database transaction.

        Usage:
            with self.transaction():
                self.db.add(entity)
                # commit is handled automatically
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except DomainException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            if is_transient_error(e):
                raise
            self.logger.error(f"Transaction failed: {str(e)}")
            raise ServiceException(f"Database operation failed: {str(e)}")
        except RepositoryException as e:
            self.db.rollback()
            self.logger.error(f"Repository failure in transaction: {str(e)}")
            raise ServiceException(str(e))
        except Exception as e:
            self.logger.error(f"Unexpected error in transaction: {str(e)}")
            self.db.rollback()
            raise

    def run_in_transaction(self, operation_name: str, work: Callable[[], T]) -> T:
        """
        Run ``work`` inside a transaction, retrying transient store conflicts.

        ``work`` is re-executed from scratch on every attempt, so it must do all
        of its reads and conditional writes itself. After the final attempt a
        TransientStoreException (503) reaches the caller.
        """

        def _attempt() -> T:
            with self.transaction():
                return work()

        return with_db_retry(
            operation_name,
            _attempt,
            max_attempts=self.settings.transaction_max_attempts,
            base_delay=self.settings.transaction_retry_base_delay,
            on_retry=lambda _attempt_no: prometheus_metrics.record_transaction_retry(
                operation_name
            ),
        )

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("create_booking")
            def create_booking(self, data):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.time()
                success = False
                error_type = None

                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.time() - start_time

                    if elapsed > SLOW_OPERATION_SECONDS and hasattr(self, "logger"):
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )

                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if success else "error",
                        error_type=error_type,
                    )

            wrapper._operation_name = operation_name  # type: ignore[attr-defined]
            return cast(F, wrapper)

        return decorator

    def read_through(
        self,
        key_parts: Sequence[Any],
        generation_keys: Callable[["CacheService"], Sequence[str]],
        loader: Callable[[], T],
    ) -> T:
        """Serve ``loader`` through the cache when one is configured."""
        if self.cache is None:
            return loader()
        return self.cache.read_through(
            key_parts,
            generation_keys(self.cache),
            loader,
            ttl=self.settings.cache_ttl_seconds,
        )

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log an operation with context.

        Args:
            operation: Operation name
            **context: Additional context to log
        """
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

