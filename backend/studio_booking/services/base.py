# backend/studio_booking/services/base.py
"""
Shared service plumbing.

Every service gets a session, a booking policy and a class-named logger.
``transaction()`` is the only place a service commits; repositories just
flush. ``measure_operation`` feeds service timings into Prometheus.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    DomainException,
    RepositoryException,
    RepositoryIntegrityError,
    ServiceException,
    StoreUnavailableException,
)
from ..core.policy import BookingPolicy
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """Base class for the booking services."""

    def __init__(self, db: Session, policy: Optional[BookingPolicy] = None):
        """
        Args:
            db: Session owned by the caller (request scope or test fixture)
            policy: Booking policy; built from settings when omitted
        """
        self.db = db
        self.policy = policy or BookingPolicy.from_settings()
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit the enclosed work, or roll it back on any failure.

        Driver errors are translated on the way out: lost connectivity
        becomes StoreUnavailableException, constraint violations at commit
        become RepositoryIntegrityError, anything else from SQLAlchemy a
        ServiceException.

        Usage:
            with self.transaction():
                self.repository.create(...)
        """
        try:
            yield self.db
            self.db.commit()
        except (DomainException, RepositoryException):
            self.db.rollback()
            raise
        except (OperationalError, InterfaceError) as e:
            self.logger.error(f"Store unavailable, rolling back: {str(e)}")
            self.db.rollback()
            raise StoreUnavailableException() from e
        except IntegrityError as e:
            self.logger.warning(f"Constraint violated at commit: {str(e)}")
            self.db.rollback()
            raise RepositoryIntegrityError(f"Integrity constraint violated: {str(e)}") from e
        except SQLAlchemyError as e:
            self.logger.error(f"Database error, rolling back: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}") from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method and record it under ``operation_name``.

        Usage:
            @BaseService.measure_operation("acquire_lock")
            def acquire_lock(self, ...):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            f"Slow operation: {operation_name} took {elapsed:.2f}s"
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="error" if error_type else "success",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator
