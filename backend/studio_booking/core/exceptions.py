# backend/studio_booking/core/exceptions.py
"""
Domain-specific exceptions for the studio booking core.

Every exception carries a short machine-checkable ``code`` and a
human-readable ``message`` that can be shown to the user directly.
They are caught and converted at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base for every error the booking core reports to callers."""

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

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Input that is well-formed but not acceptable (400)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Missing resource, or one the caller may not see (404)."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(
        self,
        message: str = "Resource not found",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code or "NOT_FOUND", details=details)


class ConflictException(DomainException):
    """The request collides with current booking state (409)."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """A lifecycle or payment rule forbids the request (422)."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Infrastructure or provider failure inside a service (500)."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class SlotConflictException(ConflictException):
    """Raised when a slot lock cannot be acquired because the window is taken."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        resource: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload = dict(details or {})
        if resource:
            payload.setdefault("resource", resource)
        super().__init__(
            message=message or "Time slot is already locked by another user",
            code="SLOT_CONFLICT",
            details=payload,
        )


class SlotExpiredException(ConflictException):
    """Raised when the caller's slot lock has expired before booking."""

    status_code = status.HTTP_410_GONE

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "Booking slot has expired or is invalid",
            code="SLOT_EXPIRED",
            details=details or {},
        )


class SlotInvalidException(ValidationException):
    """Raised when no slot lock matches the requested booking tuple."""

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "Booking slot has expired or is invalid",
            code="SLOT_INVALID",
            details=details or {},
        )


class BookingConflictException(ConflictException):
    """Raised when the window was booked after the slot lock was taken."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "Time slot is no longer available",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class ExtensionConflictException(ConflictException):
    """Raised when a running session cannot be extended."""

    def __init__(self, reason: str, *, details: Optional[Dict[str, Any]] = None):
        payload = dict(details or {})
        payload.setdefault("reason", reason)
        super().__init__(
            message=f"Cannot extend booking: {reason}",
            code="EXTENSION_CONFLICT",
            details=payload,
        )


class DuplicateTipException(ConflictException):
    """Raised when a tip already exists for the booking."""

    def __init__(self, booking_id: str):
        super().__init__(
            message="Tip already added for this booking",
            code="DUPLICATE_TIP",
            details={"booking_id": booking_id},
        )


class InvalidStateException(BusinessRuleException):
    """Raised when a transition is attempted from the wrong status."""

    def __init__(
        self,
        message: str,
        *,
        current_status: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload = dict(details or {})
        if current_status is not None:
            payload.setdefault("current_status", current_status)
        super().__init__(message=message, code="INVALID_STATE", details=payload)


class UnknownEventException(DomainException):
    """Raised for payment events the reconciler has no handler for (never fatal)."""

    status_code = status.HTTP_200_OK

    def __init__(self, event_type: str):
        super().__init__(
            message=f"Unhandled payment event type: {event_type}",
            code="UNKNOWN_EVENT",
            details={"event_type": event_type},
        )


class StoreUnavailableException(ServiceException):
    """Raised when the backing store cannot be reached; callers may retry with backoff."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "Service temporarily unavailable. Please retry.",
            code="STORE_UNAVAILABLE",
            details=details or {},
        )

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={"message": self.message, "code": self.code, "details": self.details},
            headers={"Retry-After": "2"},
        )


class RepositoryException(Exception):
    """A data access call failed; services translate it before it reaches a route."""


class RepositoryIntegrityError(RepositoryException):
    """Raised when a write violates a uniqueness or check constraint."""
