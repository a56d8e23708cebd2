# backend/skillswap/core/exceptions.py
"""
Domain-specific exceptions for the SkillSwap booking engine.

These exceptions carry a business-focused message, a stable code and a
details mapping naming the offending field or resource, so the HTTP layer
can explain a failure without the booking engine knowing about presentation.
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

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when input is malformed or out of range."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a referenced offer, slot, request, session or user is absent."""

    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenException(DomainException):
    """Raised when the actor is not a party allowed to perform the action."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictException(DomainException):
    """Raised when a state-machine rule is violated."""

    status_code = status.HTTP_409_CONFLICT


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class StorageException(ServiceException):
    """Raised when persistence fails; the enclosing transaction is rolled back."""


# Specific business exceptions


class CapacityExceededException(ConflictException):
    """Raised when an acceptance loses the race for the last seat."""

    def __init__(self, request_id: str, offer_id: str, slot_id: str, capacity: int):
        super().__init__(
            message="Slot already full",
            code="CAPACITY_EXCEEDED",
            details={
                "request_id": request_id,
                "offer_id": offer_id,
                "slot_id": slot_id,
                "capacity": capacity,
            },
        )


class RequestAlreadyResolvedException(ConflictException):
    """Raised when acting on a request that is no longer pending."""

    def __init__(self, request_id: str, current_status: str):
        super().__init__(
            message="Request already resolved",
            code="REQUEST_ALREADY_RESOLVED",
            details={"request_id": request_id, "status": current_status},
        )


class DuplicateRequestException(ConflictException):
    """Raised when a student already holds an active request on an offer."""

    def __init__(
        self, offer_id: str, student_id: str, existing_request_id: Optional[str] = None
    ):
        super().__init__(
            message="You already requested this offer",
            code="DUPLICATE_REQUEST",
            details={
                "offer_id": offer_id,
                "student_id": student_id,
                "existing_request_id": existing_request_id,
            },
        )


class OfferClosedException(ConflictException):
    """Raised when an operation requires an open offer."""

    def __init__(self, offer_id: str):
        super().__init__(
            message="Offer is closed",
            code="OFFER_CLOSED",
            details={"offer_id": offer_id},
        )


class SlotBusyException(ConflictException):
    """Raised when the per-slot lock could not be obtained in time."""

    def __init__(self, lock_key: str, waited_s: float):
        super().__init__(
            message="Slot is busy, please retry",
            code="SLOT_BUSY",
            details={"lock_key": lock_key, "waited_s": waited_s},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
