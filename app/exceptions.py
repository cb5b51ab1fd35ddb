"""
Domain exceptions for the connections and messaging API.

Services raise these; ``app.main`` renders them as JSON with a stable
``code`` so clients can branch on the failure without parsing messages.
"""

from typing import Any

from fastapi import status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "error"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details}


class ValidationException(DomainException):
    """Malformed or missing fields, or a rejected attachment."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"


class SelfReferenceException(DomainException):
    """A user tried to connect with or message themselves."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "self_reference"


class AuthorizationException(DomainException):
    """The user is not connected, not a participant, or not allowed to act."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "not_authorized"


class NotFoundException(DomainException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class ConflictException(DomainException):
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


class AlreadyExistsException(ConflictException):
    """A connection record already exists for the pair."""

    default_code = "connection_exists"

    def __init__(self, existing_status: str) -> None:
        super().__init__(
            "A connection between these users already exists.",
            details={"status": existing_status},
        )
        self.existing_status = existing_status


class AlreadyResolvedException(ConflictException):
    """The connection request is no longer pending."""

    default_code = "already_resolved"

    def __init__(self, current_status: str) -> None:
        super().__init__(
            "This connection request has already been resolved.",
            details={"status": current_status},
        )
        self.current_status = current_status


class StorageException(DomainException):
    """A persistence operation failed; the message never leaks internals."""

    default_code = "storage_error"

    def __init__(self, message: str = "An error occurred processing your request.") -> None:
        super().__init__(message)
