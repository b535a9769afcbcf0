# app/core/exceptions.py
"""
Domain errors raised by the booking services.

Services raise these instead of HTTPException so the same rules can be
exercised without a request. The API layer turns them into the JSON
envelope in app.core.errors.
"""

from typing import Any, Dict, Optional

from fastapi import status


class DomainError(Exception):
    """Base class for every error the booking core reports."""

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


class ValidationError(DomainError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(DomainError):
    """A referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(DomainError):
    """Authenticated, but not allowed to do this."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(DomainError):
    """Valid request, but the booking is in the wrong state for it."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthenticatedError(DomainError):
    """Missing or invalid credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED


class InternalError(DomainError):
    """Storage failure or anything unexpected."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
