"""
Domain errors raised by services and translated to HTTP responses by routers.
"""
from typing import Optional

from fastapi import HTTPException, status


class HostelError(Exception):
    """Base class for domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(HostelError):
    """Referenced record (student, complaint, request) does not exist."""


class ValidationError(HostelError):
    """Caller input rejected before any write."""

    def __init__(self, field: Optional[str], message: str):
        super().__init__(message)
        self.field = field

    def to_detail(self) -> dict:
        return {"field": self.field, "message": self.message}


class ConflictError(HostelError):
    """Write lost a race or collides with existing state (e.g. room already taken)."""


class InvalidTransitionError(ConflictError):
    """Requested status change is not a legal lifecycle move."""


class AuthorizationError(HostelError):
    """Session rejected by the institutional domain gate."""


def to_http_exception(error: HostelError) -> HTTPException:
    """Map a domain error to the HTTP error returned to the caller."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)
    if isinstance(error, ValidationError):
        return HTTPException(status_code=422, detail=error.to_detail())
    if isinstance(error, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.message)
    if isinstance(error, AuthorizationError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=error.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.message)
