"""Mapping of core errors onto HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from packages.core.errors import (
    AuthorizationRequiredError,
    EscalationPromptNotFoundError,
    PendingActionNotFoundError,
    ProtectedConfigLockedError,
    ReasoningModelError,
)

_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (PendingActionNotFoundError, status.HTTP_404_NOT_FOUND),
    (EscalationPromptNotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthorizationRequiredError, status.HTTP_403_FORBIDDEN),
    (ProtectedConfigLockedError, status.HTTP_409_CONFLICT),
    (ReasoningModelError, status.HTTP_502_BAD_GATEWAY),
    (ValueError, status.HTTP_400_BAD_REQUEST),
)


def to_http_error(exc: Exception) -> HTTPException:
    """Translate a core exception; anything unmapped becomes a 500."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")


__all__ = ["to_http_error"]
