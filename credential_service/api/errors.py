"""Mapping of lifecycle outcomes onto HTTP responses."""

from typing import TypeVar

from fastapi import HTTPException, status

from credential_service.models.outcome import AuthErrorKind, AuthOutcome

T = TypeVar("T")

STATUS_BY_KIND = {
    AuthErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    AuthErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def unwrap(outcome: AuthOutcome[T]) -> T:
    """Return the outcome's value or raise the matching HTTPException.

    Raises:
        HTTPException: With the status code mapped from the error kind and
            the error's generic message as ``detail``
    """
    if outcome.error is None:
        return outcome.value

    headers = None
    if outcome.error.kind is AuthErrorKind.UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    raise HTTPException(
        status_code=STATUS_BY_KIND[outcome.error.kind],
        detail=outcome.error.message,
        headers=headers,
    )
