"""Typed results returned by the credential lifecycle operations."""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class AuthErrorKind(str, Enum):
    """Failure categories; the transport layer maps these to status codes."""

    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"


class AuthError(BaseModel):
    """A failure with a message that is safe to show to the caller."""

    kind: AuthErrorKind
    message: str


class AuthOutcome(BaseModel, Generic[T]):
    """Either a value or an error, never both."""

    value: Optional[T] = None
    error: Optional[AuthError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "AuthOutcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: AuthErrorKind, message: str) -> "AuthOutcome[T]":
        return cls(error=AuthError(kind=kind, message=message))
