"""Auth request and response models with validation."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


def _strip_email(v):
    return v.strip() if isinstance(v, str) else v


def _validate_password(v: str) -> str:
    if not v.strip():
        raise ValueError("Password cannot be empty or whitespace only")
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password cannot exceed {MAX_PASSWORD_BYTES} bytes")
    return v


class RegisterRequest(BaseModel):
    """New account registration.

    Attributes:
        email: Unique email address
        password: Account password (8-72 chars)
        name: Optional display name (max 255 chars)
    """

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    name: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def email_stripped(cls, v):
        """Strip surrounding whitespace before address validation."""
        return _strip_email(v)

    @field_validator("password")
    @classmethod
    def password_valid(cls, v: str) -> str:
        """Ensure password is not blank and fits the hasher's input limit."""
        return _validate_password(v)


class LoginRequest(BaseModel):
    """Login credentials."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)

    @field_validator("email", mode="before")
    @classmethod
    def email_stripped(cls, v):
        """Strip surrounding whitespace before address validation."""
        return _strip_email(v)


class RefreshRequest(BaseModel):
    """Request to exchange a refresh token for a new token pair."""

    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    """Request to revoke a refresh token. Any string is accepted."""

    refresh_token: str = ""


class ForgotPasswordRequest(BaseModel):
    """Request a password reset link for an email address."""

    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def email_stripped(cls, v):
        """Strip surrounding whitespace before address validation."""
        return _strip_email(v)


class ResetPasswordRequest(BaseModel):
    """Complete a password reset with the emailed one-time secret.

    Attributes:
        token: Plaintext secret from the reset link
        new_password: Replacement password (8-72 chars)
    """

    token: str = Field(..., min_length=1, max_length=256)
    new_password: str = Field(..., min_length=8, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_valid(cls, v: str) -> str:
        """Ensure password is not blank and fits the hasher's input limit."""
        return _validate_password(v)


class UserSummary(BaseModel):
    """Compact user representation for API responses."""

    id: UUID
    email: str
    name: Optional[str] = None


class TokenPair(BaseModel):
    """Signed access/refresh tokens plus the refresh token's ``jti``."""

    access_token: str
    refresh_token: str
    refresh_jti: str


class AuthResponse(BaseModel):
    """Response for register and login.

    Attributes:
        message: Human readable result
        user: Summary of the authenticated user
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived JWT for obtaining new token pairs
    """

    message: str
    user: UserSummary
    access_token: str
    refresh_token: str


class RefreshResponse(BaseModel):
    """Response for a successful token rotation."""

    message: str
    access_token: str
    refresh_token: str


class MessageResponse(BaseModel):
    """Response carrying only a message."""

    message: str
