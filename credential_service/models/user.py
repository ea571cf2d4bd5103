"""User and credential record models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class User(BaseModel):
    """A registered account. The password hash is kept out of this model."""

    id: UUID
    email: str
    name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class RefreshToken(BaseModel):
    """Persisted refresh-token grant, correlated to a JWT by its ``jti``."""

    id: UUID
    jti: str
    user_id: UUID
    expires_at: datetime
    is_revoked: bool = False
    created_at: datetime


class PasswordResetToken(BaseModel):
    """One-time password recovery grant. Only the bcrypt hash of the secret is stored."""

    id: UUID
    user_id: UUID
    token_hash: str
    expires_at: datetime
    is_used: bool = False
    created_at: datetime
