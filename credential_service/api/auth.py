"""Authentication API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status

from credential_service.api.dependencies import get_auth_service, get_current_user_id
from credential_service.api.errors import unwrap
from credential_service.models.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserSummary,
)
from credential_service.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an account and return a token pair.

    Raises:
        HTTPException 409: If the email is already registered
    """
    outcome = await auth_service.register(request.email, request.password, request.name)
    return unwrap(outcome)


@router.post("/login")
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Login with email and password.

    Raises:
        HTTPException 401: If the credentials are invalid
    """
    outcome = await auth_service.login(request.email, request.password)
    return unwrap(outcome)


@router.post("/refresh")
async def refresh(
    request: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> RefreshResponse:
    """Exchange a refresh token for a new pair.

    The presented refresh token is revoked and cannot be used again.

    Raises:
        HTTPException 401: If the refresh token is invalid, expired, or revoked
    """
    outcome = await auth_service.refresh(request.refresh_token)
    return unwrap(outcome)


@router.post("/logout")
async def logout(
    request: Optional[LogoutRequest] = None,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Revoke a refresh token. Always succeeds, even without a body."""
    outcome = await auth_service.logout(request.refresh_token if request else "")
    return unwrap(outcome)


@router.post("/forgot-password")
async def forgot_password(
    request: ForgotPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Email a password reset link if the account exists.

    The response does not reveal whether the email is registered.
    """
    outcome = await auth_service.request_password_reset(request.email)
    return unwrap(outcome)


@router.post("/reset-password")
async def reset_password(
    request: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Set a new password with a reset token and sign out all sessions.

    Raises:
        HTTPException 400: If the reset token is invalid, expired, or used
    """
    outcome = await auth_service.complete_password_reset(request.token, request.new_password)
    return unwrap(outcome)


@router.get("/me")
async def get_me(
    user_id: UUID = Depends(get_current_user_id),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserSummary:
    """Get the user the access token was issued to.

    Raises:
        HTTPException 404: If the user no longer exists
    """
    outcome = await auth_service.get_current_user(user_id)
    return unwrap(outcome)
