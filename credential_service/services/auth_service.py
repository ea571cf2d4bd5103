"""Credential lifecycle: registration, login, refresh rotation, logout and password reset.

Every operation returns an AuthOutcome. Authentication failures are collapsed
into a small set of generic messages so callers cannot tell an unknown email
from a wrong password, or a revoked refresh token from an expired one.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID

import structlog

from credential_service.models.auth import (
    AuthResponse,
    MessageResponse,
    RefreshResponse,
    TokenPair,
    UserSummary,
)
from credential_service.models.outcome import AuthErrorKind, AuthOutcome
from credential_service.models.user import User
from credential_service.services.credential_store import CredentialStore, normalize_email
from credential_service.services.errors import (
    DuplicateEmailError,
    NotificationDeliveryError,
    TokenVerificationError,
)
from credential_service.services.logging_service import mask_email
from credential_service.services.notifier import Notifier
from credential_service.services.password_hasher import PasswordHasher
from credential_service.services.token_codec import TokenCodec

logger = structlog.get_logger(__name__)

# Constants
RESET_TOKEN_EXPIRE_MINUTES = 15
REFRESH_TOKEN_STORE_DAYS = 7
BULK_REVOKE_ATTEMPTS = 3

REGISTER_MESSAGE = "Registration successful! Welcome to our platform."
LOGIN_MESSAGE = "Login successful!"
REFRESH_MESSAGE = "Token refreshed successfully"
LOGOUT_MESSAGE = "Logout successful"
RESET_REQUESTED_MESSAGE = "If an account with that email exists, a password reset link has been sent."
RESET_COMPLETED_MESSAGE = "Password reset successful. Please login with your new password."

EMAIL_TAKEN = "User with this email already exists"
INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
USER_NOT_FOUND = "User not found"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _user_summary(user: User) -> UserSummary:
    """Convert a User model to a UserSummary response."""
    return UserSummary(id=user.id, email=user.email, name=user.name)


class AuthService:
    """Orchestrates the token codec, password hasher, credential store and notifier.

    The service keeps no state between calls; everything durable lives in the
    store. It is built once at startup and shared by all requests.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        codec: TokenCodec,
        notifier: Notifier,
        refresh_token_store_ttl: timedelta = timedelta(days=REFRESH_TOKEN_STORE_DAYS),
        reset_token_ttl: timedelta = timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.hasher = hasher
        self.codec = codec
        self.notifier = notifier
        self.refresh_token_store_ttl = refresh_token_store_ttl
        self.reset_token_ttl = reset_token_ttl
        self.clock = clock
        # Compared against when the email is unknown so both login branches pay for a bcrypt check
        self._dummy_hash = hasher.hash_sync(secrets.token_urlsafe(16))

    async def _issue_tokens(self, user_id: UUID) -> TokenPair:
        """Sign a token pair and persist the refresh token's record."""
        pair = self.codec.issue_pair(str(user_id))
        await self.store.create_refresh_token(
            pair.refresh_jti,
            user_id,
            self.clock() + self.refresh_token_store_ttl,
        )
        return pair

    async def register(
        self, email: str, password: str, name: Optional[str] = None
    ) -> AuthOutcome[AuthResponse]:
        """Create an account and sign the user in.

        Args:
            email: Unique email address
            password: Plain-text password (will be hashed)
            name: Optional display name

        Returns:
            AuthResponse with the user summary and a token pair, or a
            ``conflict`` error if the email is already registered
        """
        email = normalize_email(email)

        if await self.store.find_user_by_email(email) is not None:
            logger.info("registration_conflict", email=mask_email(email))
            return AuthOutcome.failure(AuthErrorKind.CONFLICT, EMAIL_TAKEN)

        password_hash = await self.hasher.hash(password)

        try:
            user = await self.store.create_user(email, password_hash, name)
        except DuplicateEmailError:
            logger.info("registration_conflict", email=mask_email(email), race=True)
            return AuthOutcome.failure(AuthErrorKind.CONFLICT, EMAIL_TAKEN)

        tokens = await self._issue_tokens(user.id)

        try:
            await self.notifier.send_welcome(user.email, user.name)
        except NotificationDeliveryError as e:
            # Registration never fails because of the welcome email
            logger.warning("welcome_email_failed", user_id=str(user.id), error=str(e))

        logger.info("user_registered", user_id=str(user.id))
        return AuthOutcome.success(
            AuthResponse(
                message=REGISTER_MESSAGE,
                user=_user_summary(user),
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
            )
        )

    async def login(self, email: str, password: str) -> AuthOutcome[AuthResponse]:
        """Verify credentials and issue a fresh token pair.

        Unknown emails and wrong passwords produce the same ``unauthorized``
        error.
        """
        found = await self.store.find_user_by_email(email)

        if found is None:
            await self.hasher.verify(password, self._dummy_hash)
            logger.info("login_failed", email=mask_email(email))
            return AuthOutcome.failure(AuthErrorKind.UNAUTHORIZED, INVALID_CREDENTIALS)

        user, password_hash = found

        if not await self.hasher.verify(password, password_hash):
            logger.info("login_failed", email=mask_email(email))
            return AuthOutcome.failure(AuthErrorKind.UNAUTHORIZED, INVALID_CREDENTIALS)

        tokens = await self._issue_tokens(user.id)

        logger.info("user_logged_in", user_id=str(user.id))
        return AuthOutcome.success(
            AuthResponse(
                message=LOGIN_MESSAGE,
                user=_user_summary(user),
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
            )
        )

    async def refresh(self, refresh_token: str) -> AuthOutcome[RefreshResponse]:
        """Rotate a refresh token: retire the presented one and issue a new pair.

        A refresh token works exactly once. Presenting it again after rotation
        or logout fails even if its own ``exp`` has not passed. The retirement
        is a conditional update, so of two concurrent calls with the same
        token only one can win.
        """
        unauthorized = AuthOutcome.failure(AuthErrorKind.UNAUTHORIZED, INVALID_REFRESH_TOKEN)

        try:
            payload = self.codec.verify_refresh(refresh_token)
            user_id = UUID(payload["sub"])
            stored = await self.store.find_refresh_token_by_jti(payload["jti"])
        except TokenVerificationError as e:
            logger.info("refresh_token_rejected", reason=str(e))
            return unauthorized
        except Exception as e:
            logger.warning("refresh_token_verification_error", error_type=type(e).__name__)
            return unauthorized

        if stored is None:
            logger.warning("refresh_token_not_found", user_id=str(user_id))
            return unauthorized

        if stored.is_revoked:
            logger.warning("refresh_token_reuse_detected", user_id=str(user_id), jti=stored.jti)
            return unauthorized

        if stored.expires_at < self.clock():
            logger.info("refresh_token_expired", user_id=str(user_id), jti=stored.jti)
            return unauthorized

        if stored.user_id != user_id:
            logger.warning("refresh_token_subject_mismatch", jti=stored.jti)
            return unauthorized

        if not await self.store.revoke_refresh_token(stored.id):
            logger.warning("refresh_token_rotation_lost", user_id=str(user_id), jti=stored.jti)
            return unauthorized

        tokens = await self._issue_tokens(stored.user_id)

        logger.info(
            "refresh_token_rotated",
            user_id=str(stored.user_id),
            old_jti=stored.jti,
            new_jti=tokens.refresh_jti,
        )
        return AuthOutcome.success(
            RefreshResponse(
                message=REFRESH_MESSAGE,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
            )
        )

    async def logout(self, refresh_token: str) -> AuthOutcome[MessageResponse]:
        """Revoke a refresh token. Always reports success.

        The revocation is best effort: invalid, expired or already revoked
        tokens, and store errors, are logged and otherwise ignored.
        """
        try:
            payload = self.codec.verify_refresh(refresh_token)
            stored = await self.store.find_refresh_token_by_jti(payload["jti"])
            if stored is not None and not stored.is_revoked:
                await self.store.revoke_refresh_token(stored.id)
                logger.info("user_logged_out", user_id=str(stored.user_id), jti=stored.jti)
        except TokenVerificationError as e:
            logger.info("logout_with_invalid_token", reason=str(e))
        except Exception as e:
            logger.warning("logout_revoke_failed", error_type=type(e).__name__, error=str(e))

        return AuthOutcome.success(MessageResponse(message=LOGOUT_MESSAGE))

    async def request_password_reset(self, email: str) -> AuthOutcome[MessageResponse]:
        """Create a one-time reset secret and email it to the account owner.

        The response is the same whether or not the email is registered.

        Raises:
            NotificationDeliveryError: If the reset email cannot be sent. The
                user has no other way to learn the secret, so this is fatal.
        """
        found = await self.store.find_user_by_email(email)

        if found is None:
            # Same bcrypt work as the found branch
            await self.hasher.hash(secrets.token_urlsafe(32))
            logger.info("password_reset_requested", email=mask_email(email), account_found=False)
            return AuthOutcome.success(MessageResponse(message=RESET_REQUESTED_MESSAGE))

        user, _ = found
        raw_secret = secrets.token_urlsafe(32)
        token_hash = await self.hasher.hash(raw_secret)

        record = await self.store.create_password_reset_token(
            user.id,
            token_hash,
            self.clock() + self.reset_token_ttl,
        )

        await self.notifier.send_password_reset(user.email, raw_secret)

        logger.info(
            "password_reset_requested",
            user_id=str(user.id),
            reset_token_id=str(record.id),
            account_found=True,
        )
        return AuthOutcome.success(MessageResponse(message=RESET_REQUESTED_MESSAGE))

    async def complete_password_reset(
        self, token: str, new_password: str
    ) -> AuthOutcome[MessageResponse]:
        """Set a new password using an emailed reset secret.

        The secret is only stored as a bcrypt hash, so it cannot be looked up
        directly: each active reset record is checked with the hasher until
        one matches. On success every refresh token of the user is revoked.
        """
        now = self.clock()
        candidates = await self.store.find_active_password_reset_tokens(now)

        matched = None
        for candidate in candidates:
            if candidate.is_used or candidate.expires_at < now:
                continue
            if await self.hasher.verify(token, candidate.token_hash):
                matched = candidate
                break

        if matched is None:
            logger.info("password_reset_rejected", candidates=len(candidates))
            return AuthOutcome.failure(AuthErrorKind.BAD_REQUEST, INVALID_RESET_TOKEN)

        password_hash = await self.hasher.hash(new_password)

        # Store errors propagate with the token left unused
        consumed = await self.store.consume_password_reset_token(
            matched.id, matched.user_id, password_hash
        )
        if not consumed:
            logger.warning("password_reset_token_already_used", reset_token_id=str(matched.id))
            return AuthOutcome.failure(AuthErrorKind.BAD_REQUEST, INVALID_RESET_TOKEN)

        await self._revoke_all_sessions(matched.user_id)

        logger.info(
            "password_reset_completed",
            user_id=str(matched.user_id),
            reset_token_id=str(matched.id),
        )
        return AuthOutcome.success(MessageResponse(message=RESET_COMPLETED_MESSAGE))

    async def _revoke_all_sessions(self, user_id: UUID) -> bool:
        """Revoke every refresh token of a user, retrying on store errors.

        Returns:
            True once the bulk revoke succeeded, False if every attempt failed
        """
        for attempt in range(1, BULK_REVOKE_ATTEMPTS + 1):
            try:
                count = await self.store.revoke_all_refresh_tokens_for_user(user_id)
            except Exception as e:
                logger.warning(
                    "refresh_token_bulk_revoke_retry",
                    user_id=str(user_id),
                    attempt=attempt,
                    error=str(e),
                )
                continue

            logger.info("refresh_tokens_revoked_for_user", user_id=str(user_id), count=count)
            return True

        logger.error(
            "refresh_token_bulk_revoke_failed",
            user_id=str(user_id),
            attempts=BULK_REVOKE_ATTEMPTS,
        )
        return False

    async def get_current_user(self, user_id: UUID) -> AuthOutcome[UserSummary]:
        """Return the summary of the user an access token was issued to."""
        user = await self.store.find_user_by_id(user_id)

        if user is None:
            return AuthOutcome.failure(AuthErrorKind.NOT_FOUND, USER_NOT_FOUND)

        return AuthOutcome.success(_user_summary(user))
