"""Signing and verification of stateless access and refresh JWTs."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt
import structlog

from credential_service.models.auth import TokenPair
from credential_service.services.errors import TokenVerificationError

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"


class TokenCodec:
    """Issues and verifies access/refresh token pairs.

    Each token type is signed with its own secret and lifetime. The codec
    holds no state beyond its configuration; persisting the refresh ``jti``
    is the caller's job.
    """

    def __init__(
        self,
        access_secret: str,
        access_ttl: timedelta,
        refresh_secret: str,
        refresh_ttl: timedelta,
    ):
        self.access_secret = access_secret
        self.access_ttl = access_ttl
        self.refresh_secret = refresh_secret
        self.refresh_ttl = refresh_ttl

    def issue_pair(self, user_id: str) -> TokenPair:
        """Sign a fresh access token and a refresh token with a new ``jti``.

        Args:
            user_id: Subject placed in the ``sub`` claim

        Returns:
            TokenPair with both tokens and the refresh token's ``jti``
        """
        now = datetime.now(timezone.utc)
        jti = str(uuid4())

        access_token = jwt.encode(
            {"sub": user_id, "iat": now, "exp": now + self.access_ttl},
            self.access_secret,
            algorithm=JWT_ALGORITHM,
        )
        refresh_token = jwt.encode(
            {"sub": user_id, "jti": jti, "iat": now, "exp": now + self.refresh_ttl},
            self.refresh_secret,
            algorithm=JWT_ALGORITHM,
        )

        logger.debug("token_pair_issued", user_id=user_id, jti=jti)
        return TokenPair(access_token=access_token, refresh_token=refresh_token, refresh_jti=jti)

    def verify(self, token: str, secret: str, required: tuple[str, ...] = ("sub",)) -> dict:
        """Decode a token and check its signature, expiry and required claims.

        Raises:
            TokenVerificationError: If the token is invalid, expired, or malformed
        """
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", *required]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenVerificationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenVerificationError(f"Invalid token: {e}")

        for claim in required:
            if not isinstance(payload.get(claim), str) or not payload[claim]:
                raise TokenVerificationError(f"Invalid token: malformed '{claim}' claim")

        return payload

    def verify_access(self, token: str) -> dict:
        return self.verify(token, self.access_secret)

    def verify_refresh(self, token: str) -> dict:
        return self.verify(token, self.refresh_secret, required=("sub", "jti"))
