"""Middleware for request tracking and route access policy."""

from enum import Enum
from uuid import UUID, uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from credential_service.services.errors import TokenVerificationError

logger = structlog.get_logger(__name__)


class RoutePolicy(str, Enum):
    """Whether a route needs a valid access token."""

    PUBLIC = "public"
    PROTECTED = "protected"


# Routes not listed here are protected
ROUTE_POLICIES: dict[tuple[str, str], RoutePolicy] = {
    ("POST", "/auth/register"): RoutePolicy.PUBLIC,
    ("POST", "/auth/login"): RoutePolicy.PUBLIC,
    ("POST", "/auth/refresh"): RoutePolicy.PUBLIC,
    ("POST", "/auth/logout"): RoutePolicy.PUBLIC,
    ("POST", "/auth/forgot-password"): RoutePolicy.PUBLIC,
    ("POST", "/auth/reset-password"): RoutePolicy.PUBLIC,
    ("GET", "/auth/me"): RoutePolicy.PROTECTED,
    ("GET", "/health"): RoutePolicy.PUBLIC,
    ("GET", "/docs"): RoutePolicy.PUBLIC,
    ("GET", "/docs/oauth2-redirect"): RoutePolicy.PUBLIC,
    ("GET", "/redoc"): RoutePolicy.PUBLIC,
    ("GET", "/openapi.json"): RoutePolicy.PUBLIC,
}


def resolve_policy(method: str, path: str) -> RoutePolicy:
    """Look up the access policy for a request, defaulting to protected."""
    if method.upper() == "OPTIONS":
        return RoutePolicy.PUBLIC
    normalized = path.rstrip("/") or "/"
    return ROUTE_POLICIES.get((method.upper(), normalized), RoutePolicy.PROTECTED)


def _unauthorized() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": "Invalid or expired token"},
        headers={"WWW-Authenticate": "Bearer"},
    )


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation ID to every request.

    - Generates UUID4 per request (or uses X-Correlation-Id header if present)
    - Stores in request.state.correlation_id
    - Binds to structlog context for all subsequent logging
    - Adds X-Correlation-Id response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get("X-Correlation-Id", str(uuid4()))

        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        response = await call_next(request)

        response.headers["X-Correlation-Id"] = correlation_id

        return response


class AuthPolicyMiddleware(BaseHTTPMiddleware):
    """Enforce ROUTE_POLICIES before the request reaches its handler.

    Protected routes need ``Authorization: Bearer <access token>``. The token
    subject is stored in ``request.state.user_id``.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if resolve_policy(request.method, request.url.path) is RoutePolicy.PUBLIC:
            return await call_next(request)

        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        token = token.strip()

        if scheme.lower() != "bearer" or not token:
            logger.info("access_denied", path=request.url.path, reason="missing_bearer_token")
            return _unauthorized()

        codec = request.app.state.container.codec
        try:
            payload = codec.verify_access(token)
            user_id = UUID(payload["sub"])
        except (TokenVerificationError, ValueError) as e:
            logger.info("access_denied", path=request.url.path, reason=str(e))
            return _unauthorized()

        request.state.user_id = user_id
        structlog.contextvars.bind_contextvars(user_id=str(user_id))

        return await call_next(request)
