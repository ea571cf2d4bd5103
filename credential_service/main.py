"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from credential_service.api.auth import router as auth_router
from credential_service.api.middleware import AuthPolicyMiddleware, CorrelationIdMiddleware
from credential_service.api.routes import router
from credential_service.config import get_settings
from credential_service.container import build_container, close_container
from credential_service.services.errors import NotificationDeliveryError
from credential_service.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the dependency container on startup and release it on shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    container = await build_container(settings)
    app.state.container = container

    logger.info(
        "application_started",
        log_level=settings.log_level,
        access_token_minutes=settings.jwt_access_expire_minutes,
        refresh_token_days=settings.jwt_refresh_expire_days,
    )

    yield

    await close_container(container)
    logger.info("application_shutdown")


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with a 400 and the first failing field."""
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning(
        "validation_error",
        correlation_id=correlation_id,
        detail=detail,
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "detail": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


async def notification_exception_handler(
    request: Request, exc: NotificationDeliveryError
) -> JSONResponse:
    """A message the user depends on (the reset link) could not be sent."""
    correlation_id = _correlation_id(request)
    structlog.get_logger().error(
        "notification_delivery_failed",
        correlation_id=correlation_id,
        error=str(exc),
    )

    return JSONResponse(
        status_code=503,
        content={
            "error": "Service unavailable",
            "detail": "Unable to send email. Please try again later.",
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


def create_app() -> FastAPI:
    """Create the FastAPI application with middleware and routes."""
    settings = get_settings()

    app = FastAPI(
        title="Credential Service",
        description="Session token issuance, rotation and password recovery",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(NotificationDeliveryError, notification_exception_handler)

    # Added first so it runs innermost, after correlation IDs are bound
    app.add_middleware(AuthPolicyMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(router)

    return app


app = create_app()
