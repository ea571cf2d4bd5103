"""FastAPI dependencies resolving the startup container."""

from uuid import UUID

from fastapi import Depends, HTTPException, Request, status

from credential_service.container import Container
from credential_service.services.auth_service import AuthService


def get_container(request: Request) -> Container:
    """Return the dependency container built during application startup."""
    return request.app.state.container


def get_auth_service(container: Container = Depends(get_container)) -> AuthService:
    return container.auth_service


def get_current_user_id(request: Request) -> UUID:
    """Return the access-token subject placed on the request by AuthPolicyMiddleware.

    Raises:
        HTTPException 401: If the route ran without an authenticated subject
    """
    user_id = getattr(request.state, "user_id", None)

    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_id
