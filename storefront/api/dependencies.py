"""FastAPI dependencies for services and authentication."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storefront.errors import Unauthorized
from storefront.models.user import User
from storefront.services.auth_service import AuthService

# auto_error=False so a missing header goes through our own 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    """The AuthService built at startup and stored on app.state."""
    return request.app.state.auth_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Extract and validate the current user from a Bearer token.

    Raises:
        Unauthorized: Missing, invalid or expired token, or unknown user
        Forbidden: Deactivated account
    """
    if credentials is None:
        raise Unauthorized("Authentication required")

    return await auth_service.authenticate_token(credentials.credentials)
