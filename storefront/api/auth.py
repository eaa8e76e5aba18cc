"""Authentication API endpoints."""

import structlog
from fastapi import APIRouter, Depends, status

from storefront.api.dependencies import get_auth_service, get_current_user
from storefront.models.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
)
from storefront.models.user import User
from storefront.services.auth_service import AuthResult, AuthService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        access_token=result.access_token,
        expires_in=result.expires_in,
        user=result.user,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create a customer account.

    Returns:
        AuthResponse with a bearer token and the new user's profile

    Raises:
        Conflict (409): Email already registered
    """
    result = await auth_service.register(
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        password=request.password,
    )
    return _auth_response(result)


@router.post("/login")
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Login with email and password.

    Raises:
        InvalidCredentials (401): Unknown email or wrong password
        Forbidden (403): Account deactivated
    """
    result = await auth_service.login(request.email, request.password)
    return _auth_response(result)


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)) -> ProfileResponse:
    """Profile of the user the bearer token was issued for."""
    return ProfileResponse(data=current_user)


@router.patch("/me")
async def update_me(
    request: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> ProfileResponse:
    """Update the current user's display name fields."""
    user = await auth_service.update_profile(
        current_user.id,
        first_name=request.first_name,
        last_name=request.last_name,
    )
    return ProfileResponse(data=user)


@router.post("/forgot-password")
async def forgot_password(
    request: ForgotPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Email a password reset link.

    The response is identical whether or not the email is registered.

    Raises:
        Internal (500): The reset email could not be sent
    """
    message = await auth_service.forgot_password(request.email)
    return MessageResponse(message=message)


@router.post("/reset-password")
async def reset_password(
    request: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Set a new password using an emailed reset token.

    Raises:
        InvalidOrExpired (400): Token unknown, used, or expired
    """
    await auth_service.reset_password(request.reset_token, request.new_password)
    return MessageResponse(message="Password has been reset successfully")


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Change the current user's password.

    Raises:
        Unauthorized (401): Current password is incorrect
    """
    await auth_service.change_password(
        current_user.id, request.current_password, request.new_password
    )
    return MessageResponse(message="Password changed successfully")
