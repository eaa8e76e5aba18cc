"""Models package exports."""

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
from storefront.models.user import User, UserRecord, UserRole

__all__ = [
    "AuthResponse",
    "ChangePasswordRequest",
    "ForgotPasswordRequest",
    "LoginRequest",
    "MessageResponse",
    "ProfileResponse",
    "RegisterRequest",
    "ResetPasswordRequest",
    "UpdateProfileRequest",
    "User",
    "UserRecord",
    "UserRole",
]
