"""Auth request and response models with validation."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from storefront.models.user import User

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 72


class CamelModel(BaseModel):
    """Accepts camelCase or snake_case input and serializes as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _password_not_blank(v: str) -> str:
    if not v.strip():
        raise ValueError("Password cannot be empty or whitespace only")
    return v


class RegisterRequest(CamelModel):
    """Registration details for a new customer account.

    Attributes:
        first_name: Given name (2-100 chars)
        last_name: Family name (2-100 chars)
        email: Login email, unique across users
        password: Plain-text password (6-72 chars)
    """

    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH
    )

    @field_validator("first_name", "last_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        """Trim names and reject whitespace-only values."""
        stripped = v.strip()
        if len(stripped) < 2:
            raise ValueError("Name must contain at least 2 non-space characters")
        return stripped

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        return _password_not_blank(v)


class LoginRequest(CamelModel):
    """Login credentials."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=1024)


class ForgotPasswordRequest(CamelModel):
    """Request a password reset link by email."""

    email: EmailStr


class ResetPasswordRequest(CamelModel):
    """Exchange a reset token for a new password."""

    reset_token: str = Field(..., min_length=1, max_length=512)
    new_password: str = Field(
        ..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH
    )

    @field_validator("new_password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        return _password_not_blank(v)


class ChangePasswordRequest(CamelModel):
    """Change the password of the authenticated user."""

    current_password: str = Field(..., min_length=1, max_length=1024)
    new_password: str = Field(
        ..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH
    )

    @field_validator("new_password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        return _password_not_blank(v)


class UpdateProfileRequest(CamelModel):
    """Partial profile update. Only provided fields change."""

    first_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=2, max_length=100)


class AuthResponse(CamelModel):
    """Successful login or registration.

    Attributes:
        access_token: Signed bearer token
        token_type: Always "bearer"
        expires_in: Token lifetime in seconds
        user: Public profile of the authenticated user
    """

    status: str = "success"
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(ge=1, description="Access token lifetime in seconds")
    user: User


class ProfileResponse(CamelModel):
    """Profile of the authenticated user."""

    status: str = "success"
    data: User


class MessageResponse(CamelModel):
    """Generic success message."""

    status: str = "success"
    message: str
