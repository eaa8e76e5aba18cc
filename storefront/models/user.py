"""User models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserRole(str, Enum):
    """Role stored on a user. Not enforced by any route."""

    USER = "user"
    ADMIN = "admin"


class User(BaseModel):
    """Public profile of a registered customer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole = UserRole.USER
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class UserRecord(User):
    """A stored user row, including credential fields.

    Never returned from the API; convert with ``to_public()`` first.
    """

    password_hash: str
    password_reset_token_hash: Optional[str] = None
    password_reset_expires_at: Optional[datetime] = None

    def to_public(self) -> User:
        """Strip credential fields."""
        return User.model_validate(self.model_dump(include=set(User.model_fields)))

    @property
    def has_outstanding_reset(self) -> bool:
        return self.password_reset_token_hash is not None
