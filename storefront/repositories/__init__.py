"""Persistence adapters."""

from storefront.repositories.user_repository import PostgresUserRepository, UserStore

__all__ = ["PostgresUserRepository", "UserStore"]
