"""User store backed by the ``users`` table."""

from datetime import datetime, timezone
from typing import Optional, Protocol
from uuid import UUID, uuid4

import asyncpg
import structlog

from storefront.database import Database
from storefront.errors import Conflict
from storefront.models.user import UserRecord

logger = structlog.get_logger(__name__)

USER_COLUMNS = """
    id, email, password_hash, first_name, last_name, role, is_active,
    password_reset_token_hash, password_reset_expires_at, created_at, updated_at
"""


class UserStore(Protocol):
    """Data access contract used by the auth service."""

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    async def find_by_id(self, user_id: UUID) -> Optional[UserRecord]:
        ...

    async def create(
        self, first_name: str, last_name: str, email: str, password_hash: str
    ) -> UserRecord:
        """Insert a user. Raise Conflict if the email is taken."""
        ...

    async def save_reset_token(
        self,
        user_id: UUID,
        token_hash: Optional[str],
        expires_at: Optional[datetime],
    ) -> None:
        """Set or clear the reset token hash and expiry together."""
        ...

    async def consume_reset_token(
        self, token_hash: str, password_hash: str, now: datetime
    ) -> Optional[UUID]:
        """Atomically swap in ``password_hash`` and clear the reset pair.

        Applies only while ``token_hash`` is stored and its expiry is after
        ``now``. Returns the user id, or None if no row matched.
        """
        ...

    async def clear_reset_token(self, user_id: UUID, token_hash: str) -> bool:
        """Clear the reset pair if ``token_hash`` is still the stored one."""
        ...

    async def update_password(self, user_id: UUID, password_hash: str) -> None:
        """Store a new hash and clear any outstanding reset token."""
        ...

    async def update_profile(
        self,
        user_id: UUID,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Optional[UserRecord]:
        ...


def _check_reset_pair(token_hash: Optional[str], expires_at: Optional[datetime]) -> None:
    if (token_hash is None) != (expires_at is None):
        raise ValueError("Reset token hash and expiry must be set or cleared together")


def _row_to_record(row) -> UserRecord:
    return UserRecord(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        role=row["role"],
        is_active=row["is_active"],
        password_reset_token_hash=row["password_reset_token_hash"],
        password_reset_expires_at=row["password_reset_expires_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresUserRepository:
    """asyncpg implementation of ``UserStore``."""

    def __init__(self, database: Database):
        self.database = database

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        """Look up a user by exact (case-sensitive) email."""
        async with self.database.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE email = $1",
                email,
            )
        return _row_to_record(row) if row else None

    async def find_by_id(self, user_id: UUID) -> Optional[UserRecord]:
        async with self.database.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )
        return _row_to_record(row) if row else None

    async def create(
        self, first_name: str, last_name: str, email: str, password_hash: str
    ) -> UserRecord:
        """Insert a new user.

        The existence check and the INSERT share one transaction; the UNIQUE
        constraint on ``email`` settles concurrent registrations.

        Raises:
            Conflict: If the email is already registered
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)

        try:
            async with self.database.transaction() as conn:
                exists = await conn.fetchval(
                    "SELECT 1 FROM users WHERE email = $1",
                    email,
                )
                if exists:
                    raise Conflict("Email already registered")

                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (id, email, password_hash, first_name, last_name,
                                       role, is_active, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, 'user', TRUE, $6, $7)
                    RETURNING {USER_COLUMNS}
                    """,
                    user_id,
                    email,
                    password_hash,
                    first_name,
                    last_name,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError:
            logger.warning("user_create_unique_violation", email=email)
            raise Conflict("Email already registered")

        logger.info("user_created", user_id=str(user_id))
        return _row_to_record(row)

    async def save_reset_token(
        self,
        user_id: UUID,
        token_hash: Optional[str],
        expires_at: Optional[datetime],
    ) -> None:
        _check_reset_pair(token_hash, expires_at)

        async with self.database.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE users
                SET password_reset_token_hash = $1,
                    password_reset_expires_at = $2,
                    updated_at = $3
                WHERE id = $4
                """,
                token_hash,
                expires_at,
                datetime.now(timezone.utc),
                user_id,
            )

        logger.info(
            "password_reset_token_saved" if token_hash else "password_reset_token_cleared",
            user_id=str(user_id),
        )

    async def consume_reset_token(
        self, token_hash: str, password_hash: str, now: datetime
    ) -> Optional[UUID]:
        """Set the new password and clear the reset pair in one statement.

        The WHERE clause re-checks the token under the row lock, so of two
        concurrent requests with the same token only one gets a row back.
        """
        async with self.database.pool.acquire() as conn:
            user_id = await conn.fetchval(
                """
                UPDATE users
                SET password_hash = $1,
                    password_reset_token_hash = NULL,
                    password_reset_expires_at = NULL,
                    updated_at = $2
                WHERE password_reset_token_hash = $3
                  AND password_reset_expires_at > $4
                RETURNING id
                """,
                password_hash,
                datetime.now(timezone.utc),
                token_hash,
                now,
            )

        if user_id is not None:
            logger.info("password_reset_token_consumed", user_id=str(user_id))
        return user_id

    async def clear_reset_token(self, user_id: UUID, token_hash: str) -> bool:
        """Clear the reset pair unless a newer request already replaced it."""
        async with self.database.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET password_reset_token_hash = NULL,
                    password_reset_expires_at = NULL,
                    updated_at = $1
                WHERE id = $2
                  AND password_reset_token_hash = $3
                """,
                datetime.now(timezone.utc),
                user_id,
                token_hash,
            )

        cleared = result == "UPDATE 1"
        logger.info(
            "password_reset_token_cleared" if cleared else "password_reset_token_superseded",
            user_id=str(user_id),
        )
        return cleared

    async def update_password(self, user_id: UUID, password_hash: str) -> None:
        async with self.database.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE users
                SET password_hash = $1,
                    password_reset_token_hash = NULL,
                    password_reset_expires_at = NULL,
                    updated_at = $2
                WHERE id = $3
                """,
                password_hash,
                datetime.now(timezone.utc),
                user_id,
            )

        logger.info("user_password_updated", user_id=str(user_id))

    async def update_profile(
        self,
        user_id: UUID,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Optional[UserRecord]:
        """Update profile fields that are not None.

        Returns:
            Updated record, or None if the user does not exist
        """
        set_clauses = []
        params = []
        param_idx = 1

        if first_name is not None:
            set_clauses.append(f"first_name = ${param_idx}")
            params.append(first_name)
            param_idx += 1

        if last_name is not None:
            set_clauses.append(f"last_name = ${param_idx}")
            params.append(last_name)
            param_idx += 1

        if not set_clauses:
            return await self.find_by_id(user_id)

        set_clauses.append(f"updated_at = ${param_idx}")
        params.append(datetime.now(timezone.utc))
        param_idx += 1

        params.append(user_id)

        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${param_idx}
            RETURNING {USER_COLUMNS}
        """

        async with self.database.pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)

        if row is None:
            return None

        logger.info(
            "user_profile_updated",
            user_id=str(user_id),
            fields_updated=[c.split(" = ")[0] for c in set_clauses if "updated_at" not in c],
        )
        return _row_to_record(row)
