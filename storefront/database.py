"""Database connection and migration management."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import asyncpg
import structlog

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"


class Database:
    """Owns the asyncpg connection pool.

    Constructed once at application startup and handed to the stores that
    need it; there is no module-level pool.
    """

    def __init__(
        self,
        dsn: str,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 60,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def pool(self) -> asyncpg.Pool:
        """The live pool.

        Raises:
            RuntimeError: If ``connect()`` has not been awaited
        """
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> asyncpg.Pool:
        """Create the connection pool if it does not exist yet."""
        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
            )
        except Exception as e:
            logger.error("database_pool_creation_failed", error=str(e))
            raise

        logger.info(
            "database_pool_created",
            min_size=self.min_size,
            max_size=self.max_size,
        )
        return self._pool

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("database_pool_closed")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection and run the block in one transaction."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def run_migrations(self, migrations_dir: Path = MIGRATIONS_DIR) -> None:
        """Run all SQL migrations in filename order.

        Migrations are idempotent (IF NOT EXISTS) and can be re-run safely.
        """
        if not migrations_dir.exists():
            logger.warning("migrations_directory_not_found", path=str(migrations_dir))
            return

        migration_files = sorted(migrations_dir.glob("*.sql"))
        if not migration_files:
            logger.info("no_migrations_found")
            return

        async with self.pool.acquire() as conn:
            for migration_file in migration_files:
                try:
                    await conn.execute(migration_file.read_text())
                    logger.info("migration_applied", file=migration_file.name)
                except Exception as e:
                    logger.error(
                        "migration_failed",
                        file=migration_file.name,
                        error=str(e),
                    )
                    raise

    async def health_check(self) -> bool:
        """Check database connectivity.

        Returns:
            True if database is healthy, False otherwise
        """
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            return False
