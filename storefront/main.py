"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api.auth import router as auth_router
from storefront.api.errors import register_exception_handlers
from storefront.api.health import router as health_router
from storefront.api.middleware import CorrelationIdMiddleware
from storefront.bootstrap import build_auth_service
from storefront.config import Settings, get_settings
from storefront.database import Database
from storefront.repositories.user_repository import PostgresUserRepository, UserStore
from storefront.services.email_service import EmailService, Mailer
from storefront.services.logging_service import configure_logging, get_logger
from storefront.services.token_service import Clock, utc_now


def create_app(
    settings: Optional[Settings] = None,
    *,
    users: Optional[UserStore] = None,
    mailer: Optional[Mailer] = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """Build the API application.

    When ``users`` is supplied the Postgres pool is not opened, which lets
    tests run the full HTTP surface against an in-memory store.
    """
    settings = settings or get_settings()
    database = Database(
        settings.postgres_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    manage_database = users is None
    if users is None:
        users = PostgresUserRepository(database)
    if mailer is None:
        mailer = EmailService(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        configure_logging(settings.log_level, json_logs=settings.log_json, service="auth-api")
        logger = get_logger("main")

        if manage_database:
            try:
                await database.connect()
                await database.run_migrations()
                logger.info("database_initialized")
            except Exception as e:
                logger.warning(
                    "database_initialization_failed",
                    error=str(e),
                    note="Continuing without database - auth endpoints will fail until it is reachable",
                )

        logger.info(
            "application_started",
            api_prefix=settings.api_prefix,
            debug=settings.debug,
        )

        yield

        await database.close()
        logger.info("application_shutdown")

    app = FastAPI(
        title="Pet Food Delivery - Auth API",
        description="Customer registration, login and password lifecycle",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.auth_service = build_auth_service(settings, users, mailer, clock)

    register_exception_handlers(app, debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware for request tracking and observability
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(health_router, prefix=settings.api_prefix)

    return app


app = create_app()
