"""API package exports."""

from storefront.api.auth import router as auth_router
from storefront.api.health import router as health_router
from storefront.api.middleware import CorrelationIdMiddleware

__all__ = ["auth_router", "health_router", "CorrelationIdMiddleware"]
