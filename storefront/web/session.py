"""Session gate for the server-rendered web client.

Every request carries (or not) a bearer token in the session cookie. The
gate sends anonymous visitors of protected pages to the login page, and
signed-in users away from login/registration pages.
"""

from enum import Enum
from typing import Iterable, Optional
from urllib.parse import quote

import structlog
from starlette import status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from storefront.errors import Unauthorized
from storefront.services.token_service import TokenService

logger = structlog.get_logger(__name__)

PUBLIC_PATHS = (
    "/",
    "/login",
    "/register",
    "/forgot-password",
    "/reset-password",
    "/logout",
    "/api/auth",
    "/products",
    "/api/products",
    "/categories",
    "/api/categories",
    "/static",
)

AUTH_ONLY_PATHS = (
    "/login",
    "/register",
    "/forgot-password",
    "/reset-password",
)

LOGIN_PATH = "/login"
HOME_PATH = "/"

# Methods a 307 redirect may safely replay
REPLAYABLE_METHODS = ("GET", "HEAD")


class GateDecision(str, Enum):
    ALLOW = "allow"
    REDIRECT_HOME = "redirect_home"
    REDIRECT_LOGIN = "redirect_login"


def _matches(path: str, prefixes: Iterable[str]) -> bool:
    for prefix in prefixes:
        if path == prefix:
            return True
        # "/" is public only as the exact root
        if prefix != "/" and path.startswith(prefix + "/"):
            return True
    return False


def is_public_path(path: str) -> bool:
    """True if ``path`` is reachable without a session."""
    return _matches(path, PUBLIC_PATHS)


def is_auth_only_path(path: str) -> bool:
    """True if ``path`` is only meant for signed-out visitors."""
    return _matches(path, AUTH_ONLY_PATHS)


def decide(path: str, authenticated: bool) -> GateDecision:
    if authenticated and is_auth_only_path(path):
        return GateDecision.REDIRECT_HOME
    if not authenticated and not is_public_path(path):
        return GateDecision.REDIRECT_LOGIN
    return GateDecision.ALLOW


def safe_callback_url(url: Optional[str]) -> str:
    """Accept only same-site relative paths as post-login destinations."""
    if not url or not url.startswith("/") or url.startswith("//") or "\\" in url:
        return HOME_PATH
    return url


def login_redirect_url(request: Request) -> str:
    """Login page URL carrying the originally requested path as callbackUrl."""
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return f"{LOGIN_PATH}?callbackUrl={quote(target, safe='')}"


def redirect_status(method: str) -> int:
    """307 for reads, 303 otherwise so the browser follows up with a GET."""
    if method in REPLAYABLE_METHODS:
        return status.HTTP_307_TEMPORARY_REDIRECT
    return status.HTTP_303_SEE_OTHER


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Verify the session cookie and redirect according to ``decide``.

    Sets ``request.state.user_id`` and ``request.state.access_token``
    (both None for anonymous visitors).
    """

    def __init__(self, app: ASGIApp, tokens: TokenService, cookie_name: str):
        super().__init__(app)
        self.tokens = tokens
        self.cookie_name = cookie_name

    def _verified_subject(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            return self.tokens.verify(token).subject
        except Unauthorized as e:
            logger.debug("session_token_rejected", code=e.code)
            return None

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        token = request.cookies.get(self.cookie_name)
        user_id = self._verified_subject(token)

        request.state.user_id = user_id
        request.state.access_token = token if user_id else None

        decision = decide(path, authenticated=user_id is not None)
        redirect_code = redirect_status(request.method)

        if decision is GateDecision.REDIRECT_HOME:
            logger.info("session_redirect_home", path=path)
            return RedirectResponse(HOME_PATH, status_code=redirect_code)

        if decision is GateDecision.REDIRECT_LOGIN:
            logger.info("session_redirect_login", path=path)
            response = RedirectResponse(
                login_redirect_url(request), status_code=redirect_code
            )
            if token:
                # Stale or tampered cookie
                response.delete_cookie(self.cookie_name)
            return response

        return await call_next(request)
