"""Server-rendered web client.

Holds the bearer token issued by the auth API in an HttpOnly session
cookie and replays it when talking to the API on the user's behalf.
"""

from contextlib import asynccontextmanager
from html import escape
from typing import Optional
from urllib.parse import urlencode

import httpx
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from storefront.api.errors import register_exception_handlers
from storefront.api.middleware import CorrelationIdMiddleware
from storefront.bootstrap import build_token_service
from storefront.config import Settings, get_settings
from storefront.services.auth_service import FORGOT_PASSWORD_MESSAGE
from storefront.services.logging_service import configure_logging, get_logger
from storefront.services.token_service import Clock, utc_now
from storefront.web.api_client import ApiError, StorefrontApiClient
from storefront.web.session import HOME_PATH, SessionGateMiddleware, safe_callback_url

logger = get_logger("web")

PRODUCT_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

PASSWORD_RESET_NOTICE = "Your password has been reset. Sign in with your new password."


def _page(title: str, body: str) -> HTMLResponse:
    html = f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>{escape(title)} - Pet Food Delivery</title>
    </head>
    <body>
        <header><a href="/">Pet Food Delivery</a> | <a href="/products">Products</a></header>
        <main>
            {body}
        </main>
    </body>
    </html>
    """
    return HTMLResponse(content=html)


def _alert(error: Optional[str]) -> str:
    return f'<p class="error" role="alert">{escape(error)}</p>' if error else ""


def _see_other(path: str, **params: Optional[str]) -> RedirectResponse:
    """303 back to a form page, dropping empty query parameters."""
    query = urlencode({k: v for k, v in params.items() if v})
    url = f"{path}?{query}" if query else path
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def _login_form(callback_url: str, error: Optional[str], notice: Optional[str] = None) -> str:
    notice_html = f'<p class="notice" role="status">{escape(notice)}</p>' if notice else ""
    return f"""
    <h1>Sign in</h1>
    {notice_html}
    {_alert(error)}
    <form method="post" action="/login">
        <input type="hidden" name="callbackUrl" value="{escape(callback_url)}">
        <label>Email <input type="email" name="email" required></label>
        <label>Password <input type="password" name="password" required></label>
        <button type="submit">Sign in</button>
    </form>
    <p><a href="/register">Create an account</a> | <a href="/forgot-password">Forgot password?</a></p>
    """


def _register_form(callback_url: str, error: Optional[str]) -> str:
    return f"""
    <h1>Create an account</h1>
    {_alert(error)}
    <form method="post" action="/register">
        <input type="hidden" name="callbackUrl" value="{escape(callback_url)}">
        <label>First name <input type="text" name="firstName" required></label>
        <label>Last name <input type="text" name="lastName" required></label>
        <label>Email <input type="email" name="email" required></label>
        <label>Password <input type="password" name="password" required></label>
        <label>Confirm password <input type="password" name="confirmPassword" required></label>
        <button type="submit">Create account</button>
    </form>
    <p>Already have an account? <a href="/login">Sign in</a></p>
    """


def _forgot_password_form(sent: bool, error: Optional[str]) -> str:
    if sent:
        return f"""
        <h1>Check your email</h1>
        <p class="notice" role="status">{escape(FORGOT_PASSWORD_MESSAGE)}</p>
        <p><a href="/login">Back to sign in</a></p>
        """
    return f"""
    <h1>Forgot your password?</h1>
    {_alert(error)}
    <form method="post" action="/forgot-password">
        <label>Email <input type="email" name="email" required></label>
        <button type="submit">Send reset link</button>
    </form>
    <p><a href="/login">Back to sign in</a></p>
    """


def _reset_password_form(token: Optional[str], error: Optional[str]) -> str:
    if not token:
        return """
        <h1>Reset your password</h1>
        <p class="error" role="alert">This reset link is incomplete.</p>
        <p><a href="/forgot-password">Request a new link</a></p>
        """
    return f"""
    <h1>Reset your password</h1>
    {_alert(error)}
    <form method="post" action="/reset-password">
        <input type="hidden" name="token" value="{escape(token)}">
        <label>New password <input type="password" name="newPassword" required></label>
        <label>Confirm password <input type="password" name="confirmPassword" required></label>
        <button type="submit">Reset password</button>
    </form>
    """


def create_web_app(
    settings: Optional[Settings] = None,
    *,
    api_client: Optional[StorefrontApiClient] = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """Build the web client application."""
    settings = settings or get_settings()
    if api_client is None:
        api_client = StorefrontApiClient(
            settings.api_base_url, settings.product_service_url
        )
    cookie_name = settings.session_cookie_name

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, json_logs=settings.log_json, service="web-client")
        logger.info("web_client_started")
        yield
        await api_client.aclose()
        logger.info("web_client_shutdown")

    app = FastAPI(title="Pet Food Delivery - Web", lifespan=lifespan)
    app.state.api_client = api_client

    register_exception_handlers(app, debug=settings.debug)

    app.add_middleware(
        SessionGateMiddleware,
        tokens=build_token_service(settings, clock),
        cookie_name=cookie_name,
    )
    # Added last so it wraps the gate and its redirects carry a correlation ID
    app.add_middleware(CorrelationIdMiddleware)

    def _clear_session(response: Response) -> Response:
        response.delete_cookie(cookie_name)
        return response

    def _start_session(response: Response, data: dict) -> Response:
        response.set_cookie(
            cookie_name,
            data["accessToken"],
            max_age=data.get("expiresIn"),
            httponly=True,
            secure=settings.session_cookie_secure,
            samesite="lax",
        )
        return response

    @app.get("/", response_class=HTMLResponse)
    async def home(request: Request) -> HTMLResponse:
        if request.state.user_id:
            body = """
            <h1>Welcome back</h1>
            <p><a href="/account">Your account</a></p>
            <form method="post" action="/logout"><button type="submit">Sign out</button></form>
            """
        else:
            body = """
            <h1>Fresh pet food, delivered</h1>
            <p><a href="/login">Sign in</a> or <a href="/register">create an account</a>.</p>
            """
        return _page("Home", body)

    @app.get("/login", response_class=HTMLResponse)
    async def login_page(
        callbackUrl: Optional[str] = None,
        error: Optional[str] = None,
        reset: Optional[str] = None,
    ) -> HTMLResponse:
        notice = PASSWORD_RESET_NOTICE if reset else None
        return _page("Sign in", _login_form(safe_callback_url(callbackUrl), error, notice))

    @app.post("/login")
    async def login(
        email: str = Form(...),
        password: str = Form(...),
        callbackUrl: Optional[str] = Form(default=None),
    ) -> RedirectResponse:
        """Exchange credentials for a token and store it in the session cookie."""
        destination = safe_callback_url(callbackUrl)
        try:
            data = await api_client.login(email, password)
        except ApiError as e:
            message = e.message if e.status_code in (401, 403) else "Sign in failed, please try again"
            logger.info("web_login_failed", status_code=e.status_code)
            return _see_other("/login", error=message, callbackUrl=destination)
        except httpx.HTTPError as e:
            logger.error("web_login_api_unreachable", error=str(e))
            return _see_other(
                "/login", error="Sign in is temporarily unavailable", callbackUrl=destination
            )

        logger.info("web_login_succeeded", user_id=data["user"]["id"])
        return _start_session(_see_other(destination), data)

    @app.get("/register", response_class=HTMLResponse)
    async def register_page(
        callbackUrl: Optional[str] = None, error: Optional[str] = None
    ) -> HTMLResponse:
        return _page("Create an account", _register_form(safe_callback_url(callbackUrl), error))

    @app.post("/register")
    async def register(
        firstName: str = Form(...),
        lastName: str = Form(...),
        email: str = Form(...),
        password: str = Form(...),
        confirmPassword: str = Form(...),
        callbackUrl: Optional[str] = Form(default=None),
    ) -> RedirectResponse:
        """Create the account through the API and sign the new user in."""
        destination = safe_callback_url(callbackUrl)
        if password != confirmPassword:
            return _see_other("/register", error="Passwords don't match", callbackUrl=destination)

        try:
            data = await api_client.register(firstName, lastName, email, password)
        except ApiError as e:
            message = e.message if e.status_code in (400, 409) else "Registration failed, please try again"
            logger.info("web_register_failed", status_code=e.status_code)
            return _see_other("/register", error=message, callbackUrl=destination)
        except httpx.HTTPError as e:
            logger.error("web_register_api_unreachable", error=str(e))
            return _see_other(
                "/register", error="Registration is temporarily unavailable", callbackUrl=destination
            )

        logger.info("web_register_succeeded", user_id=data["user"]["id"])
        return _start_session(_see_other(destination), data)

    @app.get("/forgot-password", response_class=HTMLResponse)
    async def forgot_password_page(
        sent: Optional[str] = None, error: Optional[str] = None
    ) -> HTMLResponse:
        return _page("Forgot password", _forgot_password_form(bool(sent), error))

    @app.post("/forgot-password")
    async def forgot_password(email: str = Form(...)) -> RedirectResponse:
        try:
            await api_client.forgot_password(email)
        except ApiError as e:
            message = e.message if e.status_code == 400 else "Could not send the reset email, please try again"
            logger.info("web_forgot_password_failed", status_code=e.status_code)
            return _see_other("/forgot-password", error=message)
        except httpx.HTTPError as e:
            logger.error("web_forgot_password_api_unreachable", error=str(e))
            return _see_other(
                "/forgot-password", error="Password reset is temporarily unavailable"
            )
        return _see_other("/forgot-password", sent="1")

    @app.get("/reset-password", response_class=HTMLResponse)
    async def reset_password_page(
        token: Optional[str] = None, error: Optional[str] = None
    ) -> HTMLResponse:
        """Landing page for the link in the password reset email."""
        return _page("Reset password", _reset_password_form(token, error))

    @app.post("/reset-password")
    async def reset_password(
        token: str = Form(...),
        newPassword: str = Form(...),
        confirmPassword: str = Form(...),
    ) -> RedirectResponse:
        if newPassword != confirmPassword:
            return _see_other("/reset-password", token=token, error="Passwords don't match")

        try:
            await api_client.reset_password(token, newPassword)
        except ApiError as e:
            message = e.message if e.status_code == 400 else "Password reset failed, please try again"
            logger.info("web_reset_password_failed", status_code=e.status_code)
            return _see_other("/reset-password", token=token, error=message)
        except httpx.HTTPError as e:
            logger.error("web_reset_password_api_unreachable", error=str(e))
            return _see_other(
                "/reset-password", token=token, error="Password reset is temporarily unavailable"
            )

        logger.info("web_reset_password_succeeded")
        return _see_other("/login", reset="1")

    @app.post("/logout")
    async def logout() -> Response:
        return _clear_session(
            RedirectResponse(HOME_PATH, status_code=status.HTTP_303_SEE_OTHER)
        )

    @app.get("/account", response_class=HTMLResponse)
    async def account(request: Request) -> Response:
        """Protected page rendering the profile from GET /auth/me."""
        try:
            profile = await api_client.get_profile(request.state.access_token)
        except ApiError as e:
            if e.status_code in (401, 403):
                return _clear_session(RedirectResponse("/login?callbackUrl=%2Faccount"))
            raise
        name = f"{profile['firstName']} {profile['lastName']}"
        body = f"""
        <h1>Your account</h1>
        <dl>
            <dt>Name</dt><dd>{escape(name)}</dd>
            <dt>Email</dt><dd>{escape(profile['email'])}</dd>
        </dl>
        """
        return _page("Account", body)

    @app.api_route("/api/products", methods=["GET", "OPTIONS"])
    async def products_proxy(request: Request) -> Response:
        """Public pass-through to the product service listing."""
        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_204_NO_CONTENT, headers=PRODUCT_CORS_HEADERS)

        try:
            upstream = await api_client.fetch_products(
                request.query_params,
                accept=request.headers.get("accept", "application/json"),
            )
            content = upstream.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("products_proxy_failed", error=str(e))
            return JSONResponse(
                status_code=status.HTTP_502_BAD_GATEWAY,
                content={
                    "status": "error",
                    "error": "Product service unavailable",
                    "code": "UPSTREAM_UNAVAILABLE",
                    "statusCode": status.HTTP_502_BAD_GATEWAY,
                },
                headers=PRODUCT_CORS_HEADERS,
            )

        headers = dict(PRODUCT_CORS_HEADERS)
        if upstream.status_code == 200:
            headers["Cache-Control"] = "public, max-age=60"
        return JSONResponse(status_code=upstream.status_code, content=content, headers=headers)

    return app


app = create_web_app()
