"""HTTP client the web client uses to reach the auth API and product service."""

from typing import Any, Mapping, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class ApiError(Exception):
    """Non-2xx response from a backend service."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if not isinstance(body, dict):
        return response.reason_phrase
    return body.get("error") or body.get("message") or response.reason_phrase


class StorefrontApiClient:
    """Thin async wrapper over the auth API and the product service."""

    def __init__(
        self,
        api_base_url: str,
        product_service_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api = httpx.AsyncClient(
            base_url=api_base_url.rstrip("/"), timeout=timeout, transport=transport
        )
        self._products = httpx.AsyncClient(
            base_url=product_service_url.rstrip("/"), timeout=timeout, transport=transport
        )

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """POST /auth/login and return the JSON body.

        Raises:
            ApiError: Credentials rejected or service error
        """
        response = await self._api.post(
            "/auth/login", json={"email": email, "password": password}
        )
        if response.status_code != 200:
            raise ApiError(response.status_code, _error_message(response))
        return response.json()

    async def register(
        self, first_name: str, last_name: str, email: str, password: str
    ) -> dict[str, Any]:
        """POST /auth/register and return the JSON body (same shape as login)."""
        response = await self._api.post(
            "/auth/register",
            json={
                "firstName": first_name,
                "lastName": last_name,
                "email": email,
                "password": password,
            },
        )
        if response.status_code != 201:
            raise ApiError(response.status_code, _error_message(response))
        return response.json()

    async def forgot_password(self, email: str) -> str:
        response = await self._api.post("/auth/forgot-password", json={"email": email})
        if response.status_code != 200:
            raise ApiError(response.status_code, _error_message(response))
        return response.json()["message"]

    async def reset_password(self, reset_token: str, new_password: str) -> str:
        """POST /auth/reset-password with the token from the emailed link."""
        response = await self._api.post(
            "/auth/reset-password",
            json={"resetToken": reset_token, "newPassword": new_password},
        )
        if response.status_code != 200:
            raise ApiError(response.status_code, _error_message(response))
        return response.json()["message"]

    async def get_profile(self, access_token: str) -> dict[str, Any]:
        """GET /auth/me with the session's bearer token."""
        response = await self._api.get(
            "/auth/me", headers={"Authorization": f"Bearer {access_token}"}
        )
        if response.status_code != 200:
            raise ApiError(response.status_code, _error_message(response))
        return response.json()["data"]

    async def fetch_products(
        self, params: Mapping[str, str], accept: str = "application/json"
    ) -> httpx.Response:
        """Forward a product listing query. Cookies and credentials are not sent."""
        logger.debug("products_forwarded", params=dict(params))
        return await self._products.get(
            "/products",
            params=params,
            headers={"Accept": accept, "Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._api.aclose()
        await self._products.aclose()
