"""Authenticated client for the Gmail and Google Calendar REST APIs."""

from typing import Any, Protocol

import httpx

from orbit.config import get_settings
from orbit.constants import CALENDAR_API_BASE, GMAIL_API_BASE
from orbit.errors import ApiError
from orbit.utils.logging import get_logger

logger = get_logger(__name__)


class AccessTokenProvider(Protocol):
    async def get_valid_access_token(self) -> str: ...


class GoogleApiClient:
    """Thin wrapper that attaches a fresh bearer token to every request."""

    def __init__(self, token_provider: AccessTokenProvider, http_client: httpx.AsyncClient):
        """Initialize the client.

        Args:
            token_provider: Source of valid access tokens
            http_client: Underlying HTTP client; its timeout applies to every call
        """
        self.token_provider = token_provider
        self.http_client = http_client

    async def request(
        self,
        url: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        service: str = "Google",
    ) -> dict[str, Any]:
        """Issue an authenticated JSON request.

        Args:
            url: Absolute API URL
            method: HTTP method
            body: JSON request body
            params: Query string parameters
            service: API name used in error messages

        Returns:
            Parsed JSON body, or an empty dict for bodiless responses

        Raises:
            AuthError: No usable access token (from the token provider)
            ApiError: Status >= 400, or the request never got a response (status 0)
        """
        token = await self.token_provider.get_valid_access_token()
        method = method.upper()

        logger.debug(f"{service} API {method} {url}")
        try:
            response = await self.http_client.request(
                method,
                url,
                json=body,
                params=params,
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"{service} API {method} {url} failed: {e}")
            raise ApiError(0, str(e) or e.__class__.__name__, service) from e

        if response.status_code >= 400:
            logger.warning(f"{service} API {method} {url} returned {response.status_code}")
            raise ApiError(response.status_code, response.text, service)

        if response.status_code == 204 or not response.content:
            return {}

        return response.json()

    async def gmail(
        self,
        endpoint: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Call a Gmail endpoint relative to ``gmail/v1/`` (e.g. ``users/me/messages``)."""
        return await self.request(f"{GMAIL_API_BASE}{endpoint.lstrip('/')}", method, body, params, service="Gmail")

    async def calendar(
        self,
        endpoint: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Call a Calendar endpoint relative to ``calendar/v3/``."""
        return await self.request(
            f"{CALENDAR_API_BASE}{endpoint.lstrip('/')}", method, body, params, service="Calendar"
        )


_google_client: GoogleApiClient | None = None


def get_google_client() -> GoogleApiClient:
    """Get or create Google API client instance."""
    global _google_client
    if _google_client is None:
        from orbit.services.tokens import get_token_manager

        _google_client = GoogleApiClient(
            token_provider=get_token_manager(),
            http_client=httpx.AsyncClient(timeout=get_settings().http_timeout),
        )
    return _google_client
