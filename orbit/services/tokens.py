"""OAuth token storage, refresh and account connection."""

import json
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from orbit.config import Settings, get_settings
from orbit.constants import (
    GOOGLE_AUTH_URL,
    GOOGLE_SCOPES,
    GOOGLE_TOKEN_URL,
    GOOGLE_USERINFO_URL,
    TOKEN_STORAGE_KEY,
)
from orbit.errors import (
    AuthNotConnected,
    OAuthExchangeFailed,
    OAuthNotConfigured,
    TokenExpiredNoRefresh,
    TokenRefreshFailed,
)
from orbit.models.google import OAuthStatus, StoredTokenData
from orbit.utils.logging import get_logger

logger = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class TokenStorage(Protocol):
    """Interface for token record persistence."""

    async def get(self, key: str) -> StoredTokenData | None:
        """Load the record stored under ``key``.

        Args:
            key: Storage key

        Returns:
            The stored record, or None when nothing is stored
        """
        ...

    async def put(self, key: str, data: StoredTokenData) -> None:
        """Create or replace the record stored under ``key``."""
        ...

    async def delete(self, key: str) -> None:
        """Remove the record stored under ``key`` if present."""
        ...


class InMemoryTokenStorage:
    """Token storage kept in process memory."""

    def __init__(self, initial: dict[str, StoredTokenData] | None = None):
        self.records: dict[str, StoredTokenData] = dict(initial or {})

    async def get(self, key: str) -> StoredTokenData | None:
        record = self.records.get(key)
        return record.model_copy() if record else None

    async def put(self, key: str, data: StoredTokenData) -> None:
        self.records[key] = data.model_copy()

    async def delete(self, key: str) -> None:
        self.records.pop(key, None)


class FileTokenStorage:
    """Token storage backed by a JSON file on local disk.

    Not a credential vault: the file holds plain tokens and relies on
    filesystem permissions.
    """

    def __init__(self, path: Path):
        self.path = path

    def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        return json.loads(self.path.read_text(encoding="utf-8") or "{}")

    def _save(self, records: dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(records, indent=2), encoding="utf-8")
        self.path.chmod(0o600)

    async def get(self, key: str) -> StoredTokenData | None:
        raw = self._load().get(key)
        if raw is None:
            return None
        try:
            return StoredTokenData.model_validate(raw)
        except ValidationError:
            logger.warning(f"Ignoring malformed token record in {self.path}")
            return None

    async def put(self, key: str, data: StoredTokenData) -> None:
        records = self._load()
        records[key] = data.model_dump()
        self._save(records)

    async def delete(self, key: str) -> None:
        records = self._load()
        if records.pop(key, None) is not None:
            self._save(records)


class TokenManager:
    """Provides valid access tokens for the connected Google account.

    Refreshes are not deduplicated: concurrent callers in an expiry window
    may each refresh, and the last write wins.
    """

    def __init__(
        self,
        storage: TokenStorage,
        http_client: httpx.AsyncClient,
        settings: Settings | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the token manager.

        Args:
            storage: Where the token record lives
            http_client: Client used for token endpoint calls
            settings: OAuth client settings (defaults to global settings)
            clock: Returns the current time in epoch milliseconds
        """
        self.storage = storage
        self.http_client = http_client
        self.settings = settings or get_settings()
        self.clock = clock

    async def get_valid_access_token(self) -> str:
        """Return an access token that is not known to be expired.

        Returns:
            Access token for the Authorization header

        Raises:
            AuthNotConnected: No account is connected
            TokenExpiredNoRefresh: Token expired and no refresh token is stored
            TokenRefreshFailed: The refresh grant failed; the stored record is left untouched
        """
        tokens = await self.storage.get(TOKEN_STORAGE_KEY)
        if tokens is None:
            raise AuthNotConnected()

        now = self.clock()
        if not tokens.is_expired(now):
            return tokens.access_token

        if not tokens.refresh_token:
            raise TokenExpiredNoRefresh()

        logger.info("Access token expired, refreshing")
        payload = await self._token_request(
            {
                "client_id": self.settings.google_client_id or "",
                "client_secret": self.settings.google_client_secret or "",
                "refresh_token": tokens.refresh_token,
                "grant_type": "refresh_token",
            },
            error_factory=TokenRefreshFailed,
        )

        access_token, expires_in = self._parse_token_payload(payload, TokenRefreshFailed)
        updated = tokens.model_copy(
            update={"access_token": access_token, "expires_at": self.clock() + expires_in * 1000}
        )
        await self.storage.put(TOKEN_STORAGE_KEY, updated)
        logger.info(f"Access token refreshed, valid for {expires_in}s")
        return access_token

    async def _token_request(self, data: dict[str, str], error_factory: Callable[[], Exception]) -> dict:
        try:
            response = await self.http_client.post(
                GOOGLE_TOKEN_URL,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Token endpoint request failed: {e}")
            raise error_factory() from e

        if response.status_code < 200 or response.status_code >= 300:
            logger.error(f"Token endpoint returned {response.status_code}: {response.text[:200]}")
            raise error_factory()

        try:
            payload = response.json()
        except ValueError as e:
            raise error_factory() from e

        if not isinstance(payload, dict):
            raise error_factory()
        return payload

    @staticmethod
    def _parse_token_payload(payload: dict, error_factory: Callable[[], Exception]) -> tuple[str, int]:
        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")
        if not isinstance(access_token, str) or not access_token:
            raise error_factory()
        if isinstance(expires_in, bool) or not isinstance(expires_in, int | float | str):
            raise error_factory()
        try:
            return access_token, int(expires_in)
        except ValueError as e:
            raise error_factory() from e

    def authorization_url(self, state: str | None = None) -> str:
        """Build the Google consent URL for connecting an account.

        Raises:
            OAuthNotConfigured: Client id or redirect URI is missing
        """
        if not self.settings.google_client_id or not self.settings.google_redirect_uri:
            raise OAuthNotConfigured()

        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.google_redirect_uri,
            "response_type": "code",
            "scope": " ".join(GOOGLE_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> StoredTokenData:
        """Exchange an authorization code for tokens and persist them.

        Args:
            code: Authorization code from the OAuth callback

        Returns:
            The stored token record

        Raises:
            OAuthNotConfigured: OAuth client settings are incomplete
            OAuthExchangeFailed: Google rejected the code or the user lookup failed
        """
        if not self.settings.google_oauth_configured:
            raise OAuthNotConfigured()

        payload = await self._token_request(
            {
                "client_id": self.settings.google_client_id or "",
                "client_secret": self.settings.google_client_secret or "",
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.settings.google_redirect_uri or "",
            },
            error_factory=lambda: OAuthExchangeFailed("Token exchange failed"),
        )
        access_token, expires_in = self._parse_token_payload(
            payload, lambda: OAuthExchangeFailed("Token response is missing access_token")
        )

        try:
            user_response = await self.http_client.get(
                GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
            )
            user_response.raise_for_status()
            user_info = user_response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise OAuthExchangeFailed(f"Failed to fetch account profile: {e}") from e

        tokens = StoredTokenData(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_at=self.clock() + expires_in * 1000,
            email=user_info.get("email"),
            name=user_info.get("name"),
        )
        await self.storage.put(TOKEN_STORAGE_KEY, tokens)
        logger.info(f"Connected Google account {tokens.email}")
        return tokens

    async def status(self) -> OAuthStatus:
        tokens = await self.storage.get(TOKEN_STORAGE_KEY)
        if tokens is None:
            return OAuthStatus(connected=False)
        return OAuthStatus(
            connected=True,
            email=tokens.email,
            name=tokens.name,
            expired=tokens.is_expired(self.clock()),
        )

    async def disconnect(self) -> None:
        await self.storage.delete(TOKEN_STORAGE_KEY)
        logger.info("Disconnected Google account")


_token_manager: TokenManager | None = None


def get_token_manager() -> TokenManager:
    """Get or create token manager instance."""
    global _token_manager
    if _token_manager is None:
        settings = get_settings()
        _token_manager = TokenManager(
            storage=FileTokenStorage(settings.token_file),
            http_client=httpx.AsyncClient(timeout=settings.http_timeout),
            settings=settings,
        )
    return _token_manager
