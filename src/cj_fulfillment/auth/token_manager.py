"""
CJ Dropshipping access token lifecycle.

Tokens are obtained with the account email/password, renewed with the
refresh token, and held in memory only. A single ``TokenManager`` is shared
by every client in the process (see ``get_token_manager``), and at most one
login or refresh is in flight at a time: concurrent callers await the same
task and see the same outcome.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

import httpx

from cj_fulfillment.api.client import SignedHTTPClient
from cj_fulfillment.core.models import CredentialTokens
from cj_fulfillment.utils.config import CJDropshippingConfig, get_config
from cj_fulfillment.utils.exceptions import (
    AuthenticationError, ConfigurationError, SupplierAPIError,
)
from cj_fulfillment.utils.logger import get_logger


logger = get_logger(__name__)

LOGIN_PATH = "/v1/authentication/getAccessToken"
REFRESH_PATH = "/v1/authentication/refreshAccessToken"

# Tokens are treated as expired this long before their stated expiry
EXPIRY_SKEW = timedelta(seconds=60)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """
    Holds the supplier credential tokens and keeps them valid.

    Args:
        config: CJ configuration (defaults to the global configuration)
        http_client: Client used for the authentication endpoints
        transport: Optional httpx transport, used when no client is given
        clock: Returns the current time as an aware datetime
    """

    def __init__(self, config: Optional[CJDropshippingConfig] = None,
                 http_client: Optional[SignedHTTPClient] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self.config = config or get_config().cj
        self.http = http_client or SignedHTTPClient(self.config, transport=transport)
        self.clock = clock
        self.tokens: Optional[CredentialTokens] = None
        self._inflight: Optional[asyncio.Future] = None

    def is_expired(self, expiry: Optional[datetime]) -> bool:
        """True when ``expiry`` is missing or within a minute of now."""
        if expiry is None:
            return True
        return self.clock() >= expiry - EXPIRY_SKEW

    async def ensure_valid(self) -> CredentialTokens:
        """
        Return tokens whose access token is usable.

        Logs in when there are no tokens or the refresh token has expired;
        refreshes when only the access token has expired.

        Raises:
            ConfigurationError: If login is needed and credentials are missing
            AuthenticationError: If the supplier rejects the login
            SupplierAPIError: On transport or HTTP failure
        """
        tokens = self.tokens

        if tokens is None or self.is_expired(tokens.refresh_token_expiry):
            await self.login()
        elif self.is_expired(tokens.access_token_expiry):
            await self.refresh()

        return self.tokens

    async def get_access_token(self) -> str:
        """Access token for the ``CJ-Access-Token`` header."""
        tokens = await self.ensure_valid()
        return tokens.access_token

    async def login(self) -> None:
        """Obtain a fresh token pair with the configured credentials."""
        await self._single_flight(self._do_login)

    async def refresh(self) -> None:
        """Renew the access token, falling back to login if the supplier refuses."""
        await self._single_flight(self._do_refresh)

    def clear(self) -> None:
        """Forget the current tokens; the next call logs in again."""
        self.tokens = None

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _single_flight(self, operation: Callable[[], Awaitable[None]]) -> None:
        """Run ``operation`` unless a login/refresh is already running, then await it."""
        task = self._inflight
        if task is None or task.done():
            task = asyncio.ensure_future(operation())
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
        else:
            logger.debug("Waiting for in-flight CJ authentication")

        # A cancelled waiter must not cancel the shared task
        await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Future) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _do_login(self) -> None:
        if not self.config.has_credentials:
            raise ConfigurationError("CJDropshipping credentials are not configured.")

        logger.info("Logging in to CJ Dropshipping")
        envelope = await self.http.post_auth(LOGIN_PATH, {
            "email": self.config.email,
            "password": self.config.password,
        })

        if not envelope.ok or not isinstance(envelope.data, dict):
            raise AuthenticationError(f"CJ login failed: {envelope.message or 'Unknown error'}")

        self.tokens = CredentialTokens.from_api(envelope.data)
        logger.info("CJ Dropshipping login succeeded")

    async def _do_refresh(self) -> None:
        # Called inside a flight: falls back to _do_login directly
        if self.tokens is None or not self.tokens.refresh_token:
            await self._do_login()
            return

        logger.info("Refreshing CJ Dropshipping access token")
        try:
            envelope = await self.http.post_auth(REFRESH_PATH, {
                "refreshToken": self.tokens.refresh_token,
            })
        except SupplierAPIError as e:
            if e.status_code is None:
                raise
            logger.warning(f"CJ token refresh rejected ({e.message}), logging in again")
            await self._do_login()
            return

        if not envelope.ok or not isinstance(envelope.data, dict):
            logger.warning(f"CJ token refresh failed ({envelope.message}), logging in again")
            await self._do_login()
            return

        self.tokens = CredentialTokens.from_api(envelope.data)


# Global token manager instance
_token_manager: Optional[TokenManager] = None


def get_token_manager() -> TokenManager:
    """Get or create the process-wide token manager."""
    global _token_manager
    if _token_manager is None:
        _token_manager = TokenManager()
    return _token_manager


def reset_token_manager() -> None:
    """Drop the process-wide token manager (tokens are not persisted)."""
    global _token_manager
    _token_manager = None
