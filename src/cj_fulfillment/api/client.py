"""
Signed HTTP client for the CJ Dropshipping API.

Wraps ``httpx.AsyncClient`` with the supplier's conventions:

- base URL normalization (scheme, legacy host rewrite, ``/api2.0`` suffix)
- ``CJ-Access-Token`` header from the token manager on business calls
- optional ``CJ-Access-Timestamp`` / ``CJ-Access-Sign`` signature headers
- the ``{result|success, data, message}`` response envelope, normalized once

Authentication calls go through a separate, unsigned client with a shorter
timeout so that fetching a token never recurses into token acquisition.
"""

import hashlib
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from cj_fulfillment.utils.config import CJDropshippingConfig, DEFAULT_CJ_API_URL, get_config
from cj_fulfillment.utils.exceptions import SupplierAPIError, handle_api_error
from cj_fulfillment.utils.logger import get_logger


logger = get_logger(__name__)

API_VERSION_SUFFIX = "/api2.0"
LEGACY_HOSTS = ("api.cjdropshipping.com", "api2.cjdropshipping.com")
CANONICAL_HOST = "developers.cjdropshipping.com"

TokenProvider = Callable[[], Awaitable[str]]


def normalize_base_url(raw: Optional[str]) -> str:
    """
    Normalize a configured CJ API base URL.

    Empty values fall back to the public endpoint, a missing scheme becomes
    ``https://``, legacy API hosts are rewritten to the developers host, and
    the path always ends in ``/api2.0``.
    """
    url = (raw or "").strip()
    if not url:
        url = DEFAULT_CJ_API_URL

    if not url.lower().startswith(("http://", "https://")):
        url = f"https://{url}"

    try:
        parts = urlsplit(url)
        if parts.hostname in LEGACY_HOSTS:
            netloc = CANONICAL_HOST if parts.port is None else f"{CANONICAL_HOST}:{parts.port}"
            url = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    except ValueError:
        # Malformed URLs are passed through and fail at request time
        pass

    url = url.rstrip("/")
    if not url.lower().endswith(API_VERSION_SUFFIX):
        url = f"{url}{API_VERSION_SUFFIX}"

    return url


def generate_signature(user_id: str, timestamp: str, key: str, secret: str) -> str:
    """SHA-256 hex digest of ``userId + timestamp + key + secret``."""
    message = f"{user_id}{timestamp}{key}{secret}"
    return hashlib.sha256(message.encode("utf-8")).hexdigest()


@dataclass
class SupplierEnvelope:
    """Supplier response envelope with the success flag already resolved."""

    ok: bool
    data: Any = None
    message: Optional[str] = None
    status_code: int = 200

    @classmethod
    def from_payload(cls, payload: Any, status_code: int = 200) -> "SupplierEnvelope":
        """Build an envelope from a decoded JSON body (``result`` or ``success`` means ok)."""
        if not isinstance(payload, dict):
            return cls(ok=False, message="Unexpected response from supplier", status_code=status_code)
        return cls(
            ok=bool(payload.get("result") or payload.get("success")),
            data=payload.get("data"),
            message=payload.get("message"),
            status_code=status_code,
        )


class SignedHTTPClient:
    """
    HTTP client for CJ business and authentication endpoints.

    Args:
        config: CJ configuration (defaults to the global configuration)
        token_provider: Coroutine function returning a valid access token;
            required for authenticated requests
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
        clock: Returns the current Unix time in seconds
    """

    def __init__(self, config: Optional[CJDropshippingConfig] = None,
                 token_provider: Optional[TokenProvider] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config or get_config().cj
        self.base_url = normalize_base_url(self.config.api_url)
        self.token_provider = token_provider
        self.clock = clock

        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.config.client_name,
        }

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.timeout,
            headers=headers,
            transport=transport,
        )
        self._auth_client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.auth_timeout,
            headers=headers,
            transport=transport,
        )

        logger.debug(f"Initialized CJ HTTP client for {self.base_url}")

    def _signature_headers(self) -> Dict[str, str]:
        """Signature headers, only when user id, key and secret are all set."""
        if not self.config.can_sign:
            return {}
        timestamp = str(int(self.clock()))
        return {
            "CJ-Access-Timestamp": timestamp,
            "CJ-Access-Sign": generate_signature(
                self.config.user_id, timestamp, self.config.key, self.config.secret
            ),
        }

    async def _send(self, client: httpx.AsyncClient, timeout: float, method: str, path: str,
                    headers: Optional[Dict[str, str]] = None, **kwargs) -> SupplierEnvelope:
        """
        Send a request and decode the envelope.

        Raises:
            SupplierAPIError: On transport failure, non-2xx status or a
                non-JSON body
        """
        url = f"{self.base_url}{path}"

        try:
            logger.debug(f"Making {method} request to {url}")
            response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException:
            raise SupplierAPIError(f"Request timeout after {timeout}s", endpoint=url)
        except httpx.ConnectError:
            raise SupplierAPIError(f"Connection failed to {url}", endpoint=url)
        except httpx.HTTPError as e:
            raise SupplierAPIError(f"Request failed: {e}", endpoint=url)

        if not response.is_success:
            handle_api_error(response, url)

        try:
            payload = response.json()
        except ValueError:
            raise SupplierAPIError(
                "Invalid JSON in supplier response",
                endpoint=url,
                status_code=response.status_code,
            )

        return SupplierEnvelope.from_payload(payload, response.status_code)

    async def request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                      json: Optional[Dict[str, Any]] = None) -> SupplierEnvelope:
        """
        Send an authenticated business request.

        A valid access token is obtained first; ``None`` query parameters
        are dropped.
        """
        if self.token_provider is None:
            raise SupplierAPIError("No access token provider configured", endpoint=path)

        access_token = await self.token_provider()

        headers = {"CJ-Access-Token": access_token}
        headers.update(self._signature_headers())

        if params:
            params = {k: v for k, v in params.items() if v is not None}

        return await self._send(
            self._client, self.config.timeout, method, path,
            headers=headers, params=params or None, json=json,
        )

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> SupplierEnvelope:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> SupplierEnvelope:
        return await self.request("POST", path, json=json)

    async def post_auth(self, path: str, json: Dict[str, Any]) -> SupplierEnvelope:
        """POST to an authentication endpoint without token or signature headers."""
        return await self._send(self._auth_client, self.config.auth_timeout, "POST", path, json=json)

    async def aclose(self) -> None:
        """Close the underlying connection pools."""
        await self._client.aclose()
        await self._auth_client.aclose()
