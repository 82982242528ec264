"""FatSecret OAuth 2.0 client-credentials token manager."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

import httpx

from food_catalog.domain.errors import FatSecretAuthError
from food_catalog.services.metrics import ResolutionMetrics

_EXPIRY_BUFFER = timedelta(seconds=60)

_logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    """Source of bearer tokens for the FatSecret API."""

    async def get_token(self) -> str:
        """Return a valid access token."""


@dataclass(frozen=True)
class AccessToken:
    """Cached OAuth access token."""

    access_token: str
    token_type: str
    expires_in: int
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class FatSecretAuthManager(TokenProvider):
    """Fetches and caches FatSecret access tokens.

    Tokens are refreshed one minute before they expire. Concurrent callers
    share a single refresh through ``_lock``.
    """

    client_id: str
    client_secret: str
    token_url: str
    http_client: httpx.AsyncClient
    metrics: ResolutionMetrics | None = None
    timeout_seconds: float = 10.0
    clock: Callable[[], datetime] = _utcnow
    _token: AccessToken | None = field(default=None, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @classmethod
    def create(
        cls,
        client_id: str,
        client_secret: str,
        token_url: str,
        metrics: ResolutionMetrics | None = None,
    ) -> "FatSecretAuthManager":
        """Create a token manager with a managed httpx session."""
        return cls(
            client_id=client_id,
            client_secret=client_secret,
            token_url=token_url,
            http_client=httpx.AsyncClient(),
            metrics=metrics,
        )

    async def get_token(self) -> str:
        """Return the cached token, refreshing it when expired."""
        token = self._token
        if token is not None and not self._is_expired(token):
            return token.access_token

        async with self._lock:
            token = self._token
            if token is not None and not self._is_expired(token):
                return token.access_token

            _logger.info("Refreshing FatSecret access token")
            try:
                token = await self._fetch_token()
            except FatSecretAuthError:
                self._record_refresh(success=False)
                raise
            self._token = token
            self._record_refresh(success=True)
            _logger.info(
                "FatSecret token refreshed: expires_at=%s", token.expires_at.isoformat()
            )
            return token.access_token

    def clear(self) -> None:
        """Forget the cached token."""
        self._token = None

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _fetch_token(self) -> AccessToken:
        try:
            response = await self.http_client.post(
                self.token_url,
                auth=(self.client_id, self.client_secret),
                data={"grant_type": "client_credentials", "scope": "basic"},
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            _logger.error("FatSecret OAuth request failed: %s", exc)
            raise FatSecretAuthError(f"OAuth request failed: {exc}") from exc

        if response.is_error:
            _logger.error(
                "FatSecret OAuth authentication failed: status=%s body=%s",
                response.status_code,
                response.text,
            )
            raise FatSecretAuthError(
                f"OAuth authentication failed: {response.status_code} - "
                f"{response.text}",
                response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise FatSecretAuthError("Invalid OAuth response: not JSON") from exc

        if not isinstance(payload, dict):
            payload = {}
        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")
        if (
            not access_token
            or not isinstance(expires_in, int | float)
            or expires_in <= 0
        ):
            _logger.error(
                "Invalid FatSecret OAuth response: "
                "has_access_token=%s has_expires_in=%s",
                bool(access_token),
                expires_in is not None,
            )
            raise FatSecretAuthError("Invalid OAuth response: missing required fields")

        return AccessToken(
            access_token=str(access_token),
            token_type=str(payload.get("token_type") or "Bearer"),
            expires_in=int(expires_in),
            expires_at=self.clock() + timedelta(seconds=expires_in) - _EXPIRY_BUFFER,
        )

    def _is_expired(self, token: AccessToken) -> bool:
        return self.clock() >= token.expires_at

    def _record_refresh(self, *, success: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_token_refresh(success)
