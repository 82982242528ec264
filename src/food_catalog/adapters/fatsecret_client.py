"""FatSecret Platform API client."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from food_catalog.adapters.fatsecret_auth import TokenProvider
from food_catalog.config import FatSecretConfig
from food_catalog.domain.errors import FatSecretApiError, FatSecretTimeoutError
from food_catalog.services.metrics import ResolutionMetrics
from food_catalog.services.normalizer import as_list

_MIN_QUERY_LENGTH = 2

_logger = logging.getLogger(__name__)


class FatSecretClient(Protocol):
    """Interface for FatSecret API interactions."""

    async def search_foods(
        self, query: str, max_results: int = 20, page: int = 0
    ) -> list[dict[str, object]]:
        """Search foods by text and return raw foods with listed servings."""

    async def get_food(self, food_id: str) -> dict[str, object] | None:
        """Fetch a food by FatSecret id."""

    async def find_food_by_barcode(self, barcode: str) -> dict[str, object] | None:
        """Resolve a barcode to a FatSecret food."""


@dataclass
class HttpxFatSecretClient(FatSecretClient):
    """HTTPX-backed FatSecret client with timeout and retry handling.

    Server errors (5xx), rate limiting (429) and timeouts are retried up to
    ``max_retries`` times with exponential backoff. Other client errors fail
    immediately. The final error always propagates to the caller.
    """

    base_url: str
    token_provider: TokenProvider
    http_client: httpx.AsyncClient
    timeout_ms: int = 5000
    max_retries: int = 2
    retry_base_delay_seconds: float = 1.0
    metrics: ResolutionMetrics | None = None
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    @classmethod
    def create(
        cls,
        config: FatSecretConfig,
        token_provider: TokenProvider,
        metrics: ResolutionMetrics | None = None,
    ) -> "HttpxFatSecretClient":
        """Create a FatSecret client with a managed httpx session."""
        return cls(
            base_url=config.base_url,
            token_provider=token_provider,
            http_client=httpx.AsyncClient(),
            timeout_ms=config.timeout_ms,
            metrics=metrics,
        )

    async def search_foods(
        self, query: str, max_results: int = 20, page: int = 0
    ) -> list[dict[str, object]]:
        """Search foods with ``foods.search.v4``."""
        if not query or len(query.strip()) < _MIN_QUERY_LENGTH:
            _logger.debug("FatSecret search query too short: %r", query)
            return []

        payload = await self._request(
            "foods.search.v4",
            {
                "search_expression": query.strip(),
                "max_results": str(max_results),
                "page_number": str(page),
            },
        )
        foods_container = payload.get("foods_search") or payload.get("foods") or {}
        if isinstance(foods_container, dict) and "results" in foods_container:
            foods_container = foods_container.get("results") or {}
        raw_foods = (
            foods_container.get("food") if isinstance(foods_container, dict) else None
        )
        foods = [
            _normalize_food(food)
            for food in as_list(raw_foods)
            if isinstance(food, dict)
        ]
        _logger.info("FatSecret search: query=%s results=%s", query, len(foods))
        return foods

    async def get_food(self, food_id: str) -> dict[str, object] | None:
        """Fetch food details with ``food.get.v4``."""
        if not food_id:
            _logger.warning("FatSecret get_food called with an empty id")
            return None

        payload = await self._request("food.get.v4", {"food_id": str(food_id)})
        food = payload.get("food")
        if not isinstance(food, dict):
            _logger.debug("FatSecret food not found: food_id=%s", food_id)
            return None
        return _normalize_food(food)

    async def find_food_by_barcode(self, barcode: str) -> dict[str, object] | None:
        """Look up the food id for a barcode, then fetch the food."""
        if not barcode:
            _logger.warning("FatSecret barcode lookup called with an empty barcode")
            return None

        payload = await self._request("food.find_id_for_barcode", {"barcode": barcode})
        food_id_container = payload.get("food_id")
        food_id = (
            food_id_container.get("value")
            if isinstance(food_id_container, dict)
            else food_id_container
        )
        if not food_id or str(food_id) == "0":
            _logger.debug("FatSecret has no food for barcode=%s", barcode)
            return None
        return await self.get_food(str(food_id))

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(self, method: str, params: dict[str, str]) -> dict[str, object]:
        """Send a request, retrying transient failures with backoff."""
        attempt = 0
        while True:
            try:
                return await self._send(method, params)
            except FatSecretApiError as exc:
                if not exc.retryable:
                    raise
                if attempt >= self.max_retries:
                    _logger.error(
                        "FatSecret %s failed after %s retries: %s",
                        method,
                        attempt,
                        exc,
                    )
                    raise
                delay = self.retry_base_delay_seconds * 2**attempt
                attempt += 1
                _logger.warning(
                    "Retrying FatSecret %s (attempt %s/%s, delay=%.2fs): %s",
                    method,
                    attempt,
                    self.max_retries,
                    delay,
                    exc,
                )
                await self.sleep(delay)

    async def _send(self, method: str, params: dict[str, str]) -> dict[str, object]:
        token = await self.token_provider.get_token()
        started = time.monotonic()
        try:
            response = await self.http_client.get(
                self.base_url,
                params={"method": method, **params, "format": "json"},
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout_ms / 1000,
            )
        except httpx.TimeoutException as exc:
            self._record_call(method, success=False, started=started)
            _logger.error("FatSecret %s timed out after %sms", method, self.timeout_ms)
            raise FatSecretTimeoutError(
                f"FatSecret API timeout after {self.timeout_ms}ms"
            ) from exc
        except httpx.HTTPError as exc:
            self._record_call(method, success=False, started=started)
            raise FatSecretApiError(f"FatSecret request failed: {exc}") from exc

        self._record_call(method, success=not response.is_error, started=started)
        if response.is_error:
            raise _error_from_response(method, response)

        try:
            payload = response.json()
        except ValueError as exc:
            raise FatSecretApiError(
                f"FatSecret returned malformed JSON for {method}",
                response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise FatSecretApiError(
                f"FatSecret returned an unexpected payload for {method}",
                response.status_code,
            )

        error = payload.get("error")
        if isinstance(error, dict):
            raise FatSecretApiError(
                f"FatSecret API error {error.get('code')}: {error.get('message')}",
                response.status_code,
            )
        return payload

    def _record_call(self, method: str, *, success: bool, started: float) -> None:
        if self.metrics is not None:
            self.metrics.record_api_call(method, success, time.monotonic() - started)


def _error_from_response(method: str, response: httpx.Response) -> FatSecretApiError:
    status_code = response.status_code
    message = response.text
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = str(body["error"].get("message") or message)

    retryable = (
        status_code >= httpx.codes.INTERNAL_SERVER_ERROR
        or status_code == httpx.codes.TOO_MANY_REQUESTS
    )
    if status_code == httpx.codes.TOO_MANY_REQUESTS:
        _logger.warning("FatSecret rate limit exceeded: method=%s", method)
    else:
        _logger.error(
            "FatSecret API error response: method=%s status=%s message=%s",
            method,
            status_code,
            message,
        )
    return FatSecretApiError(
        f"FatSecret API error: {status_code} {response.reason_phrase} - {message}",
        status_code,
        retryable=retryable,
    )


def _normalize_food(food: dict[str, object]) -> dict[str, object]:
    """Return a copy of ``food`` whose servings are always a list."""
    servings = food.get("servings")
    raw_servings = servings.get("serving") if isinstance(servings, dict) else None
    return {**food, "servings": {"serving": as_list(raw_servings)}}
