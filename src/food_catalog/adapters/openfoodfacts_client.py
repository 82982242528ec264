"""Open Food Facts API client."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from food_catalog.domain.errors import OpenFoodFactsError

_MIN_QUERY_LENGTH = 2

_SEARCH_FIELDS = ",".join(
    [
        "code",
        "product_name",
        "product_name_en",
        "brands",
        "nutriments",
        "image_url",
        "image_front_url",
    ]
)

_logger = logging.getLogger(__name__)


class OpenFoodFactsClient(Protocol):
    """Interface for Open Food Facts lookups."""

    async def search_products(
        self, query: str, limit: int = 20
    ) -> list[dict[str, object]]:
        """Search products by text and return raw product payloads."""

    async def get_product(self, barcode: str) -> dict[str, object] | None:
        """Fetch a product by barcode, or ``None`` when it is unknown."""


@dataclass
class HttpxOpenFoodFactsClient(OpenFoodFactsClient):
    """HTTPX-backed Open Food Facts client."""

    base_url: str
    user_agent: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 10.0

    @classmethod
    def create(cls, base_url: str, user_agent: str) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            user_agent=user_agent,
            http_client=httpx.AsyncClient(),
        )

    async def search_products(
        self, query: str, limit: int = 20
    ) -> list[dict[str, object]]:
        """Search products with the legacy ``search.pl`` endpoint."""
        if not query or len(query.strip()) < _MIN_QUERY_LENGTH:
            return []

        response = await self._get(
            f"{self.base_url}/cgi/search.pl",
            params={
                "search_terms": query.strip(),
                "page_size": str(limit),
                "json": "true",
                "fields": _SEARCH_FIELDS,
            },
        )
        if response.is_error:
            raise OpenFoodFactsError(
                f"Open Food Facts API error: {response.status_code}",
                response.status_code,
            )
        payload = _json(response)
        products = payload.get("products") or []
        if not isinstance(products, list):
            raise OpenFoodFactsError("Open Food Facts returned malformed products")
        results = [product for product in products if isinstance(product, dict)]
        _logger.debug(
            "Open Food Facts search: query=%s results=%s", query, len(results)
        )
        return results

    async def get_product(self, barcode: str) -> dict[str, object] | None:
        """Fetch a product by barcode from the v0 product endpoint."""
        if not barcode:
            return None

        response = await self._get(f"{self.base_url}/api/v0/product/{barcode}.json")
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        if response.is_error:
            _logger.error(
                "Open Food Facts barcode lookup failed: barcode=%s status=%s",
                barcode,
                response.status_code,
            )
            raise OpenFoodFactsError(
                f"Open Food Facts API error: {response.status_code}",
                response.status_code,
            )

        payload = _json(response)
        product = payload.get("product")
        if payload.get("status") == 0 or not isinstance(product, dict) or not product:
            _logger.debug("Open Food Facts has no product for barcode=%s", barcode)
            return None
        code = product.get("code") or payload.get("code") or barcode
        return {**product, "code": code}

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _get(
        self, url: str, params: dict[str, str] | None = None
    ) -> httpx.Response:
        try:
            return await self.http_client.get(
                url,
                params=params,
                headers={"Accept": "application/json", "User-Agent": self.user_agent},
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise OpenFoodFactsError(f"Open Food Facts request failed: {exc}") from exc


def _json(response: httpx.Response) -> dict[str, object]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise OpenFoodFactsError("Open Food Facts returned malformed JSON") from exc
    if not isinstance(payload, dict):
        raise OpenFoodFactsError("Open Food Facts returned an unexpected payload")
    return payload
