"""Product resolution across the local store and external nutrition APIs."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from food_catalog.adapters.fatsecret_client import FatSecretClient
from food_catalog.adapters.openfoodfacts_client import OpenFoodFactsClient
from food_catalog.domain.errors import (
    ProductNormalizationError,
    ResolverConfigurationError,
)
from food_catalog.domain.products import Product
from food_catalog.services.cache import SearchCache
from food_catalog.services.catalog import ProductCatalog
from food_catalog.services.metrics import ResolutionMetrics
from food_catalog.services.normalizer import normalize

_MIN_QUERY_LENGTH = 2
_FALLBACK_SOURCE = "openfoodfacts"

_logger = logging.getLogger(__name__)


def _cache_key(query: str, limit: int) -> str:
    return f"{query}:{limit}"


@dataclass
class ProductResolver:
    """Resolves products from the local store, FatSecret and Open Food Facts.

    Lookups run strictly in order: search cache, local store, FatSecret, then
    Open Food Facts as a fallback. Local results always come first. Products
    fetched upstream are written back to the store in detached tasks whose
    failures are logged and dropped. Public lookups never raise for missing
    data or upstream failures.
    """

    catalog: ProductCatalog | None
    fatsecret_client: FatSecretClient | None = None
    openfoodfacts_client: OpenFoodFactsClient | None = None
    cache: SearchCache | None = None
    metrics: ResolutionMetrics = field(default_factory=ResolutionMetrics)
    default_limit: int = 20
    primary_enabled: bool = True
    fallback_enabled: bool = True
    _pending: set[asyncio.Task[None]] = field(
        default_factory=set, init=False, repr=False
    )

    async def resolve(self, query: str, limit: int | None = None) -> list[Product]:
        """Return up to ``limit`` products matching ``query``."""
        catalog = self._require_catalog()
        normalized_query = (query or "").strip()
        if len(normalized_query) < _MIN_QUERY_LENGTH:
            return []
        resolved_limit = limit if limit and limit > 0 else self.default_limit

        try:
            return await self._resolve(catalog, normalized_query, resolved_limit)
        except Exception:
            _logger.exception("Product search failed: query=%s", normalized_query)
            return []

    async def resolve_by_barcode(self, barcode: str) -> Product | None:
        """Return the product for ``barcode`` from the first source that has it."""
        catalog = self._require_catalog()
        code = (barcode or "").strip()
        if not code:
            return None

        try:
            return await self._resolve_barcode(catalog, code)
        except Exception:
            _logger.exception("Barcode lookup failed: barcode=%s", code)
            return None

    async def record_use(self, product_id: UUID) -> None:
        """Record that a stored product was chosen by a user."""
        catalog = self._require_catalog()
        await catalog.increment_usage(product_id)

    async def drain(self) -> None:
        """Wait for pending write-backs to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_write_backs(self) -> int:
        """Number of write-backs still running."""
        return len(self._pending)

    async def _resolve(
        self, catalog: ProductCatalog, query: str, limit: int
    ) -> list[Product]:
        if self.cache is not None:
            cached = self.cache.get(_cache_key(query, limit))
            self.metrics.record_cache(hit=cached is not None, cache_type="memory")
            if cached is not None:
                _logger.debug("Search cache hit: query=%s", query)
                return list(cached)

        local_results = await catalog.search(query, limit)
        self.metrics.record_cache(hit=bool(local_results), cache_type="database")
        if len(local_results) >= limit:
            _logger.info(
                "Sufficient results from local store: query=%s results=%s",
                query,
                len(local_results),
            )
            self.metrics.record_search("database", len(local_results))
            self._remember(query, limit, local_results)
            return local_results

        remaining = limit - len(local_results)
        api_results = await self._search_upstream(query, remaining)
        if api_results is None:
            return local_results

        combined = [*local_results, *api_results][:limit]
        _logger.info(
            "Search completed: query=%s total=%s local=%s api=%s",
            query,
            len(combined),
            len(local_results),
            len(api_results),
        )
        self._remember(query, limit, combined)
        return combined

    async def _search_upstream(
        self, query: str, remaining: int
    ) -> list[Product] | None:
        """Search FatSecret, then Open Food Facts.

        Returns ``None`` when every configured upstream failed, so the caller
        can degrade to local results only.
        """
        if self._primary_active():
            try:
                foods = await self.fatsecret_client.search_foods(
                    query, max_results=remaining
                )
            except Exception as exc:
                _logger.warning(
                    "FatSecret search failed, activating fallback: query=%s error=%s",
                    query,
                    exc,
                )
                reason = "api_error"
            else:
                products = self._normalize_all(foods, "fatsecret")
                if products:
                    self.metrics.record_search("fatsecret", len(products))
                    self._schedule_write_back(products)
                    return products
                _logger.info(
                    "FatSecret returned no results, activating fallback: query=%s",
                    query,
                )
                reason = "no_results"

            if not self.fallback_enabled:
                return None if reason == "api_error" else []
        else:
            reason = "disabled"

        if self.openfoodfacts_client is None:
            return []
        self.metrics.record_fallback(reason, _FALLBACK_SOURCE)

        try:
            raw_products = await self.openfoodfacts_client.search_products(
                query, limit=remaining
            )
        except Exception as exc:
            _logger.error(
                "Upstream searches failed, returning local results only: "
                "query=%s error=%s",
                query,
                exc,
            )
            return None

        products = [
            product
            for product in self._normalize_all(raw_products, "openfoodfacts")
            if product.calories_per_100g > 0
        ]
        self.metrics.record_search("openfoodfacts", len(products))
        self._schedule_write_back(products)
        return products

    async def _resolve_barcode(
        self, catalog: ProductCatalog, barcode: str
    ) -> Product | None:
        stored = await catalog.get_by_barcode(barcode)
        if stored is not None:
            _logger.info("Barcode found in local store: barcode=%s", barcode)
            self.metrics.record_barcode_lookup("database")
            return stored

        if self._primary_active():
            product = await self._barcode_from_fatsecret(barcode)
            if product is not None:
                return product
            if not self.fallback_enabled:
                self.metrics.record_barcode_lookup("not_found")
                return None

        product = await self._barcode_from_openfoodfacts(barcode)
        if product is None:
            _logger.info("Barcode not found in any source: barcode=%s", barcode)
            self.metrics.record_barcode_lookup("not_found")
        return product

    async def _barcode_from_fatsecret(self, barcode: str) -> Product | None:
        try:
            food = await self.fatsecret_client.find_food_by_barcode(barcode)
        except Exception as exc:
            _logger.warning(
                "FatSecret barcode lookup failed, activating fallback: "
                "barcode=%s error=%s",
                barcode,
                exc,
            )
            self.metrics.record_fallback("api_error", _FALLBACK_SOURCE)
            return None
        if food is None:
            return None

        product = self._normalize_one(food, "fatsecret")
        if product is None:
            return None
        # FatSecret does not echo the barcode back.
        product.barcode = barcode
        self.metrics.record_barcode_lookup("fatsecret")
        self._schedule_write_back([product])
        return product

    async def _barcode_from_openfoodfacts(self, barcode: str) -> Product | None:
        if self.openfoodfacts_client is None:
            return None
        try:
            raw_product = await self.openfoodfacts_client.get_product(barcode)
        except Exception as exc:
            _logger.warning(
                "Open Food Facts barcode lookup failed: barcode=%s error=%s",
                barcode,
                exc,
            )
            return None
        if raw_product is None:
            return None

        product = self._normalize_one(raw_product, "openfoodfacts")
        if product is None:
            return None
        self.metrics.record_barcode_lookup("openfoodfacts")
        self._schedule_write_back([product])
        return product

    def _normalize_all(
        self, raw_items: Iterable[dict[str, object]], source: str
    ) -> list[Product]:
        products = []
        for raw in raw_items:
            product = self._normalize_one(raw, source)
            if product is not None:
                products.append(product)
        return products

    @staticmethod
    def _normalize_one(raw: dict[str, object], source: str) -> Product | None:
        try:
            return normalize(raw, source)
        except ProductNormalizationError as exc:
            _logger.warning("Skipping %s item: %s", source, exc)
            return None

    def _schedule_write_back(self, products: list[Product]) -> None:
        for product in products:
            task = asyncio.create_task(self._write_back(product))
            self._pending.add(task)
            task.add_done_callback(self._on_write_back_done)

    async def _write_back(self, product: Product) -> None:
        product_id = await self._require_catalog().save(product)
        if product_id is not None:
            product.id = product_id

    def _on_write_back_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning("Product write-back failed: %s", exc, exc_info=exc)

    def _remember(self, query: str, limit: int, results: list[Product]) -> None:
        if self.cache is not None:
            self.cache.set(_cache_key(query, limit), results)

    def _primary_active(self) -> bool:
        return self.primary_enabled and self.fatsecret_client is not None

    def _require_catalog(self) -> ProductCatalog:
        if self.catalog is None:
            raise ResolverConfigurationError("ProductResolver requires a catalog")
        return self.catalog
