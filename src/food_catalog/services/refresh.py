"""Refresh nutrition data of popular stored products from upstream."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from uuid import UUID

from food_catalog.adapters.openfoodfacts_client import OpenFoodFactsClient
from food_catalog.domain.refresh import RefreshItemResult, RefreshReport
from food_catalog.services.catalog import ProductRepository
from food_catalog.services.normalizer import normalize_openfoodfacts

_REFRESH_SOURCE = "openfoodfacts"
_MAX_REPORTED_RESULTS = 20

_logger = logging.getLogger(__name__)


@dataclass
class ProductRefreshService:
    """Re-fetches the most used Open Food Facts products by barcode."""

    repository: ProductRepository
    openfoodfacts_client: OpenFoodFactsClient
    delay_seconds: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    async def refresh_popular(self, limit: int = 100) -> RefreshReport:
        """Refresh up to ``limit`` popular products and report the outcome.

        Failures are counted per product and never stop the batch. The
        configured delay is awaited between consecutive upstream calls.
        """
        rows = await asyncio.to_thread(
            self.repository.list_popular, _REFRESH_SOURCE, limit
        )
        report = RefreshReport(total=len(rows))
        _logger.info("Refreshing popular products: count=%s", len(rows))

        upstream_calls = 0
        for row in rows:
            product = row.product
            barcode = product.barcode or product.source_id
            if product.id is None or not barcode:
                result = RefreshItemResult(
                    product_id=product.id,
                    name=product.name,
                    status="skipped",
                    error="No barcode",
                )
            else:
                if upstream_calls and self.delay_seconds > 0:
                    await self.sleep(self.delay_seconds)
                upstream_calls += 1
                result = await self._refresh_product(product.id, product.name, barcode)

            if result.status == "updated":
                report.updated += 1
            elif result.status == "skipped":
                report.skipped += 1
            else:
                report.errors += 1
            if len(report.results) < _MAX_REPORTED_RESULTS:
                report.results.append(result)

        _logger.info(
            "Popular product refresh finished: updated=%s skipped=%s errors=%s",
            report.updated,
            report.skipped,
            report.errors,
        )
        return report

    async def _refresh_product(
        self, product_id: UUID, name: str, barcode: str
    ) -> RefreshItemResult:
        try:
            raw_product = await self.openfoodfacts_client.get_product(barcode)
            if raw_product is None:
                return RefreshItemResult(
                    product_id=product_id,
                    name=name,
                    status="skipped",
                    error="Not found upstream",
                )
            refreshed = normalize_openfoodfacts(raw_product)
            await asyncio.to_thread(
                self.repository.update_nutrition, product_id, refreshed
            )
        except Exception as exc:
            _logger.warning(
                "Failed to refresh product: product_id=%s error=%s", product_id, exc
            )
            return RefreshItemResult(
                product_id=product_id, name=name, status="error", error=str(exc)
            )
        return RefreshItemResult(product_id=product_id, name=name, status="updated")
