"""Local product catalog backed by the persistent store."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from food_catalog.domain.products import Product, ProductRow

_logger = logging.getLogger(__name__)


class ProductRepository(Protocol):
    """Persistence interface for the shared product table."""

    def search_products(self, query: str, limit: int) -> list[Product]:
        """Search products by name or brand, most used and newest first."""

    def find_id_by_natural_key(self, source: str, source_id: str) -> UUID | None:
        """Return the id of the product with this source and source id."""

    def find_id_by_barcode(self, barcode: str) -> UUID | None:
        """Return the id of the product with this barcode."""

    def get_by_barcode(self, barcode: str) -> Product | None:
        """Return the product with this barcode, if present."""

    def insert_product(self, product: Product) -> UUID:
        """Insert a product and return its id."""

    def increment_usage(self, product_id: UUID) -> None:
        """Increment the usage counter of a product."""

    def list_popular(self, source: str, limit: int) -> list[ProductRow]:
        """Return the most used products of a source that carry a barcode."""

    def update_nutrition(self, product_id: UUID, product: Product) -> None:
        """Overwrite the stored macros and image of a product."""


@dataclass
class ProductCatalog:
    """Best-effort access to the local product store.

    Reads degrade to empty results and writes are advisory: failures are
    logged here and never reach the caller.
    """

    repository: ProductRepository

    async def search(self, query: str, limit: int) -> list[Product]:
        """Search stored products; returns an empty list on failure."""
        try:
            return await asyncio.to_thread(
                self.repository.search_products, query, limit
            )
        except Exception:
            _logger.warning(
                "Product store search failed: query=%s", query, exc_info=True
            )
            return []

    async def find_by_natural_key(self, source: str, source_id: str) -> UUID | None:
        """Return the id stored for ``(source, source_id)``, if any."""
        try:
            return await asyncio.to_thread(
                self.repository.find_id_by_natural_key, source, source_id
            )
        except Exception:
            _logger.warning(
                "Product store lookup failed: source=%s source_id=%s",
                source,
                source_id,
                exc_info=True,
            )
            return None

    async def find_by_barcode(self, barcode: str) -> UUID | None:
        """Return the id stored for a barcode, if any."""
        try:
            return await asyncio.to_thread(self.repository.find_id_by_barcode, barcode)
        except Exception:
            _logger.warning(
                "Product store barcode lookup failed: barcode=%s",
                barcode,
                exc_info=True,
            )
            return None

    async def get_by_barcode(self, barcode: str) -> Product | None:
        """Return the stored product for a barcode, if any."""
        try:
            return await asyncio.to_thread(self.repository.get_by_barcode, barcode)
        except Exception:
            _logger.warning(
                "Product store barcode read failed: barcode=%s", barcode, exc_info=True
            )
            return None

    async def insert(self, product: Product) -> UUID | None:
        """Insert a product; returns ``None`` if the store rejects it."""
        try:
            return await asyncio.to_thread(self.repository.insert_product, product)
        except Exception:
            _logger.warning(
                "Product store insert failed: source=%s source_id=%s name=%s",
                product.source,
                product.source_id,
                product.name,
                exc_info=True,
            )
            return None

    async def increment_usage(self, product_id: UUID) -> None:
        """Increment the usage counter, ignoring store failures."""
        try:
            await asyncio.to_thread(self.repository.increment_usage, product_id)
        except Exception:
            _logger.warning(
                "Product usage increment failed: product_id=%s",
                product_id,
                exc_info=True,
            )

    async def save(self, product: Product) -> UUID | None:
        """Store a product once, bumping usage when it already exists.

        Existing rows are matched by ``(source, source_id)`` first, then by
        barcode. The check and the insert are separate calls, so two
        concurrent saves of the same new product can both insert.
        """
        existing_id: UUID | None = None
        if product.source_id and product.source:
            existing_id = await self.find_by_natural_key(
                product.source, product.source_id
            )
        if existing_id is None and product.barcode:
            existing_id = await self.find_by_barcode(product.barcode)

        if existing_id is not None:
            await self.increment_usage(existing_id)
            _logger.debug(
                "Product already stored, usage incremented: product_id=%s",
                existing_id,
            )
            return existing_id

        product_id = await self.insert(product)
        if product_id is not None:
            _logger.debug(
                "Product stored: product_id=%s source=%s name=%s",
                product_id,
                product.source,
                product.name,
            )
        return product_id
