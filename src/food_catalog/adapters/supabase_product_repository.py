"""Supabase implementation of the shared product table."""

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from food_catalog.domain.products import PRODUCT_SOURCES, Product, ProductRow
from food_catalog.services.catalog import ProductRepository

_TABLE = "products"

# Characters that would break a PostgREST ``or`` filter expression.
_FILTER_UNSAFE = re.compile(r"[,()%*_\\]")


@dataclass
class SupabaseProductRepository(ProductRepository):
    """Supabase-backed repository for products."""

    client: Client

    def search_products(self, query: str, limit: int) -> list[Product]:
        """Search products by name or brand, most used and newest first."""
        term = _FILTER_UNSAFE.sub(" ", query).strip()
        if not term:
            return []
        pattern = f"%{term}%"
        response = (
            self.client.table(_TABLE)
            .select("*")
            .or_(f"name.ilike.{pattern},brand.ilike.{pattern}")
            .order("usage_count", desc=True)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_product(row) for row in response.data or []]

    def find_id_by_natural_key(self, source: str, source_id: str) -> UUID | None:
        """Return the id of the product with this source and source id."""
        response = (
            self.client.table(_TABLE)
            .select("id")
            .eq("source", source)
            .eq("source_id", source_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return UUID(str(response.data[0]["id"]))

    def find_id_by_barcode(self, barcode: str) -> UUID | None:
        """Return the id of the product with this barcode."""
        response = (
            self.client.table(_TABLE)
            .select("id")
            .eq("barcode", barcode)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return UUID(str(response.data[0]["id"]))

    def get_by_barcode(self, barcode: str) -> Product | None:
        """Return the product with this barcode, if present."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("barcode", barcode)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_product(response.data[0])

    def insert_product(self, product: Product) -> UUID:
        """Insert a product and return its id."""
        response = (
            self.client.table(_TABLE).insert(_product_payload(product)).execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create product")
        return UUID(str(response.data[0]["id"]))

    def increment_usage(self, product_id: UUID) -> None:
        """Increment the usage counter of a product."""
        response = (
            self.client.table(_TABLE)
            .select("usage_count")
            .eq("id", str(product_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return
        current = int(response.data[0].get("usage_count") or 0)
        self.client.table(_TABLE).update({"usage_count": current + 1}).eq(
            "id", str(product_id)
        ).execute()

    def list_popular(self, source: str, limit: int) -> list[ProductRow]:
        """Return the most used products of a source that carry a barcode."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("source", source)
            .not_.is_("barcode", "null")
            .order("usage_count", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_row(row) for row in response.data or []]

    def update_nutrition(self, product_id: UUID, product: Product) -> None:
        """Overwrite the stored macros and image of a product."""
        self.client.table(_TABLE).update(
            {
                "calories_per_100g": product.calories_per_100g,
                "protein_per_100g": product.protein_per_100g,
                "fats_per_100g": product.fats_per_100g,
                "carbs_per_100g": product.carbs_per_100g,
                "image_url": product.image_url,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).eq("id", str(product_id)).execute()


def _product_payload(product: Product) -> dict[str, object]:
    return {
        "name": product.name,
        "brand": product.brand,
        "barcode": product.barcode,
        "calories_per_100g": product.calories_per_100g,
        "protein_per_100g": product.protein_per_100g,
        "fats_per_100g": product.fats_per_100g,
        "carbs_per_100g": product.carbs_per_100g,
        "source": product.source,
        "source_id": product.source_id,
        "image_url": product.image_url,
    }


def _parse_product(row: dict[str, object]) -> Product:
    """Parse a product row into a domain model."""
    source = row.get("source")
    raw_id = row.get("id")
    return Product(
        id=UUID(str(raw_id)) if raw_id else None,
        name=str(row.get("name") or ""),
        brand=row.get("brand"),
        barcode=row.get("barcode"),
        calories_per_100g=float(row.get("calories_per_100g") or 0.0),
        protein_per_100g=float(row.get("protein_per_100g") or 0.0),
        fats_per_100g=float(row.get("fats_per_100g") or 0.0),
        carbs_per_100g=float(row.get("carbs_per_100g") or 0.0),
        source=source if source in PRODUCT_SOURCES else "user",
        source_id=row.get("source_id"),
        image_url=row.get("image_url"),
    )


def _parse_row(row: dict[str, object]) -> ProductRow:
    return ProductRow(
        product=_parse_product(row),
        usage_count=int(row.get("usage_count") or 0),
    )
