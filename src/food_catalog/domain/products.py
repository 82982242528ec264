"""Domain models for the product catalog."""

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

ProductSource = Literal["user", "openfoodfacts", "fatsecret", "usda"]

PRODUCT_SOURCES: tuple[str, ...] = ("user", "openfoodfacts", "fatsecret", "usda")


@dataclass
class Product:
    """Canonical product with macros per 100 g (or 100 ml).

    Instances built from upstream responses are fresh per response. The
    resolver only ever tags a barcode on a primary hit and assigns ``id``
    once a write-back succeeds.
    """

    name: str
    source: ProductSource
    calories_per_100g: float = 0.0
    protein_per_100g: float = 0.0
    fats_per_100g: float = 0.0
    carbs_per_100g: float = 0.0
    brand: str | None = None
    barcode: str | None = None
    source_id: str | None = None
    image_url: str | None = None
    id: UUID | None = None


@dataclass(frozen=True)
class ProductRow:
    """Persisted product together with its usage counter."""

    product: Product
    usage_count: int


@dataclass(frozen=True)
class RawServing:
    """Upstream serving with macros scoped to ``amount`` of ``unit``."""

    amount: float
    unit: str | None
    calories: float
    protein: float
    fat: float
    carbs: float
    saturated_fat: float | None = None
    fiber: float | None = None
    sugar: float | None = None
    sodium: float | None = None
    description: str | None = None
    serving_id: str | None = None
