"""Normalization of upstream records into canonical products."""

import logging
from collections.abc import Callable, Mapping

from food_catalog.domain.errors import ProductNormalizationError
from food_catalog.domain.products import Product
from food_catalog.services.servings import (
    parse_fatsecret_serving,
    parse_number,
    parse_optional_number,
    resolve_to_100,
)

_IMAGE_PRIORITY = ("front", "product", "nutrition", "ingredients")

_KJ_PER_KCAL = 4.184

_USDA_NUTRIENT_IDS = {
    "calories": 1008,
    "protein": 1003,
    "fat": 1004,
    "carbs": 1005,
}

_logger = logging.getLogger(__name__)


def normalize(raw: Mapping[str, object], source: str) -> Product:
    """Convert a raw upstream record into a ``Product``.

    Raises ``ProductNormalizationError`` when the record cannot identify a
    product (no name or no source id) or when its nutrition is unusable.
    """
    normalizer = _NORMALIZERS.get(source)
    if normalizer is None:
        raise ProductNormalizationError(f"Unsupported product source: {source}")
    if not isinstance(raw, Mapping):
        raise ProductNormalizationError(
            f"Invalid {source} record: expected an object, got {type(raw).__name__}"
        )
    try:
        return normalizer(raw)
    except ProductNormalizationError:
        raise
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise ProductNormalizationError(f"Malformed {source} record: {exc}") from exc


def normalize_fatsecret(food: Mapping[str, object]) -> Product:
    """Normalize a FatSecret food with its servings."""
    food_id = _text(food.get("food_id"))
    name = _text(food.get("food_name"))
    if not food_id or not name:
        raise ProductNormalizationError(
            "Invalid FatSecret food: missing required fields (food_id, food_name)"
        )

    servings_container = food.get("servings") or {}
    raw_servings = (
        servings_container.get("serving")
        if isinstance(servings_container, Mapping)
        else None
    )
    servings = [
        parse_fatsecret_serving(serving)
        for serving in as_list(raw_servings)
        if isinstance(serving, Mapping)
    ]
    if not servings:
        raise ProductNormalizationError(f"No servings available for food: {name}")

    reference = resolve_to_100(servings)
    if reference is None:
        raise ProductNormalizationError(
            f"Unable to calculate 100g serving for food: {name}"
        )

    _logger.debug(
        "Normalized FatSecret food: food_id=%s servings=%s", food_id, len(servings)
    )
    return Product(
        name=name,
        brand=_text(food.get("brand_name")),
        barcode=None,
        calories_per_100g=_non_negative(reference.calories),
        protein_per_100g=_non_negative(reference.protein),
        fats_per_100g=_non_negative(reference.fat),
        carbs_per_100g=_non_negative(reference.carbs),
        source="fatsecret",
        source_id=food_id,
        image_url=extract_image_url(food.get("food_images")),
    )


def normalize_openfoodfacts(product: Mapping[str, object]) -> Product:
    """Normalize an Open Food Facts product (nutriments are per 100 g)."""
    code = _text(product.get("code"))
    name = _text(product.get("product_name")) or _text(
        product.get("product_name_en")
    )
    if not code or not name:
        raise ProductNormalizationError(
            "Invalid Open Food Facts product: missing required fields "
            "(code, product_name)"
        )

    nutriments = product.get("nutriments") or {}
    if not isinstance(nutriments, Mapping):
        nutriments = {}
    calories = parse_optional_number(nutriments.get("energy-kcal_100g"))
    if calories is None:
        energy_kj = parse_optional_number(nutriments.get("energy_100g"))
        calories = energy_kj / _KJ_PER_KCAL if energy_kj is not None else 0.0

    return Product(
        name=name,
        brand=_text(product.get("brands")),
        barcode=code,
        calories_per_100g=_non_negative(round(calories, 2)),
        protein_per_100g=_non_negative(parse_number(nutriments.get("proteins_100g"))),
        fats_per_100g=_non_negative(parse_number(nutriments.get("fat_100g"))),
        carbs_per_100g=_non_negative(
            parse_number(nutriments.get("carbohydrates_100g"))
        ),
        source="openfoodfacts",
        source_id=code,
        image_url=_text(product.get("image_url"))
        or _text(product.get("image_front_url")),
    )


def normalize_usda(food: Mapping[str, object]) -> Product:
    """Normalize a USDA FoodData Central food (nutrients per 100 g)."""
    fdc_id = _text(food.get("fdcId"))
    name = _text(food.get("description"))
    if not fdc_id or not name:
        raise ProductNormalizationError(
            "Invalid USDA food: missing required fields (fdcId, description)"
        )

    macros = _extract_usda_macros(as_list(food.get("foodNutrients")))
    return Product(
        name=name,
        brand=_text(food.get("brandName")) or _text(food.get("brandOwner")),
        barcode=_text(food.get("gtinUpc")),
        calories_per_100g=macros["calories"],
        protein_per_100g=macros["protein"],
        fats_per_100g=macros["fat"],
        carbs_per_100g=macros["carbs"],
        source="usda",
        source_id=fdc_id,
        image_url=None,
    )


def extract_image_url(images: object) -> str | None:
    """Pick the most relevant FatSecret image, by image type priority."""
    if not isinstance(images, Mapping):
        return None
    candidates = [
        image
        for image in as_list(images.get("food_image"))
        if isinstance(image, Mapping)
    ]
    if not candidates:
        return None

    for priority in _IMAGE_PRIORITY:
        for image in candidates:
            image_type = str(image.get("image_type") or "").lower()
            if priority in image_type and image.get("image_url"):
                return str(image["image_url"])

    for image in candidates:
        if image.get("image_url"):
            return str(image["image_url"])
    return None


def as_list(value: object) -> list[object]:
    """Return upstream "one or many" values as a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _extract_usda_macros(food_nutrients: list[object]) -> dict[str, float]:
    """Extract calories, protein, fat, carbs from FDC nutrients."""
    values = dict.fromkeys(_USDA_NUTRIENT_IDS, 0.0)
    by_id = {nutrient_id: key for key, nutrient_id in _USDA_NUTRIENT_IDS.items()}
    for nutrient in food_nutrients:
        if not isinstance(nutrient, Mapping):
            continue
        nutrient_info = nutrient.get("nutrient") or {}
        nutrient_id = (
            nutrient_info.get("id") if isinstance(nutrient_info, Mapping) else None
        ) or nutrient.get("nutrientId")
        key = by_id.get(nutrient_id)
        if key is None:
            continue
        amount = nutrient.get("amount", nutrient.get("value"))
        values[key] = _non_negative(parse_number(amount))
    return values


def _non_negative(value: float) -> float:
    return max(float(value), 0.0)


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


_NORMALIZERS: dict[str, Callable[[Mapping[str, object]], Product]] = {
    "fatsecret": normalize_fatsecret,
    "openfoodfacts": normalize_openfoodfacts,
    "usda": normalize_usda,
}
