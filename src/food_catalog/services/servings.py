"""Serving size resolution to a 100 g / 100 ml reference."""

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import replace

from food_catalog.domain.products import RawServing

_METRIC_UNITS = {"g", "ml"}
_REFERENCE_AMOUNT = 100.0

_logger = logging.getLogger(__name__)


def resolve_to_100(servings: Sequence[RawServing]) -> RawServing | None:
    """Find or compute the serving equivalent to 100 g or 100 ml.

    Strategy, in order:

    1. a serving of exactly 100 in ``g`` or ``ml`` is returned as is;
    2. the first metric serving with a positive amount is scaled to 100;
    3. the first serving of any unit is scaled to 100 as an estimate.

    Returns ``None`` when nothing usable is available.
    """
    if not servings:
        _logger.warning("No servings provided")
        return None

    for serving in servings:
        if serving.amount == _REFERENCE_AMOUNT and _is_metric(serving.unit):
            return serving

    for serving in servings:
        if _is_metric(serving.unit) and serving.amount > 0:
            _logger.debug(
                "Scaling metric serving to 100: amount=%s unit=%s",
                serving.amount,
                serving.unit,
            )
            return scale_serving(serving, description="100g")

    first = servings[0]
    if first.amount > 0:
        _logger.debug(
            "Scaling first serving to 100 (estimated): amount=%s unit=%s",
            first.amount,
            first.unit,
        )
        return scale_serving(
            first, description="100g (estimated)", unit=first.unit or "g"
        )

    _logger.warning("Unable to calculate 100g serving from %s servings", len(servings))
    return None


def scale_serving(
    serving: RawServing, *, description: str, unit: str | None = None
) -> RawServing:
    """Scale every nutrient of ``serving`` proportionally to 100 units."""
    factor = _REFERENCE_AMOUNT / serving.amount
    return replace(
        serving,
        amount=_REFERENCE_AMOUNT,
        unit=unit or serving.unit,
        description=description,
        calories=_scaled(serving.calories, factor),
        protein=_scaled(serving.protein, factor),
        fat=_scaled(serving.fat, factor),
        carbs=_scaled(serving.carbs, factor),
        saturated_fat=_scaled_optional(serving.saturated_fat, factor),
        fiber=_scaled_optional(serving.fiber, factor),
        sugar=_scaled_optional(serving.sugar, factor),
        sodium=_scaled_optional(serving.sodium, factor),
    )


def parse_fatsecret_serving(raw: Mapping[str, object]) -> RawServing:
    """Convert a FatSecret serving (string-typed fields) into a ``RawServing``."""
    unit = raw.get("metric_serving_unit")
    return RawServing(
        amount=parse_number(raw.get("metric_serving_amount")),
        unit=str(unit).strip().lower() if unit else None,
        calories=parse_number(raw.get("calories")),
        protein=parse_number(raw.get("protein")),
        fat=parse_number(raw.get("fat")),
        carbs=parse_number(raw.get("carbohydrate")),
        saturated_fat=parse_optional_number(raw.get("saturated_fat")),
        fiber=parse_optional_number(raw.get("fiber")),
        sugar=parse_optional_number(raw.get("sugar")),
        sodium=parse_optional_number(raw.get("sodium")),
        description=_optional_str(raw.get("serving_description")),
        serving_id=_optional_str(raw.get("serving_id")),
    )


def parse_number(value: object) -> float:
    """Parse a numeric value, mapping missing or invalid input to 0."""
    parsed = parse_optional_number(value)
    return parsed if parsed is not None else 0.0


def parse_optional_number(value: object) -> float | None:
    """Parse a numeric value, returning ``None`` when absent or invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _is_metric(unit: str | None) -> bool:
    return bool(unit) and unit.strip().lower() in _METRIC_UNITS


def _scaled(value: float, factor: float) -> float:
    return round(value * factor, 2)


def _scaled_optional(value: float | None, factor: float) -> float | None:
    return None if value is None else _scaled(value, factor)


def _optional_str(value: object) -> str | None:
    return str(value) if value is not None and value != "" else None
