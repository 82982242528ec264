"""Tests for serving resolution."""

import pytest

from food_catalog.domain.products import RawServing
from food_catalog.services.servings import (
    parse_fatsecret_serving,
    parse_optional_number,
    resolve_to_100,
)


def _serving(amount: float, unit: str | None, calories: float) -> RawServing:
    return RawServing(
        amount=amount, unit=unit, calories=calories, protein=10, fat=4, carbs=20
    )


def test_exact_reference_serving_is_returned_unchanged() -> None:
    reference = _serving(100, "g", 250)

    result = resolve_to_100([_serving(30, "g", 75), reference])

    assert result is reference


def test_metric_serving_is_scaled_to_100() -> None:
    result = resolve_to_100([_serving(50, "g", 100)])

    assert result is not None
    assert result.amount == 100
    assert result.calories == pytest.approx(200)
    assert result.protein == pytest.approx(20)
    assert result.description == "100g"


def test_millilitre_serving_is_scaled_down() -> None:
    result = resolve_to_100([_serving(200, "ml", 150)])

    assert result is not None
    assert result.unit == "ml"
    assert result.calories == pytest.approx(75)
    assert result.carbs == pytest.approx(10)


def test_non_metric_serving_is_used_as_estimate() -> None:
    result = resolve_to_100([_serving(2, "oz", 60)])

    assert result is not None
    assert result.calories == pytest.approx(3000)
    assert result.description == "100g (estimated)"


def test_metric_serving_preferred_over_earlier_non_metric() -> None:
    result = resolve_to_100([_serving(1, "cup", 300), _serving(25, "g", 40)])

    assert result is not None
    assert result.calories == pytest.approx(160)


def test_unusable_servings_resolve_to_none() -> None:
    assert resolve_to_100([]) is None
    assert resolve_to_100([_serving(0, "g", 100), _serving(0, None, 5)]) is None


def test_optional_nutrients_are_scaled() -> None:
    serving = RawServing(
        amount=50, unit="g", calories=100, protein=5, fat=2, carbs=10, fiber=1.5
    )

    result = resolve_to_100([serving])

    assert result is not None
    assert result.fiber == pytest.approx(3)
    assert result.sugar is None


def test_parse_fatsecret_serving_reads_string_fields() -> None:
    serving = parse_fatsecret_serving(
        {
            "serving_id": "42",
            "serving_description": "1 cup",
            "metric_serving_amount": "240.000",
            "metric_serving_unit": "ML",
            "calories": "120",
            "protein": "8.05",
            "fat": "",
            "carbohydrate": "11.71",
            "sugar": "12.35",
        }
    )

    assert serving.amount == pytest.approx(240)
    assert serving.unit == "ml"
    assert serving.fat == 0
    assert serving.carbs == pytest.approx(11.71)
    assert serving.sugar == pytest.approx(12.35)
    assert serving.fiber is None
    assert serving.serving_id == "42"


def test_parse_optional_number_rejects_invalid_values() -> None:
    assert parse_optional_number("abc") is None
    assert parse_optional_number("nan") is None
    assert parse_optional_number(True) is None
    assert parse_optional_number(" 3.5 ") == pytest.approx(3.5)
