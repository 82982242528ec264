"""Tests for the HTTP API."""

from fastapi.testclient import TestClient

from food_catalog.api.app import create_app
from tests.conftest import (
    FakeFatSecretClient,
    FakeOpenFoodFactsClient,
    InMemoryProductRepository,
    fatsecret_food,
    local_product,
    off_product,
)

_ADMIN_HEADERS = {"X-Admin-Token": "admin-token"}


def test_health_endpoint(container) -> None:
    with TestClient(create_app(container)) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_search_endpoint_returns_products(
    container,
    product_repository: InMemoryProductRepository,
    fatsecret_client: FakeFatSecretClient,
) -> None:
    product_repository.add(local_product("Chicken Salad"))
    fatsecret_client.foods.append(fatsecret_food("33691", "Chicken Breast"))

    with TestClient(create_app(container)) as client:
        response = client.get("/products/search", params={"q": "chicken", "limit": 5})

    assert response.status_code == 200
    products = response.json()["products"]
    assert [product["name"] for product in products] == [
        "Chicken Salad",
        "Chicken Breast",
    ]
    assert products[1]["source"] == "fatsecret"
    assert products[1]["calories_per_100g"] == 165
    assert len(product_repository.products) == 2


def test_search_endpoint_ignores_short_queries(
    container, fatsecret_client: FakeFatSecretClient
) -> None:
    with TestClient(create_app(container)) as client:
        response = client.get("/products/search", params={"q": "a"})

    assert response.json() == {"products": []}
    assert fatsecret_client.calls == []


def test_barcode_endpoint(
    container, openfoodfacts_client: FakeOpenFoodFactsClient
) -> None:
    openfoodfacts_client.products.append(off_product("3017620422003", "Nutella"))

    with TestClient(create_app(container)) as client:
        found = client.get("/products/barcode/3017620422003")
        missing = client.get("/products/barcode/0000000000000")

    assert found.status_code == 200
    assert found.json()["barcode"] == "3017620422003"
    assert missing.status_code == 404


def test_use_endpoint_increments_usage(
    container, product_repository: InMemoryProductRepository
) -> None:
    stored = product_repository.add(local_product("Oats"))

    with TestClient(create_app(container)) as client:
        response = client.post(f"/products/{stored.id}/use")

    assert response.status_code == 200
    assert product_repository.usage[stored.id] == 1


def test_admin_endpoints_require_token(container) -> None:
    with TestClient(create_app(container)) as client:
        missing = client.get("/admin/metrics")
        wrong = client.get("/admin/metrics", headers={"X-Admin-Token": "nope"})

    assert missing.status_code == 401
    assert wrong.status_code == 401


def test_admin_config_health(container) -> None:
    with TestClient(create_app(container)) as client:
        response = client.get("/admin/config-health", headers=_ADMIN_HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["healthy"] is True
    assert data["issues"] == []


def test_admin_metrics_reports_searches(
    container, fatsecret_client: FakeFatSecretClient
) -> None:
    fatsecret_client.foods.append(fatsecret_food("1", "Lentils"))

    with TestClient(create_app(container)) as client:
        client.get("/products/search", params={"q": "lentils"})
        response = client.get("/admin/metrics", headers=_ADMIN_HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["metrics"]["searches"] == {"fatsecret": 1}
    assert "pending_write_backs" in data


def test_admin_refresh_popular(
    container,
    product_repository: InMemoryProductRepository,
    openfoodfacts_client: FakeOpenFoodFactsClient,
) -> None:
    stored = product_repository.add(
        local_product("Nutella", source="openfoodfacts", barcode="3017620422003"),
        usage_count=4,
    )
    openfoodfacts_client.products.append(
        off_product("3017620422003", "Nutella", kcal=539)
    )

    with TestClient(create_app(container)) as client:
        response = client.post("/admin/refresh-popular", headers=_ADMIN_HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["updated"] == 1
    assert data["results"][0]["product_id"] == str(stored.id)
    assert product_repository.products[stored.id].calories_per_100g == 539
