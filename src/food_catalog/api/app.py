"""FastAPI application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from uuid import UUID

from fastapi import FastAPI, HTTPException, Query, Request, status

from food_catalog.api.admin import router as admin_router
from food_catalog.app_logging import configure_logging
from food_catalog.containers import AppContainer
from food_catalog.domain.products import Product


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/products/search")
    async def search_products(
        request: Request,
        q: str = Query(default=""),
        limit: int | None = Query(default=None, ge=1, le=100),
    ) -> dict[str, object]:
        """Search products across the local store and external sources."""
        state_container: AppContainer = request.app.state.container
        products = await state_container.product_resolver.resolve(q, limit)
        return {"products": [_serialize_product(product) for product in products]}

    @app.get("/products/barcode/{barcode}")
    async def product_by_barcode(barcode: str, request: Request) -> dict[str, object]:
        """Look up a product by barcode."""
        state_container: AppContainer = request.app.state.container
        product = await state_container.product_resolver.resolve_by_barcode(barcode)
        if product is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Product not found"
            )
        return _serialize_product(product)

    @app.post("/products/{product_id}/use")
    async def use_product(product_id: UUID, request: Request) -> dict[str, str]:
        """Record that a stored product was picked."""
        state_container: AppContainer = request.app.state.container
        await state_container.product_resolver.record_use(product_id)
        return {"status": "ok"}

    return app


def _serialize_product(product: Product) -> dict[str, object]:
    payload = asdict(product)
    payload["id"] = str(product.id) if product.id is not None else None
    return payload
