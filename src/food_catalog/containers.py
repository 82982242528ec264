"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from food_catalog.adapters.fatsecret_auth import FatSecretAuthManager
from food_catalog.adapters.fatsecret_client import HttpxFatSecretClient
from food_catalog.adapters.openfoodfacts_client import HttpxOpenFoodFactsClient
from food_catalog.adapters.supabase_product_repository import (
    SupabaseProductRepository,
)
from food_catalog.config import Settings, fatsecret_config
from food_catalog.services.cache import InMemorySearchCache
from food_catalog.services.catalog import ProductCatalog
from food_catalog.services.metrics import ResolutionMetrics
from food_catalog.services.products import ProductResolver
from food_catalog.services.refresh import ProductRefreshService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    product_catalog: ProductCatalog
    product_resolver: ProductResolver
    refresh_service: ProductRefreshService
    metrics: ResolutionMetrics
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    product_repository = SupabaseProductRepository(supabase_client)
    product_catalog = ProductCatalog(product_repository)
    metrics = ResolutionMetrics()

    config = fatsecret_config(resolved_settings)
    auth_manager: FatSecretAuthManager | None = None
    fatsecret_client: HttpxFatSecretClient | None = None
    if config.enabled:
        auth_manager = FatSecretAuthManager.create(
            client_id=config.client_id,
            client_secret=config.client_secret,
            token_url=config.token_url,
            metrics=metrics,
        )
        fatsecret_client = HttpxFatSecretClient.create(
            config, token_provider=auth_manager, metrics=metrics
        )
    openfoodfacts_client = HttpxOpenFoodFactsClient.create(
        base_url=resolved_settings.openfoodfacts_base_url,
        user_agent=resolved_settings.openfoodfacts_user_agent,
    )

    product_resolver = ProductResolver(
        catalog=product_catalog,
        fatsecret_client=fatsecret_client,
        openfoodfacts_client=openfoodfacts_client,
        cache=InMemorySearchCache() if resolved_settings.search_cache_enabled else None,
        metrics=metrics,
        default_limit=config.max_results,
        primary_enabled=config.enabled,
        fallback_enabled=config.fallback_enabled,
    )
    refresh_service = ProductRefreshService(
        repository=product_repository,
        openfoodfacts_client=openfoodfacts_client,
    )

    async def close_resources() -> None:
        await product_resolver.drain()
        if fatsecret_client is not None:
            await fatsecret_client.close()
        if auth_manager is not None:
            await auth_manager.close()
        await openfoodfacts_client.close()

    return AppContainer(
        settings=resolved_settings,
        product_catalog=product_catalog,
        product_resolver=product_resolver,
        refresh_service=refresh_service,
        metrics=metrics,
        close_resources=close_resources,
    )
