"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from food_catalog.config import config_health

if TYPE_CHECKING:
    from food_catalog.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/config-health", dependencies=[Depends(require_admin)])
async def fatsecret_config_health(request: Request) -> dict[str, object]:
    """Report FatSecret configuration issues without calling the API."""
    container: AppContainer = request.app.state.container
    return asdict(config_health(container.settings))


@router.get("/metrics", dependencies=[Depends(require_admin)])
async def resolution_metrics(request: Request) -> dict[str, object]:
    """Return product resolution counters."""
    container: AppContainer = request.app.state.container
    return {
        "metrics": container.metrics.snapshot(),
        "pending_write_backs": container.product_resolver.pending_write_backs,
    }


@router.post("/refresh-popular", dependencies=[Depends(require_admin)])
async def refresh_popular(
    request: Request, limit: int = Query(default=100, ge=1, le=1000)
) -> dict[str, object]:
    """Refresh nutrition data of the most used Open Food Facts products."""
    container: AppContainer = request.app.state.container
    report = await container.refresh_service.refresh_popular(limit)
    payload = asdict(report)
    payload["results"] = [
        {
            **result,
            "product_id": str(result["product_id"]) if result["product_id"] else None,
        }
        for result in payload["results"]
    ]
    return payload
