"""Domain models for popular product refreshes."""

from dataclasses import dataclass, field
from typing import Literal
from uuid import UUID

RefreshStatus = Literal["updated", "skipped", "error"]


@dataclass(frozen=True)
class RefreshItemResult:
    """Outcome of refreshing a single stored product."""

    product_id: UUID | None
    name: str
    status: RefreshStatus
    error: str | None = None


@dataclass
class RefreshReport:
    """Summary of a popular product refresh run."""

    updated: int = 0
    skipped: int = 0
    errors: int = 0
    total: int = 0
    results: list[RefreshItemResult] = field(default_factory=list)
