"""In-memory search result cache."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from food_catalog.domain.products import Product

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 50


class SearchCache(Protocol):
    """Cache interface for product search results."""

    def get(self, query: str) -> list[Product] | None:
        """Return cached results if present and not expired."""

    def set(self, query: str, results: list[Product]) -> None:
        """Store results for a query."""

    def clear(self) -> None:
        """Remove every entry."""

    def cleanup(self) -> int:
        """Remove expired entries and return how many were removed."""


@dataclass
class _CacheEntry:
    results: list[Product]
    inserted_at: datetime


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class InMemorySearchCache(SearchCache):
    """Process-local cache with a TTL and FIFO eviction.

    Eviction removes the oldest inserted entry, even if it was read recently.
    Expired entries are hidden by ``get`` but only dropped by ``cleanup``.
    The cache is not thread-safe; it is meant to live on one event loop.
    """

    ttl_seconds: int = DEFAULT_TTL_SECONDS
    max_entries: int = DEFAULT_MAX_ENTRIES
    clock: Callable[[], datetime] = _utcnow
    _entries: dict[str, _CacheEntry] = field(
        default_factory=dict, init=False, repr=False
    )

    def get(self, query: str) -> list[Product] | None:
        """Return cached results if they haven't expired."""
        entry = self._entries.get(_normalize_query(query))
        if entry is None or self._is_expired(entry, self.clock()):
            return None
        return entry.results

    def set(self, query: str, results: list[Product]) -> None:
        """Store results, evicting the oldest entry when full."""
        key = _normalize_query(query)
        if key in self._entries:
            # Re-inserting moves the key to the back of the FIFO order.
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
        self._entries[key] = _CacheEntry(
            results=list(results), inserted_at=self.clock()
        )

    def clear(self) -> None:
        """Remove every cached entry."""
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop expired entries."""
        now = self.clock()
        expired = [
            key for key, entry in self._entries.items() if self._is_expired(entry, now)
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: _CacheEntry, now: datetime) -> bool:
        return now >= entry.inserted_at + timedelta(seconds=self.ttl_seconds)


def _normalize_query(query: str) -> str:
    return query.strip().lower()
