"""In-process counters for product resolution."""

from collections import Counter
from dataclasses import dataclass, field


@dataclass
class ResolutionMetrics:
    """Tracks upstream calls, fallbacks, cache hits and lookup sources."""

    api_calls: Counter[tuple[str, str]] = field(default_factory=Counter)
    api_response_seconds: dict[str, list[float]] = field(default_factory=dict)
    fallbacks: Counter[tuple[str, str]] = field(default_factory=Counter)
    cache_requests: Counter[tuple[str, str]] = field(default_factory=Counter)
    searches: Counter[str] = field(default_factory=Counter)
    search_results: Counter[str] = field(default_factory=Counter)
    barcode_lookups: Counter[str] = field(default_factory=Counter)
    token_refreshes: Counter[str] = field(default_factory=Counter)

    def record_api_call(
        self, method: str, success: bool, elapsed_seconds: float
    ) -> None:
        """Record one upstream API call and its latency."""
        self.api_calls[(method, "success" if success else "error")] += 1
        self.api_response_seconds.setdefault(method, []).append(elapsed_seconds)

    def record_fallback(self, reason: str, source: str = "openfoodfacts") -> None:
        """Record a switch from the primary API to a fallback source."""
        self.fallbacks[(reason, source)] += 1

    def record_cache(self, hit: bool, cache_type: str = "database") -> None:
        """Record a cache lookup outcome."""
        self.cache_requests[(cache_type, "hit" if hit else "miss")] += 1

    def record_search(self, source: str, results_count: int) -> None:
        """Record which source answered a search and with how many items."""
        self.searches[source] += 1
        self.search_results[source] += results_count

    def record_barcode_lookup(self, source: str) -> None:
        """Record where a barcode lookup was answered (or ``not_found``)."""
        self.barcode_lookups[source] += 1

    def record_token_refresh(self, success: bool) -> None:
        """Record an OAuth token refresh attempt."""
        self.token_refreshes["success" if success else "error"] += 1

    def cache_hit_rate(self, cache_type: str | None = None) -> float:
        """Share of cache lookups that were hits."""
        hits = misses = 0
        for (kind, result), count in self.cache_requests.items():
            if cache_type is not None and kind != cache_type:
                continue
            if result == "hit":
                hits += count
            else:
                misses += count
        total = hits + misses
        return hits / total if total else 0.0

    def fallback_rate(self) -> float:
        """Fallback activations per primary API call."""
        total_calls = sum(self.api_calls.values())
        total_fallbacks = sum(self.fallbacks.values())
        return total_fallbacks / total_calls if total_calls else 0.0

    def snapshot(self) -> dict[str, object]:
        """Return a JSON-friendly view of all counters."""
        return {
            "api_calls": _flatten(self.api_calls, ("method", "status")),
            "api_response_seconds": {
                method: {
                    "count": len(samples),
                    "avg": sum(samples) / len(samples) if samples else 0.0,
                    "max": max(samples, default=0.0),
                }
                for method, samples in self.api_response_seconds.items()
            },
            "fallbacks": _flatten(self.fallbacks, ("reason", "fallback_source")),
            "cache_requests": _flatten(self.cache_requests, ("cache_type", "result")),
            "searches": dict(self.searches),
            "search_results": dict(self.search_results),
            "barcode_lookups": dict(self.barcode_lookups),
            "token_refreshes": dict(self.token_refreshes),
            "cache_hit_rate": self.cache_hit_rate(),
            "fallback_rate": self.fallback_rate(),
        }


def _flatten(
    counter: Counter[tuple[str, str]], labels: tuple[str, str]
) -> list[dict[str, object]]:
    return [
        {labels[0]: first, labels[1]: second, "value": count}
        for (first, second), count in sorted(counter.items())
    ]
