"""Cache hit/miss/put/evict accounting over the named caches."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Hashable

from employee_audit.cache import CacheManager
from employee_audit.monitoring.metrics import MetricSet, ratio

logger = logging.getLogger(__name__)

_HITS = "cache.hits"
_MISSES = "cache.misses"
_PUTS = "cache.puts"
_EVICTS = "cache.evicts"
_OPERATION_TIME = "cache.operation.duration"


@dataclass(frozen=True)
class CacheInfo:
    name: str
    hits: int
    misses: int
    puts: int
    evicts: int
    average_operation_time_ms: float
    hit_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "hits": self.hits,
            "misses": self.misses,
            "puts": self.puts,
            "evicts": self.evicts,
            "averageOperationTimeMs": self.average_operation_time_ms,
            "hitRate": self.hit_rate,
        }


@dataclass(frozen=True)
class CacheStats:
    caches: dict[str, CacheInfo]
    total_hits: int
    total_misses: int
    total_puts: int
    total_evicts: int
    hit_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "caches": {name: info.to_dict() for name, info in self.caches.items()},
            "totalHits": self.total_hits,
            "totalMisses": self.total_misses,
            "totalPuts": self.total_puts,
            "totalEvicts": self.total_evicts,
            "hitRate": self.hit_rate,
        }


class CacheMetrics:
    def __init__(self, cache_manager: CacheManager) -> None:
        self._cache_manager = cache_manager
        self._metrics = MetricSet("cache")

    def record_cache_hit(self, cache_name: str, key: Hashable | None = None) -> None:
        self._metrics.increment(_HITS, cache_name)
        logger.debug("Cache hit: cache=%s key=%s", cache_name, key)

    def record_cache_miss(self, cache_name: str, key: Hashable | None = None) -> None:
        self._metrics.increment(_MISSES, cache_name)
        logger.debug("Cache miss: cache=%s key=%s", cache_name, key)

    def record_cache_put(self, cache_name: str, key: Hashable | None = None) -> None:
        self._metrics.increment(_PUTS, cache_name)

    def record_cache_evict(self, cache_name: str, key: Hashable | None = None) -> None:
        self._metrics.increment(_EVICTS, cache_name)

    def record_cache_operation_time(self, cache_name: str, operation: str, duration_ms: float) -> None:
        self._metrics.record_duration(_OPERATION_TIME, duration_ms, cache_name)
        logger.debug(
            "Cache operation: cache=%s operation=%s duration=%.3fms",
            cache_name,
            operation,
            duration_ms,
        )

    def get_cache_stats(self) -> CacheStats:
        snap = self._metrics.snapshot()
        hits = snap.counts_by_tag(_HITS)
        misses = snap.counts_by_tag(_MISSES)
        puts = snap.counts_by_tag(_PUTS)
        evicts = snap.counts_by_tag(_EVICTS)
        timers = snap.timers_by_tag(_OPERATION_TIME)

        names = set(self._cache_manager.cache_names())
        for counts in (hits, misses, puts, evicts):
            names.update(counts)

        caches: dict[str, CacheInfo] = {}
        for name in sorted(names):
            cache_hits = hits.get(name, 0)
            cache_misses = misses.get(name, 0)
            timer = timers.get(name)
            caches[name] = CacheInfo(
                name=name,
                hits=cache_hits,
                misses=cache_misses,
                puts=puts.get(name, 0),
                evicts=evicts.get(name, 0),
                average_operation_time_ms=timer.mean_ms if timer else 0.0,
                hit_rate=ratio(cache_hits, cache_hits + cache_misses),
            )

        total_hits = sum(hits.values())
        total_misses = sum(misses.values())
        return CacheStats(
            caches=caches,
            total_hits=total_hits,
            total_misses=total_misses,
            total_puts=sum(puts.values()),
            total_evicts=sum(evicts.values()),
            hit_rate=ratio(total_hits, total_hits + total_misses),
        )

    def clear_all_caches(self) -> list[str]:
        cleared = self._cache_manager.cache_names()
        for name in cleared:
            self.clear_cache(name)
        logger.info("All caches cleared: %s", ", ".join(cleared))
        return cleared

    def clear_cache(self, cache_name: str) -> bool:
        """Clear one cache. Returns False when no cache has that name."""
        cache = self._cache_manager.get_cache(cache_name)
        if cache is None:
            return False
        cache.clear()
        self.record_cache_evict(cache_name, "*")
        logger.info("Cache cleared: %s", cache_name)
        return True
