from __future__ import annotations

import pytest

from employee_audit.cache import CacheManager, NamedCache
from employee_audit.monitoring.cache_metrics import CacheMetrics


def test_named_cache_lru_eviction() -> None:
    cache = NamedCache("employees", max_entries=2)
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") == 1
    cache.put("c", 3)

    assert cache.contains("a")
    assert not cache.contains("b")
    assert cache.get("b", "missing") == "missing"
    assert cache.evict("a") is True
    assert cache.evict("a") is False
    assert cache.clear() == 1
    assert len(cache) == 0


def test_cache_manager_names() -> None:
    manager = CacheManager(["employees", "departments"])
    assert manager.cache_names() == ["departments", "employees"]
    assert manager.get_or_create("employees") is manager.get_cache("employees")
    assert manager.get_cache("missing") is None


def test_hit_rate_per_cache_and_global() -> None:
    metrics = CacheMetrics(CacheManager(["employees", "departments"]))
    for _ in range(3):
        metrics.record_cache_hit("employees", "id:1")
    metrics.record_cache_miss("employees", "id:2")
    metrics.record_cache_miss("departments", "id:9")
    metrics.record_cache_put("employees", "id:2")
    metrics.record_cache_operation_time("employees", "get", 2.0)
    metrics.record_cache_operation_time("employees", "get", 4.0)

    stats = metrics.get_cache_stats()
    employees = stats.caches["employees"]
    assert employees.hits == 3
    assert employees.misses == 1
    assert employees.puts == 1
    assert employees.hit_rate == pytest.approx(0.75)
    assert employees.average_operation_time_ms == pytest.approx(3.0)
    assert stats.caches["departments"].hit_rate == 0.0
    assert stats.total_hits == 3
    assert stats.total_misses == 2
    assert stats.hit_rate == pytest.approx(0.6)


def test_unused_caches_report_zero_hit_rate() -> None:
    stats = CacheMetrics(CacheManager(["employees"])).get_cache_stats()
    assert stats.caches["employees"].hit_rate == 0.0
    assert stats.hit_rate == 0.0
    assert stats.to_dict()["caches"]["employees"]["hits"] == 0


def test_clear_cache_delegates_and_records_evict() -> None:
    manager = CacheManager(["employees", "departments"])
    manager.get_or_create("employees").put("id:1", object())
    metrics = CacheMetrics(manager)

    assert metrics.clear_cache("employees") is True
    assert len(manager.get_or_create("employees")) == 0
    assert metrics.get_cache_stats().caches["employees"].evicts == 1
    assert metrics.clear_cache("missing") is False

    assert metrics.clear_all_caches() == ["departments", "employees"]
    stats = metrics.get_cache_stats()
    assert stats.caches["employees"].evicts == 2
    assert stats.caches["departments"].evicts == 1
