"""In-process counters and timers shared by the monitoring aggregators."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Iterable

_TagKey = tuple[str, str | None]


@dataclass(frozen=True)
class TimerSnapshot:
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0


@dataclass
class _TimerState:
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def record(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        if duration_ms > self.max_ms:
            self.max_ms = duration_ms

    def freeze(self) -> TimerSnapshot:
        return TimerSnapshot(count=self.count, total_ms=self.total_ms, max_ms=self.max_ms)


@dataclass(frozen=True)
class MetricSnapshot:
    counters: dict[_TagKey, int] = field(default_factory=dict)
    timers: dict[_TagKey, TimerSnapshot] = field(default_factory=dict)

    def count(self, name: str, tag: str | None = None) -> int:
        return self.counters.get((name, tag), 0)

    def counts_by_tag(self, name: str) -> dict[str, int]:
        return {
            tag: value
            for (counter, tag), value in self.counters.items()
            if counter == name and tag is not None
        }

    def timer(self, name: str, tag: str | None = None) -> TimerSnapshot:
        return self.timers.get((name, tag), TimerSnapshot())

    def timers_by_tag(self, name: str) -> dict[str, TimerSnapshot]:
        return {
            tag: value
            for (timer, tag), value in self.timers.items()
            if timer == name and tag is not None
        }


class MetricSet:
    """Named, optionally tagged counters and timers behind a single lock.

    Holding one lock for the whole set makes ``snapshot()`` and ``reset()``
    consistent across every metric the set owns.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._counters: dict[_TagKey, int] = {}
        self._timers: dict[_TagKey, _TimerState] = {}

    def declare(self, name: str, tags: Iterable[str | None] = (None,)) -> None:
        """Register counters at zero so they appear in snapshots before first use."""
        with self._lock:
            for tag in tags:
                self._counters.setdefault((name, tag), 0)

    def increment(self, name: str, tag: str | None = None, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError("Counters only move forward")
        key = (name, tag)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def increment_many(self, items: Iterable[tuple[str, str | None]]) -> None:
        """Increment several counters as one atomic step."""
        with self._lock:
            for key in items:
                self._counters[key] = self._counters.get(key, 0) + 1

    def record_duration(self, name: str, duration_ms: float, tag: str | None = None) -> None:
        if duration_ms < 0:
            duration_ms = 0.0
        key = (name, tag)
        with self._lock:
            state = self._timers.get(key)
            if state is None:
                state = self._timers[key] = _TimerState()
            state.record(duration_ms)

    def count(self, name: str, tag: str | None = None) -> int:
        with self._lock:
            return self._counters.get((name, tag), 0)

    def snapshot(self) -> MetricSnapshot:
        with self._lock:
            return MetricSnapshot(
                counters=dict(self._counters),
                timers={key: state.freeze() for key, state in self._timers.items()},
            )

    def reset(self) -> None:
        with self._lock:
            for key in self._counters:
                self._counters[key] = 0
            self._timers.clear()


def ratio(numerator: int | float, denominator: int | float) -> float:
    """Division that yields 0.0 for an empty denominator."""
    if not denominator:
        return 0.0
    return numerator / denominator
