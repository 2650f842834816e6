"""Business transaction lifecycle tracking."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from employee_audit.errors import TransactionStateError
from employee_audit.monitoring.metrics import MetricSet

logger = logging.getLogger(__name__)

T = TypeVar("T")

STARTED = "STARTED"
COMMITTED = "COMMITTED"
ROLLED_BACK = "ROLLED_BACK"
ERRORED = "ERRORED"

_STARTS = "transaction.start"
_COMMITS = "transaction.commit"
_ROLLBACKS = "transaction.rollback"
_ERRORS = "transaction.error"
_DURATION = "transaction.duration"


@dataclass
class TransactionHandle:
    """One logical transaction. Moves from STARTED to exactly one terminal state."""

    operation: str
    started_at: float = field(default_factory=time.perf_counter)
    state: str = STARTED
    duration_ms: float | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def finish(self, state: str) -> float:
        with self._lock:
            if self.state != STARTED:
                raise TransactionStateError(
                    f"Transaction {self.operation} already {self.state}, cannot become {state}"
                )
            self.state = state
            self.duration_ms = (time.perf_counter() - self.started_at) * 1000
            return self.duration_ms


@dataclass(frozen=True)
class TransactionStats:
    starts: int
    commits: int
    rollbacks: int
    errors: int
    average_duration_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "starts": self.starts,
            "commits": self.commits,
            "rollbacks": self.rollbacks,
            "errors": self.errors,
            "averageDurationMs": self.average_duration_ms,
        }

    def __str__(self) -> str:
        return (
            f"TransactionStats{{starts={self.starts}, commits={self.commits}, "
            f"rollbacks={self.rollbacks}, errors={self.errors}, "
            f"avgDuration={self.average_duration_ms:.2f}ms}}"
        )


class TransactionMetrics:
    def __init__(self) -> None:
        self._metrics = MetricSet("transactions")
        self._metrics.declare(_STARTS)
        self._metrics.declare(_COMMITS)
        self._metrics.declare(_ROLLBACKS)
        self._metrics.declare(_ERRORS)

    def record_transaction_start(self, operation: str, details: str | None = None) -> TransactionHandle:
        handle = TransactionHandle(operation=operation)
        self._metrics.increment(_STARTS)
        logger.info("Transaction started: operation=%s details=%s", operation, details)
        return handle

    def record_transaction_commit(self, handle: TransactionHandle, details: str | None = None) -> None:
        duration_ms = handle.finish(COMMITTED)
        self._metrics.increment(_COMMITS)
        self._metrics.record_duration(_DURATION, duration_ms)
        logger.info(
            "Transaction committed: operation=%s duration=%.2fms details=%s",
            handle.operation,
            duration_ms,
            details,
        )

    def record_transaction_rollback(self, handle: TransactionHandle, reason: str | None = None) -> None:
        duration_ms = handle.finish(ROLLED_BACK)
        self._metrics.increment(_ROLLBACKS)
        self._metrics.record_duration(_DURATION, duration_ms)
        logger.warning(
            "Transaction rolled back: operation=%s duration=%.2fms reason=%s",
            handle.operation,
            duration_ms,
            reason,
        )

    def record_transaction_error(self, handle: TransactionHandle, error: BaseException | str) -> None:
        duration_ms = handle.finish(ERRORED)
        self._metrics.increment(_ERRORS)
        self._metrics.record_duration(_DURATION, duration_ms)
        logger.error(
            "Transaction failed: operation=%s duration=%.2fms error=%s",
            handle.operation,
            duration_ms,
            error,
        )

    async def monitor_transaction(
        self,
        operation: str,
        details: str | None,
        action: Callable[[], Awaitable[T]],
        *,
        rollback_on: tuple[type[BaseException], ...] = (),
    ) -> T:
        """Run ``action`` as one tracked transaction.

        Exceptions listed in ``rollback_on`` are counted as rollbacks; any
        other exception is counted as an error. The exception is re-raised
        unchanged either way.
        """
        handle = self.record_transaction_start(operation, details)
        try:
            result = await action()
        except rollback_on as exc:
            self.record_transaction_rollback(handle, str(exc))
            raise
        except Exception as exc:
            self.record_transaction_error(handle, exc)
            raise
        self.record_transaction_commit(handle, details)
        return result

    def get_transaction_stats(self) -> TransactionStats:
        snap = self._metrics.snapshot()
        return TransactionStats(
            starts=snap.count(_STARTS),
            commits=snap.count(_COMMITS),
            rollbacks=snap.count(_ROLLBACKS),
            errors=snap.count(_ERRORS),
            average_duration_ms=snap.timer(_DURATION).mean_ms,
        )

    def reset(self) -> None:
        self._metrics.reset()
