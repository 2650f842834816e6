"""In-process aggregators for logs, transactions, caches and the database."""

from .cache_metrics import CacheMetrics
from .database_metrics import DatabaseMetrics, statistics_dialect_for
from .log_metrics import LogMetrics
from .transaction_metrics import TransactionMetrics

__all__ = [
    "CacheMetrics",
    "DatabaseMetrics",
    "LogMetrics",
    "TransactionMetrics",
    "statistics_dialect_for",
]
