"""SQLite adapters: connection manager, instrumented executor, schema helpers."""
from .executor import Perf, QueryContext, QueryExecutor, cancelled_result, ensure_context
from .sqlite import Sqlite

__all__ = [
    "Sqlite",
    "QueryExecutor",
    "QueryContext",
    "Perf",
    "cancelled_result",
    "ensure_context",
]
