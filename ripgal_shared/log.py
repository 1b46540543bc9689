"""
Logging utilities with consistent formatting and emoji indicators.
"""
import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Final

EMOJI_MAP: Final[dict[str, str]] = {
    "DEBUG": "🔍",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🔥",
    "SUCCESS": "✅",
}

PREFIX: Final[str] = "🖼️ ripgal"
LOGGER_ROOT: Final[str] = "ripgal"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class CorrelationFilter(logging.Filter):
    """Inject `request_id` from `request_id_var` into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        return True


class EmojiFormatter(logging.Formatter):
    """Single-line formatter: prefix, level emoji, logger name, request id."""

    def format(self, record: logging.LogRecord) -> str:
        emoji = EMOJI_MAP.get(record.levelname, "🖼️")
        rid = str(getattr(record, "request_id", "") or "").strip()
        rid_part = f" [{rid}]" if rid else ""
        formatter = logging.Formatter(f"{PREFIX} [{emoji}] %(name)s{rid_part}: %(message)s")
        return formatter.format(record)


def _ensure_correlation_filter(logger: logging.Logger) -> None:
    if any(isinstance(f, CorrelationFilter) for f in logger.filters):
        return
    logger.addFilter(CorrelationFilter())


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Get a `ripgal.*` logger with emoji formatting and request correlation.

    Args:
        name: Logger name (usually __name__)
        level: Optional logging level

    Returns:
        Configured logger instance
    """
    if name.startswith("__main__"):
        name = "main"
    elif name.startswith("ripgal_backend."):
        name = name[len("ripgal_backend."):]
    elif name.startswith("ripgal_shared."):
        name = "shared." + name[len("ripgal_shared."):]

    logger = logging.getLogger(f"{LOGGER_ROOT}.{name}")
    _ensure_correlation_filter(logger)

    if level is not None:
        logger.setLevel(level)
    elif not logger.handlers:
        logger.setLevel(logging.INFO)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(EmojiFormatter())
        logger.addHandler(handler)
        logger.propagate = False

    return logger


SUCCESS_LEVEL: Final[int] = 25  # Between INFO (20) and WARNING (30)
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")


def log_success(logger: logging.Logger, message: str) -> None:
    """Log a success message with the SUCCESS level."""
    logger.log(SUCCESS_LEVEL, message)


def log_structured(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Emit a structured JSON log entry with contextual fields."""
    payload = {
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "context": context,
    }
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
