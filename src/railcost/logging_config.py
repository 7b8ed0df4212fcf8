"""
Structured logging configuration for railcost.

Both rails talk to credentialed APIs (Wise bearer token, Kraken API key and
HMAC signature), so every log line goes through a filter that:
- drops credential-bearing extra fields
- redacts tokens and keys that leak into free-form text
- reduces URLs to their path (query strings carry pair/amount noise)

Usage:
    from railcost.logging_config import setup_logging, get_logger

    setup_logging()  # Call once at startup
    logger = get_logger(__name__)
    logger.info("Quote fetched", extra={"src": "USD", "tgt": "EUR"})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

_URL_PATTERN = re.compile(r"(https?://[^\s\"'<>]+)")

_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bbearer\s+[\w\-\.=]+", re.I), "[TOKEN]"),
    (re.compile(r"\b(api[_-]?key|apikey)[=:]\s*['\"]?[\w\-/+=]+['\"]?", re.I), "[API_KEY]"),
    (re.compile(r"\b(api[_-]?sign)[=:]\s*['\"]?[\w\-/+=]+['\"]?", re.I), "[API_SIGN]"),
    (re.compile(r"\b(token|secret)[=:]\s*['\"]?[\w\-\./+=]+['\"]?", re.I), "[SECRET]"),
]

# Extra fields that never reach a log line (exact or substring match).
BLOCKED_FIELDS: frozenset[str] = frozenset(
    {
        "token",
        "secret",
        "api_key",
        "api-key",
        "api_sign",
        "api-sign",
        "authorization",
        "password",
        "nonce",
        "credential",
    }
)

# Fields replaced by a placeholder instead of being dumped.
REDACTED_FIELDS: dict[str, str] = {
    "body": "[BODY]",
    "payload": "[PAYLOAD]",
    "headers": "[HEADERS]",
    "postdata": "[POSTDATA]",
}

_RESERVED_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


def _normalize_url(url: str) -> str:
    """Return only the path of a URL."""
    return urlsplit(url).path or "/"


def _sanitize_text(text: str) -> str:
    """Strip query strings and credentials from free-form text."""
    if not text:
        return text

    result = _URL_PATTERN.sub(lambda m: _normalize_url(m.group(1)), text)
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def _is_blocked(key: str) -> bool:
    key_lower = key.lower()
    return any(blocked in key_lower for blocked in BLOCKED_FIELDS)


def _filter_log_record(record: dict[str, Any], *, _depth: int = 0) -> dict[str, Any]:
    """Filter credentials and bulky fields from a dict of log extras.

    Nested dicts are filtered recursively up to depth 3.
    """
    if _depth > 3:
        return {"_truncated": "max depth exceeded"}

    filtered: dict[str, Any] = {}
    for key, value in record.items():
        if _is_blocked(key):
            continue

        key_lower = key.lower()
        if key_lower == "url" and isinstance(value, str):
            filtered["endpoint"] = _normalize_url(value)
            continue
        if key_lower in REDACTED_FIELDS:
            filtered[key] = REDACTED_FIELDS[key_lower]
            continue

        if isinstance(value, (int, float, bool, type(None))):
            filtered[key] = value
        elif isinstance(value, str):
            filtered[key] = _sanitize_text(value)
        elif isinstance(value, (list, tuple)):
            filtered[key] = list(value) if len(value) <= 10 else f"[list:{len(value)} items]"
        elif isinstance(value, dict):
            filtered[key] = _filter_log_record(value, _depth=_depth + 1)
        else:
            filtered[key] = _sanitize_text(str(value))

    return filtered


def _extract_extra(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the user-supplied ``extra`` attributes of a record."""
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Output format:
    {"ts":"2025-01-01T00:00:00.000+00:00","level":"INFO","logger":"railcost...","msg":"...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": _sanitize_text(record.getMessage()),
        }

        if record.levelno >= logging.WARNING:
            log_dict["file"] = record.filename
            log_dict["line"] = record.lineno

        if record.exc_info:
            log_dict["exc"] = _sanitize_text(self.formatException(record.exc_info))

        extra = _extract_extra(record)
        if extra:
            log_dict.update(_filter_log_record(extra))

        return json.dumps(log_dict, default=str, ensure_ascii=False)


class SimpleFormatter(logging.Formatter):
    """Human-readable formatter for terminals and tests."""

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname:8s} {record.name}: {_sanitize_text(record.getMessage())}"

        filtered = _filter_log_record(_extract_extra(record))
        if filtered:
            extra_str = " ".join(f"{k}={v}" for k, v in filtered.items())
            base = f"{base} | {extra_str}"
        return base


def setup_logging(
    *,
    level: int | str = logging.INFO,
    json_format: bool = True,
    stream: Any = None,
) -> None:
    """Configure root logging. Call once at startup.

    Args:
        level: Log level (default INFO).
        json_format: Use JSON formatter (default True).
        stream: Output stream (default stderr).
    """
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else SimpleFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically ``get_logger(__name__)``)."""
    return logging.getLogger(name)
