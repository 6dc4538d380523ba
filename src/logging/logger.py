# src/logging/logger.py - v2
"""Logger factory with MDC-aware JSON and text formatters.

Structured MDC payloads (those carrying ``JSON_PREFIX``) are embedded as
JSON values, so downstream log indexers see nested objects instead of
escaped strings. Plain payloads stay strings. The prefix never reaches the
rendered output.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

from structured_mdc.logging import context
from structured_mdc.logging.context import is_json_payload, strip_json_prefix

if TYPE_CHECKING:
    from structured_mdc.config.settings import Settings

ROOT_LOGGER_NAME = "structured_mdc"

# LogRecord attribute holding the MDC captured when the record was created.
MDC_RECORD_ATTR = "mdc_context"


def _capture_mdc(factory: Callable[..., logging.LogRecord]) -> Callable[..., logging.LogRecord]:
    def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        record = factory(*args, **kwargs)
        setattr(record, MDC_RECORD_ATTR, context.get_copy_of_context_map())
        return record

    record_factory.captures_mdc = True  # type: ignore[attr-defined]
    return record_factory


def install_mdc_record_factory() -> None:
    """Snapshot the MDC onto every LogRecord when it is created.

    Handlers that format on another thread (QueueHandler/QueueListener)
    then still see the MDC of the thread that logged. Idempotent.
    """
    current = logging.getLogRecordFactory()
    if getattr(current, "captures_mdc", False):
        return
    logging.setLogRecordFactory(_capture_mdc(current))


def record_mdc(record: logging.LogRecord) -> dict[str, str]:
    """MDC captured on the record, or the live store for foreign records."""
    captured = getattr(record, MDC_RECORD_ATTR, None)
    if captured is None:
        return context.get_copy_of_context_map()
    return dict(captured)


def filter_mdc(
    entries: Mapping[str, str],
    include_keys: Iterable[str] | None = None,
    exclude_keys: Iterable[str] | None = None,
) -> dict[str, str]:
    """Apply include then exclude key filters. Empty filters keep everything."""
    filtered = dict(entries)
    include = set(include_keys or ())
    exclude = set(exclude_keys or ())
    if include:
        filtered = {k: v for k, v in filtered.items() if k in include}
    if exclude:
        filtered = {k: v for k, v in filtered.items() if k not in exclude}
    return filtered


def render_mdc(
    entries: Mapping[str, str],
    include_keys: Iterable[str] | None = None,
    exclude_keys: Iterable[str] | None = None,
) -> dict[str, Any]:
    """Render MDC entries for a JSON log record.

    Plain entries are rendered first, as strings, then structured entries as
    JSON values. A structured entry whose text is not valid JSON falls back
    to its text without the prefix.
    """
    filtered = filter_mdc(entries, include_keys, exclude_keys)
    rendered: dict[str, Any] = {
        k: v for k, v in filtered.items() if not is_json_payload(v)
    }
    for key, payload in filtered.items():
        if not is_json_payload(payload):
            continue
        raw = strip_json_prefix(payload)
        try:
            rendered[key] = json.loads(raw)
        except json.JSONDecodeError:
            rendered[key] = raw
    return rendered


class JsonFormatter(logging.Formatter):
    """Structured JSON log formatter including the MDC captured on each record.

    Args:
        include_mdc_keys: If non-empty, only these MDC keys are written.
        exclude_mdc_keys: MDC keys never written.
        mdc_field_name: Nest MDC fields under this name. When None they are
            merged into the top level; core fields win on collision.
    """

    def __init__(
        self,
        include_mdc_keys: Iterable[str] = (),
        exclude_mdc_keys: Iterable[str] = (),
        mdc_field_name: str | None = None,
    ) -> None:
        super().__init__()
        self.include_mdc_keys = frozenset(include_mdc_keys)
        self.exclude_mdc_keys = frozenset(exclude_mdc_keys)
        self.mdc_field_name = mdc_field_name or None

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        mdc_fields = render_mdc(
            record_mdc(record),
            self.include_mdc_keys,
            self.exclude_mdc_keys,
        )
        if mdc_fields:
            if self.mdc_field_name:
                log_entry[self.mdc_field_name] = mdc_fields
            else:
                log_entry = {**mdc_fields, **log_entry}

        # Extra data passed via record.__dict__
        if hasattr(record, "data") and record.data:  # type: ignore[attr-defined]
            log_entry["data"] = record.data  # type: ignore[attr-defined]

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter for development."""

    def __init__(
        self,
        include_mdc_keys: Iterable[str] = (),
        exclude_mdc_keys: Iterable[str] = (),
    ) -> None:
        super().__init__()
        self.include_mdc_keys = frozenset(include_mdc_keys)
        self.exclude_mdc_keys = frozenset(exclude_mdc_keys)

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        mdc_fields = filter_mdc(
            record_mdc(record),
            self.include_mdc_keys,
            self.exclude_mdc_keys,
        )
        for key, payload in mdc_fields.items():
            parts.append(f"{key}={strip_json_prefix(payload)}")
        parts.append(f"- {record.getMessage()}")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Configuration is applied by setup_logging()."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
    include_mdc_keys: Iterable[str] = (),
    exclude_mdc_keys: Iterable[str] = (),
    mdc_field_name: str | None = None,
    logger_name: str = ROOT_LOGGER_NAME,
) -> logging.Logger:
    """Configure a logger (default: the structured_mdc root logger).

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: Output format ("json" or "text").
        log_file: Path to log file (None = stdout only).
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
        include_mdc_keys: Only write these MDC keys (empty = all).
        exclude_mdc_keys: Never write these MDC keys.
        mdc_field_name: Nest MDC fields under this JSON field.
        logger_name: Logger to configure; "" configures the root logger.

    Returns:
        The configured logger.
    """
    install_mdc_record_factory()
    target = logging.getLogger(logger_name or None)
    target.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates on re-init
    for handler in list(target.handlers):
        target.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter
    if log_format == "json":
        formatter = JsonFormatter(include_mdc_keys, exclude_mdc_keys, mdc_field_name)
    else:
        formatter = TextFormatter(include_mdc_keys, exclude_mdc_keys)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    target.addHandler(console_handler)

    if log_file:
        from structured_mdc.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(
            log_file, rotation=rotation, retention=retention, formatter=formatter
        )
        target.addHandler(file_handler)

    return target


def setup_logging_from_settings(settings: Settings) -> logging.Logger:
    """Configure logging from typed settings."""
    return setup_logging(
        level=settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        include_mdc_keys=settings.include_mdc_keys_list,
        exclude_mdc_keys=settings.exclude_mdc_keys_list,
        mdc_field_name=settings.mdc_field_name or None,
    )


# Installed at import time so records created before setup_logging() carry
# their MDC as well.
install_mdc_record_factory()
