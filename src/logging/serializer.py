# src/logging/serializer.py - v1
"""Process-wide JSON serializer registry for MDC values.

The default serializer is pydantic's JSON serializer: compact output,
temporal values (datetime, date, time, timedelta) rendered as ISO-8601
strings rather than objects, ``None`` as ``null``, enums by value,
dataclasses and pydantic models as JSON objects.

An override can be installed with ``set_serializer`` and removed with
``reset_serializer``. Changes only affect future serializations.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

from pydantic import TypeAdapter

logger = logging.getLogger(__name__)

# Must stay an object, not a string: log indexers drop entries whose field
# type changes between records.
JSON_ERROR = '{"json_error":"Unserializable Object."}'

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


class Serializer(Protocol):
    """Converts a value to JSON text. May raise on unserializable input."""

    def __call__(self, value: Any) -> str: ...


def default_serializer(value: Any) -> str:
    """Serialize with pydantic's JSON encoder."""
    return _ANY_ADAPTER.dump_json(value).decode("utf-8")


class SerializerRegistry:
    """Holds the default serializer and an optional override."""

    def __init__(self, default: Serializer = default_serializer) -> None:
        self._default = default
        self._override: Serializer | None = None
        self._lock = threading.Lock()

    @property
    def default(self) -> Serializer:
        return self._default

    @property
    def override(self) -> Serializer | None:
        return self._override

    def active(self) -> Serializer:
        """Override if set, else the default."""
        override = self._override
        return override if override is not None else self._default

    def set_override(self, serializer: Serializer) -> None:
        with self._lock:
            self._override = serializer
        logger.debug("MDC serializer overridden with %r", serializer)

    def reset(self) -> None:
        with self._lock:
            self._override = None
        logger.debug("MDC serializer reset to default")

    def serialize(self, value: Any) -> str:
        """Serialize value, falling back to JSON_ERROR. Never raises."""
        try:
            return self.active()(value)
        except Exception as exc:
            logger.error("Object cannot be serialized %r. (%s)", value, exc)
            return JSON_ERROR


_registry = SerializerRegistry()


def get_registry() -> SerializerRegistry:
    return _registry


def get_serializer() -> Serializer:
    """Serializer currently used for MDC values."""
    return _registry.active()


def set_serializer(serializer: Serializer) -> None:
    """Install a process-wide serializer override."""
    _registry.set_override(serializer)


def reset_serializer() -> None:
    """Remove any override; the default serializer is used again."""
    _registry.reset()


def to_json(value: Any) -> str:
    """Serialize value to JSON text with the active serializer."""
    return _registry.serialize(value)
