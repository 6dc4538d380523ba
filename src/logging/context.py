# src/logging/context.py - v2
"""Task-local diagnostic context store (MDC).

Every thread and every asyncio task sees its own ``key -> payload`` mapping.
The mapping held by the context variable is never mutated in place: each
write installs a fresh dict, so a copied ``contextvars.Context`` (new asyncio
task, ``copy_context().run``) never shares mutations with its origin.

Payloads written through ``MdcContext`` carry ``JSON_PREFIX`` to mark them as
structured JSON; plain ``put`` writes are rendered as strings.
"""

from __future__ import annotations

import contextvars
from typing import Mapping

JSON_PREFIX = "MDC_JSON_VALUE:"

_EMPTY: Mapping[str, str] = {}

# Context variable holding the current MDC mapping. Treat values as immutable.
_mdc: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "mdc", default=_EMPTY
)


def get_json_prefix() -> str:
    """Prefix marking structured (JSON) MDC payloads.

    Useful when checking MDC contents before they are written to a log,
    for example in tests.
    """
    return JSON_PREFIX


def is_json_payload(payload: str | None) -> bool:
    """True if the payload carries the JSON marker."""
    return payload is not None and payload.startswith(JSON_PREFIX)


def strip_json_prefix(payload: str) -> str:
    """Remove the JSON marker from a payload, if present."""
    if payload.startswith(JSON_PREFIX):
        return payload[len(JSON_PREFIX):]
    return payload


def get(key: str) -> str | None:
    """Current payload for key, or None."""
    return _mdc.get().get(key)


def put(key: str, payload: str) -> None:
    """Write a payload under key in the current task's store."""
    current = _mdc.get()
    updated = dict(current)
    updated[key] = payload
    _mdc.set(updated)


def remove(key: str) -> None:
    """Remove key from the current task's store. No-op if absent."""
    current = _mdc.get()
    if key not in current:
        return
    updated = dict(current)
    del updated[key]
    _mdc.set(updated)


def clear() -> None:
    """Drop all entries of the current task's store."""
    _mdc.set(_EMPTY)


def get_copy_of_context_map() -> dict[str, str]:
    """Independent copy of the current store."""
    return dict(_mdc.get())


def set_context_map(entries: Mapping[str, str]) -> None:
    """Replace the whole store with a copy of entries."""
    _mdc.set(dict(entries))


def keys() -> list[str]:
    """Keys present in the current store, in insertion order."""
    return list(_mdc.get())


def is_empty() -> bool:
    return not _mdc.get()
