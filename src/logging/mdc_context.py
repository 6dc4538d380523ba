# src/logging/mdc_context.py - v1
"""Scoped MDC entries.

``MdcContext`` writes a JSON-serialized value to the task-local MDC and
restores the previous state when closed. Use it as a context manager so the
entry is released on every exit path::

    with MdcContext.of(order, key="order"):
        logger.info("processing")   # formatter renders "order" as an object

Contexts with the same key are expected to nest in LIFO order. A context
should never contain another context with its own key; doing so is logged
(WARN for the same value, ERROR for a different one) but still performed.
"""

from __future__ import annotations

import functools
import logging
import os
import sys
from typing import Any, Callable, TypeVar

from structured_mdc.logging import context
from structured_mdc.logging.context import JSON_PREFIX
from structured_mdc.logging.keys import MdcKeySupplier, resolve_key
from structured_mdc.logging.serializer import to_json

logger = logging.getLogger(__name__)

T = TypeVar("T")

_THIS_FILE = os.path.normcase(os.path.abspath(__file__))
UNKNOWN_CALLER = "<unknown>"


def _find_caller() -> str:
    """Best-effort location of the first frame outside this module."""
    frame = sys._getframe(1)
    while frame is not None:
        code = frame.f_code
        if os.path.normcase(os.path.abspath(code.co_filename)) != _THIS_FILE:
            module = frame.f_globals.get("__name__", "?")
            return (
                f"{module}.{code.co_name}"
                f"({os.path.basename(code.co_filename)}:{frame.f_lineno})"
            )
        frame = frame.f_back
    return UNKNOWN_CALLER


class MdcContext:
    """Handle for one MDC entry; closing it restores the previous payload."""

    def __init__(self, key: str, value: Any, caller: str | None = None) -> None:
        self._key = key
        self._closed = False
        self._old_payload = _put_with_overwrite_warning(key, to_json(value), caller)

    @classmethod
    def of(
        cls,
        value: Any,
        key: str | None = None,
        *,
        key_supplier: MdcKeySupplier | None = None,
        caller: str | None = None,
    ) -> MdcContext:
        """Create an MDC context for value.

        Args:
            value: Object to serialize into the MDC.
            key: Explicit MDC key.
            key_supplier: Supplier of a type-stable key, used if no key given.
            caller: Tag naming the call site in overwrite diagnostics.
                Detected from the call stack when omitted.

        Returns:
            The open context; close it (or leave its ``with`` block) to restore.
        """
        return cls(resolve_key(value, key, key_supplier), value, caller)

    @property
    def key(self) -> str:
        return self._key

    @property
    def old_payload(self) -> str | None:
        """Payload present under the key before this context, if any."""
        return self._old_payload

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Restore the previous payload, or remove the key if there was none."""
        if self._closed:
            logger.debug("MDC context for key %s already closed", self._key)
            return
        self._closed = True
        if self._old_payload is None:
            context.remove(self._key)
        else:
            context.put(self._key, self._old_payload)

    def __enter__(self) -> MdcContext:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"MdcContext(key={self._key!r}, {state})"


def update(
    value: Any,
    key: str | None = None,
    *,
    key_supplier: MdcKeySupplier | None = None,
    caller: str | None = None,
) -> None:
    """Replace the payload of an existing MDC entry.

    Logs a WARNing and changes nothing if the key is not present. Open
    contexts keep their recorded previous payload.
    """
    resolved = resolve_key(value, key, key_supplier)
    if context.get(resolved) is None:
        logger.warning(
            "Cannot update content of MDC key %s in %s because it does not exist.",
            resolved, caller or _find_caller(),
        )
        return
    context.put(resolved, JSON_PREFIX + to_json(value))


def mdc(
    value: Any,
    fn: Callable[..., T],
    /,
    *args: Any,
    key: str | None = None,
    key_supplier: MdcKeySupplier | None = None,
    **kwargs: Any,
) -> T:
    """Run fn(*args, **kwargs) inside an MDC context and return its result.

    The context is released whether fn returns or raises; exceptions
    propagate unchanged.
    """
    with MdcContext.of(value, key, key_supplier=key_supplier):
        return fn(*args, **kwargs)


def mdc_scope(
    value: Any,
    key: str | None = None,
    *,
    key_supplier: MdcKeySupplier | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator running every call of the function inside an MDC context."""

    def decorator(fn: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            with MdcContext.of(value, key, key_supplier=key_supplier):
                return fn(*args, **kwargs)

        return wrapper

    return decorator


def _put_with_overwrite_warning(
    key: str, serialized: str, caller: str | None
) -> str | None:
    new_payload = JSON_PREFIX + serialized
    old_payload = context.get(key)
    if old_payload is not None:
        _log_overwriting(key, new_payload, old_payload, caller or _find_caller())
    context.put(key, new_payload)
    return old_payload


def _log_overwriting(key: str, new_payload: str, old_payload: str, caller: str) -> None:
    message = (
        f"Overwriting MDC key {key} in {caller} - a context with a certain key "
        "should never contain another context with the same one."
    )
    if old_payload != new_payload:
        logger.error(
            "%s The old value differs from new value. This should never happen, "
            "because it messes up the MDC context. Old value: %s - new value: %s",
            message, old_payload, new_payload,
        )
    else:
        logger.warning(
            "%s The value is overwritten with the same value. "
            "This is superfluous and should be removed.",
            message,
        )
