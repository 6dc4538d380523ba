# src/logging/keys.py - v1
"""MDC key suppliers: stable keys per value type.

A key supplier is any object exposing an ``mdc_key`` string. Suppliers can be
passed explicitly or registered once per type, so every context written for
that type uses the same key.
"""

from __future__ import annotations

import threading
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MdcKeySupplier(Protocol):
    """Describes which MDC key to log a certain type to."""

    mdc_key: str


_registered: dict[type, str] = {}
_lock = threading.Lock()


def _key_of(key_or_supplier: str | MdcKeySupplier) -> str:
    if isinstance(key_or_supplier, str):
        key = key_or_supplier
    else:
        key = key_or_supplier.mdc_key
    if not key:
        raise ValueError("MDC key must be a non-empty string")
    return key


def register_key(value_type: type, key_or_supplier: str | MdcKeySupplier) -> None:
    """Register the MDC key for a type.

    Raises:
        ValueError: If the type is already registered with a different key.
    """
    key = _key_of(key_or_supplier)
    with _lock:
        existing = _registered.get(value_type)
        if existing is not None and existing != key:
            raise ValueError(
                f"{value_type.__name__} is already registered with MDC key {existing!r}"
            )
        _registered[value_type] = key


def unregister_key(value_type: type) -> None:
    with _lock:
        _registered.pop(value_type, None)


def clear_keys() -> None:
    """Remove all registered type keys."""
    with _lock:
        _registered.clear()


def registered_key(value_type: type) -> str | None:
    """Registered key for exactly this type (subclasses are not matched)."""
    return _registered.get(value_type)


def resolve_key(
    value: Any,
    key: str | None = None,
    key_supplier: MdcKeySupplier | None = None,
) -> str:
    """Pick the MDC key for a value.

    Order: explicit key, explicit supplier, registered key for the value's
    type, then the type's simple name. An empty key is rejected rather
    than skipped.
    """
    if key is not None:
        return _key_of(key)
    if key_supplier is not None:
        return _key_of(key_supplier)
    value_type = type(value)
    return registered_key(value_type) or value_type.__name__
