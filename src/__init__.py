"""structured-mdc: scoped, JSON-structured diagnostic context for log records."""

from structured_mdc.logging.context import JSON_PREFIX, get_json_prefix
from structured_mdc.logging.keys import MdcKeySupplier, register_key
from structured_mdc.logging.mdc_context import MdcContext, mdc, mdc_scope, update
from structured_mdc.logging.propagation import (
    MdcTaskDecorator,
    MdcThreadPoolExecutor,
    OverwriteStrategy,
    decorate,
)
from structured_mdc.logging.serializer import reset_serializer, set_serializer
from structured_mdc.version import __version__

__all__ = [
    "JSON_PREFIX",
    "MdcContext",
    "MdcKeySupplier",
    "MdcTaskDecorator",
    "MdcThreadPoolExecutor",
    "OverwriteStrategy",
    "__version__",
    "decorate",
    "get_json_prefix",
    "mdc",
    "mdc_scope",
    "register_key",
    "reset_serializer",
    "set_serializer",
    "update",
]
