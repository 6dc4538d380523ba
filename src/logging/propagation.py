# src/logging/propagation.py - v1
"""Carry the MDC of a producing thread into work run on another thread.

``decorate`` snapshots the caller's MDC when the work is wrapped. When the
wrapped callable runs (possibly much later, on a pooled worker), the snapshot
is installed according to an ``OverwriteStrategy`` and the worker's own MDC
is restored afterwards, whether the work returns or raises.
"""

from __future__ import annotations

import functools
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping, TypeVar

from structured_mdc.logging import context

if TYPE_CHECKING:
    from structured_mdc.config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OverwriteStrategy(str, Enum):
    """What to do when the executing thread already has MDC content."""

    # Keep the thread's content, skip the snapshot and log a WARNing.
    PREVENT_OVERWRITE = "prevent_overwrite"
    # Install the snapshot anyway and log a WARNing.
    LOG_OVERWRITE = "log_overwrite"
    # Install the snapshot without a WARNing.
    JUST_OVERWRITE = "just_overwrite"


@dataclass(frozen=True)
class PropagationSnapshot:
    """Immutable copy of an MDC, independent of later changes to it.

    Snapshots compare by their entries but are not hashable.
    """

    entries: Mapping[str, str] = field(default_factory=dict)

    # mappings are unhashable
    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    @classmethod
    def capture(cls) -> PropagationSnapshot:
        """Snapshot the current thread's MDC."""
        return cls(context.get_copy_of_context_map())

    @property
    def keys(self) -> list[str]:
        return list(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries


def _format_keys(keys: list[str]) -> str:
    return "[" + ", ".join(keys) + "]"


def _install(
    snapshot: PropagationSnapshot,
    strategy: OverwriteStrategy,
    present_keys: list[str],
) -> None:
    if strategy is OverwriteStrategy.LOG_OVERWRITE and present_keys:
        logger.warning(
            "MDC context will be set despite MDC keys being present in target thread. "
            "MDC keys present: %s",
            _format_keys(present_keys),
        )
    context.set_context_map(snapshot.entries)
    logger.debug("MDC context set for runnable.")


def decorate(
    fn: Callable[..., T],
    overwrite_strategy: OverwriteStrategy = OverwriteStrategy.PREVENT_OVERWRITE,
) -> Callable[..., T]:
    """Wrap fn so it runs with the current thread's MDC.

    The snapshot is taken now, in the calling thread. Arguments and the return
    value of fn pass through the wrapper unchanged.

    Args:
        fn: Work to run, typically on another thread.
        overwrite_strategy: Behaviour when the executing thread has MDC content.

    Returns:
        The decorated callable.
    """
    strategy = OverwriteStrategy(overwrite_strategy)
    parent = PropagationSnapshot.capture()

    @functools.wraps(fn)
    def run_with_mdc(*args: Any, **kwargs: Any) -> T:
        context_was_set = False
        child = PropagationSnapshot.capture()
        try:
            if not parent.is_empty:
                if strategy is not OverwriteStrategy.PREVENT_OVERWRITE or child.is_empty:
                    _install(parent, strategy, child.keys)
                    context_was_set = True
                else:
                    logger.warning(
                        "MDC context was not set for runnable because it was run in a "
                        "thread that already had a context. MDC keys present: %s",
                        _format_keys(child.keys),
                    )
            return fn(*args, **kwargs)
        finally:
            if context_was_set:
                if child.is_empty:
                    context.clear()
                else:
                    context.set_context_map(child.entries)

    return run_with_mdc


class MdcTaskDecorator:
    """Reusable decorator with a fixed overwrite strategy.

    Hand it to anything that accepts a task decorator, or call it directly::

        decorator = MdcTaskDecorator(OverwriteStrategy.LOG_OVERWRITE)
        threading.Thread(target=decorator(work)).start()
    """

    def __init__(
        self,
        overwrite_strategy: OverwriteStrategy = OverwriteStrategy.PREVENT_OVERWRITE,
    ) -> None:
        self.overwrite_strategy = OverwriteStrategy(overwrite_strategy)

    @classmethod
    def from_settings(cls, settings: Settings) -> MdcTaskDecorator:
        return cls(settings.overwrite_strategy)

    def decorate(self, fn: Callable[..., T]) -> Callable[..., T]:
        return decorate(fn, self.overwrite_strategy)

    __call__ = decorate

    def __repr__(self) -> str:
        return f"MdcTaskDecorator({self.overwrite_strategy.name})"


class MdcThreadPoolExecutor(ThreadPoolExecutor):
    """ThreadPoolExecutor that propagates the submitter's MDC to its workers.

    Every submitted callable is decorated in the submitting thread, so the
    snapshot reflects the MDC at submission time. ``map`` goes through
    ``submit`` and is covered as well.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        thread_name_prefix: str = "",
        overwrite_strategy: OverwriteStrategy = OverwriteStrategy.PREVENT_OVERWRITE,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix, **kwargs
        )
        self.task_decorator = MdcTaskDecorator(overwrite_strategy)

    def submit(self, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> Future[T]:
        return super().submit(self.task_decorator(fn), *args, **kwargs)
