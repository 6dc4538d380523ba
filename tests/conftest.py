# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Every test starts with an empty MDC, the default serializer, no registered
type keys and an unconfigured structured_mdc logger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

import pytest

from structured_mdc.logging import context
from structured_mdc.logging.keys import clear_keys
from structured_mdc.logging.serializer import reset_serializer


@pytest.fixture(autouse=True)
def clean_mdc_state():
    """Reset process-wide and thread-local MDC state around each test."""
    root = logging.getLogger("structured_mdc")
    saved_handlers = list(root.handlers)
    saved_level = root.level
    context.clear()
    reset_serializer()
    clear_keys()
    yield
    context.clear()
    reset_serializer()
    clear_keys()
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(saved_level)


# === FIXTURES: Sample data ===


@dataclass
class ExampleBean:
    name: str
    age: int
    important_time: datetime
    local_date: date
    local_time: time
    duration: timedelta
    nickname: str | None = None


@pytest.fixture
def example_bean() -> ExampleBean:
    """Bean with temporal and optional fields."""
    return ExampleBean(
        name="John Doe",
        age=35,
        important_time=datetime(2019, 1, 1, 13, 37),
        local_date=date(2020, 1, 1),
        local_time=time(13, 37),
        duration=timedelta(minutes=42),
    )


@pytest.fixture
def aware_datetime() -> datetime:
    return datetime(2019, 1, 1, 13, 37, tzinfo=timezone(timedelta(hours=1)))
