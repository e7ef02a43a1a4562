"""Shared fixtures for firemock tests.

- log_capture: records loguru messages through a custom sink
- numbers: three documents with a numeric field ``n``
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest


@pytest.fixture
def log_capture() -> Iterator[list[dict[str, Any]]]:
    """Capture loguru logs (firemock logs through loguru, not stdlib logging)."""
    from loguru import logger

    captured_logs: list[dict[str, Any]] = []

    def sink(message: Any) -> None:
        record = message.record
        captured_logs.append({
            "level": record["level"].name,
            "message": record["message"],
            "extra": dict(record["extra"]),
        })

    handler_id = logger.add(sink, level="DEBUG", format="{message}")
    yield captured_logs
    logger.remove(handler_id)


@pytest.fixture
def numbers() -> dict[str, Any]:
    return {"a": {"n": 1}, "b": {"n": 2}, "c": {"n": 3}}
