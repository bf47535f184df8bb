"""Shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from loguru import logger


@pytest.fixture
def log_records() -> Iterator[list[dict]]:
    """Capture loguru records (level name + message) emitted during a test."""
    records: list[dict] = []
    handler_id = logger.add(
        lambda msg: records.append({"level": msg.record["level"].name, "message": msg.record["message"]}),
        level="DEBUG",
    )
    yield records
    logger.remove(handler_id)
