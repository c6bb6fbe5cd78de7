"""Shared fixtures for routeshade tests."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from loguru import logger

from tests.helpers import IASI


@pytest.fixture
def iasi():
    return IASI


@pytest.fixture
def summer_morning():
    """09:00 local time in Iasi on 20 June 2025."""
    return datetime(2025, 6, 20, 6, 0, tzinfo=timezone.utc)


@pytest.fixture
def summer_night():
    return datetime(2025, 6, 20, 23, 0, tzinfo=timezone.utc)


@pytest.fixture
def log_messages():
    """Messages logged through loguru while the test runs."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record['message']), level='DEBUG')
    yield messages
    logger.remove(handler_id)
