"""Pytest fixtures for messaging tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture(scope="session")
def kafka_bootstrap_servers() -> str:
    """Override in integration tests with a real cluster."""
    return "localhost:9092"


@pytest.fixture
def mock_connection(kafka_bootstrap_servers: str) -> MagicMock:
    conn = MagicMock()
    conn.bootstrap_servers = kafka_bootstrap_servers
    conn.producer_config.return_value = {
        "bootstrap_servers": kafka_bootstrap_servers,
        "acks": "all",
    }
    conn.health_check = AsyncMock(return_value=True)
    return conn


@pytest.fixture
def mock_producer() -> MagicMock:
    prod = MagicMock()
    prod.start = AsyncMock()
    prod.stop = AsyncMock()
    prod.send_and_wait = AsyncMock()
    return prod
