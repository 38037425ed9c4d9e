"""
Pytest configuration and shared fixtures for nostrview tests.

Provides:
- Sample events and keys (``tests.fixtures.events``)
- A stub client for the page loaders (``tests.fixtures.clients``)
- A local WebSocket relay served by aiohttp (``tests.fixtures.relays``)
"""

import logging

import pytest


pytest_plugins = [
    "tests.fixtures.events",
    "tests.fixtures.clients",
    "tests.fixtures.relays",
]


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)
