"""Pytest configuration and shared fixtures."""

import os

import pytest
from hypothesis import settings

if "SEALED_RELAY_ENV" not in os.environ:
    os.environ["SEALED_RELAY_ENV"] = "test"

# Create a profile named "no_deadline" with deadline disabled.
settings.register_profile("no_deadline", deadline=None)
settings.load_profile("no_deadline")


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only: the HTTP stack is aiohttp."""
    return "asyncio"
