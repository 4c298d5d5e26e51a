"""Shared pytest fixtures for nugsentinel tests."""

import pytest


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"
