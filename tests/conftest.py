# tests/conftest.py

"""Shared pytest fixtures for all aggregator tests."""

from collections.abc import Generator
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def block_upstream_sessions() -> Generator[None, None, None]:
    """Fail fast if a test builds a real curl_cffi session by accident."""
    with patch(
        "catalog_aggregator.upstream.gateway.curl_requests.Session",
        side_effect=RuntimeError("network access is disabled in tests"),
    ):
        yield
