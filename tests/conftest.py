"""Pytest configuration for Recall tests."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from recall.core.metrics import metrics


@pytest.fixture
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with zeroed in-memory counters."""
    metrics.reset()
    yield
    metrics.reset()
