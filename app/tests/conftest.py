"""Shared pytest fixtures."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def clean_log_context():
    """Start and end every test with an empty structlog context."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
