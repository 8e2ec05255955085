"""Shared pytest configuration."""

import pytest

from wpintake.core.logging import setup_logging


@pytest.fixture(autouse=True, scope="session")
def _configure_logging():
    """Route structlog through stdlib logging on stderr for the whole session."""
    setup_logging("WARNING")
