"""Global pytest configuration and fixtures."""

from __future__ import annotations


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: test needs a live Redis (set QUIRE_TEST_REDIS_URL)"
    )


def pytest_collection_modifyitems(items):
    """Mark everything under tests/integration as an integration test."""
    for item in items:
        if "integration" in item.path.parts:
            item.add_marker("integration")
