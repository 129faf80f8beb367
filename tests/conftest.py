"""
Shared pytest configuration for miniocred tests.

This module configures pytest and imports all fixtures for use in tests.
"""

import inspect
import logging

import pytest

# Import all fixtures from miniocred.testing
from miniocred.testing import (
    ensure_statement,
    metrics,
    mock_admin_client,
    mock_client_factory,
    plugin,
    plugin_config,
    valid_policy,
)

# Re-export fixtures so they're available to all tests
__all__ = [
    "ensure_statement",
    "metrics",
    "mock_admin_client",
    "mock_client_factory",
    "plugin",
    "plugin_config",
    "valid_policy",
]


@pytest.fixture
def config_file(tmp_path, plugin_config):
    """
    Create a temporary YAML config file.

    Returns:
        Path to temporary config file
    """
    import yaml

    path = tmp_path / "miniocred.yaml"
    with open(path, "w") as f:
        yaml.dump(plugin_config, f)

    return path


def pytest_collection_modifyitems(config, items):
    """
    Modify test items during collection.

    Automatically marks async tests with asyncio marker.
    """
    for item in items:
        if inspect.iscoroutinefunction(getattr(item, "function", None)):
            item.add_marker(pytest.mark.asyncio)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo ``configure_logging`` so caplog sees package records again."""
    yield
    logger = logging.getLogger("miniocred")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
