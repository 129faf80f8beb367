"""
miniocred - Testing Utilities

Mocks and fixtures for testing code built on miniocred:
    from miniocred.testing import MockAdminClient, mock_admin_client
"""

from .mocks import (
    AdminCall,
    MockAdminClient,
    MockClientFactory,
    MockUser,
)

from .fixtures import (
    ensure_statement,
    metrics,
    mock_admin_client,
    mock_client_factory,
    plugin,
    plugin_config,
    valid_policy,
)

__all__ = [
    # Mocks
    "AdminCall",
    "MockAdminClient",
    "MockClientFactory",
    "MockUser",

    # Fixtures
    "ensure_statement",
    "metrics",
    "mock_admin_client",
    "mock_client_factory",
    "plugin",
    "plugin_config",
    "valid_policy",
]
