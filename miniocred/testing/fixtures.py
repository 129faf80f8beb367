"""
Pytest fixtures for miniocred testing.

Import these fixtures in your conftest.py or test files.
"""

import json
from typing import Any, Dict

import pytest
from prometheus_client import CollectorRegistry

from miniocred.models import InitializeRequest
from miniocred.observability.metrics import MetricsCollector
from miniocred.plugin import MinioCredentialPlugin
from .mocks import MockAdminClient, MockClientFactory


@pytest.fixture
def plugin_config() -> Dict[str, Any]:
    """
    Provides a valid host configuration mapping.
    """
    return {
        "url": "https://h:9000",
        "username": "root",
        "password": "rootpw",
    }


@pytest.fixture
def mock_admin_client():
    """Provides an empty in-memory admin client."""
    return MockAdminClient()


@pytest.fixture
def mock_client_factory(mock_admin_client):
    """Provides a client factory that always returns ``mock_admin_client``."""
    return MockClientFactory(mock_admin_client)


@pytest.fixture
def metrics():
    """Provides a metrics collector with its own registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
async def plugin(plugin_config, mock_client_factory, metrics):
    """
    Provides an initialized plugin wired to the mock admin client.

    Example:
        async def test_create(plugin, mock_admin_client):
            await plugin.new_user(...)
            assert mock_admin_client.method_names() == ["add_user", "set_policy"]
    """
    instance = MinioCredentialPlugin(client_factory=mock_client_factory, metrics=metrics)
    await instance.initialize(InitializeRequest(config=plugin_config))
    mock_client_factory.configs.clear()
    return instance


@pytest.fixture
def valid_policy() -> Dict[str, Any]:
    """Provides a valid read-only policy document."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Action": ["s3:GetObject", "s3:ListBucket"],
                "Resource": ["arn:aws:s3:::reports", "arn:aws:s3:::reports/*"],
            }
        ],
    }


@pytest.fixture
def ensure_statement(valid_policy):
    """Provides a statement that ensures policy 'ro' and sets 'admin'."""
    return json.dumps(
        {
            "EnsurePolicy": [{"Name": "ro", "Policy": valid_policy}],
            "SetPolicy": ["admin"],
        }
    )
