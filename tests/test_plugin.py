"""
Tests for the identity lifecycle controller.

Covers initialization, user creation with compensation, password rotation
and deletion against the in-memory admin client.
"""

import asyncio
import json
import logging
import re

import pytest

from miniocred.admin import AccountStatus
from miniocred.exceptions import (
    BackendError,
    ConfigurationError,
    PolicyValidationError,
    StatementParseError,
)
from miniocred.models import (
    ChangePassword,
    DeleteUserRequest,
    InitializeRequest,
    NewUserRequest,
    Statements,
    UpdateUserRequest,
    UpdateUserResponse,
)
from miniocred.plugin import MinioCredentialPlugin
from miniocred.testing import MockAdminClient, MockClientFactory
from miniocred.username import UsernameMetadata


def new_user_request(*commands, password="user-pw", display_name="alice", role_name="ro"):
    return NewUserRequest(
        username_config=UsernameMetadata(display_name=display_name, role_name=role_name),
        statements=Statements(commands=list(commands)),
        password=password,
    )


def rotate_request(username, *commands, new_password="new-pw"):
    return UpdateUserRequest(
        username=username,
        password=ChangePassword(
            new_password=new_password, statements=Statements(commands=list(commands))
        ),
    )


def sample(metrics, name, **labels):
    return metrics.registry.get_sample_value(name, labels) or 0.0


class TestInitialize:
    """Test configuration installation."""

    @pytest.mark.asyncio
    async def test_initialize(self, plugin_config, mock_client_factory):
        plugin = MinioCredentialPlugin(client_factory=mock_client_factory)
        plugin_config["plugin_name"] = "minio"

        response = await plugin.initialize(InitializeRequest(config=plugin_config))

        assert plugin.initialized
        assert response.config == plugin_config
        # No connection is made unless asked for
        assert mock_client_factory.build_count == 0

    def test_type(self):
        assert MinioCredentialPlugin().type() == "minio"

    @pytest.mark.asyncio
    async def test_secret_values(self, plugin):
        assert plugin.secret_values() == {"rootpw": "[Password]"}

    def test_secret_values_uninitialized(self):
        assert MinioCredentialPlugin().secret_values() == {}

    @pytest.mark.asyncio
    async def test_missing_field_installs_nothing(self, plugin_config):
        plugin = MinioCredentialPlugin(client_factory=MockClientFactory())
        del plugin_config["password"]

        with pytest.raises(ConfigurationError, match="'password' must be provided"):
            await plugin.initialize(InitializeRequest(config=plugin_config))

        assert not plugin.initialized

    @pytest.mark.asyncio
    async def test_invalid_template_installs_nothing(self, plugin_config):
        plugin = MinioCredentialPlugin(client_factory=MockClientFactory())
        plugin_config["username_template"] = "{{ DisplayName "

        with pytest.raises(ConfigurationError, match="unable to initialize username template"):
            await plugin.initialize(InitializeRequest(config=plugin_config))

        assert not plugin.initialized

    @pytest.mark.asyncio
    async def test_template_rendering_empty_rejected(self, plugin_config):
        plugin = MinioCredentialPlugin(client_factory=MockClientFactory())
        plugin_config["username_template"] = "{{ DisplayName }}"

        with pytest.raises(ConfigurationError, match="empty username"):
            await plugin.initialize(InitializeRequest(config=plugin_config))

    @pytest.mark.asyncio
    async def test_failed_reinitialize_keeps_previous(
        self, plugin, plugin_config, mock_admin_client
    ):
        broken = dict(plugin_config, url=42, password="other-pw")

        with pytest.raises(ConfigurationError):
            await plugin.initialize(InitializeRequest(config=broken))

        assert plugin.secret_values() == {"rootpw": "[Password]"}
        await plugin.new_user(new_user_request())
        assert mock_admin_client.method_names() == ["add_user", "set_policy"]

    @pytest.mark.asyncio
    async def test_reinitialize_replaces_config(
        self, plugin, plugin_config, mock_client_factory
    ):
        plugin_config["url"] = "http://other:9000"
        await plugin.initialize(InitializeRequest(config=plugin_config))

        await plugin.update_user(UpdateUserRequest(username="alice"))

        assert mock_client_factory.configs[-1].url == "http://other:9000"

    @pytest.mark.asyncio
    async def test_verify_connection(self, plugin_config, mock_client_factory, mock_admin_client):
        plugin = MinioCredentialPlugin(client_factory=mock_client_factory)

        await plugin.initialize(InitializeRequest(config=plugin_config, verify_connection=True))

        assert plugin.initialized
        assert mock_admin_client.method_names() == ["health_check"]

    @pytest.mark.asyncio
    async def test_verify_connection_unhealthy(self, plugin_config):
        plugin = MinioCredentialPlugin(
            client_factory=MockClientFactory(MockAdminClient(healthy=False))
        )

        with pytest.raises(BackendError) as exc_info:
            await plugin.initialize(
                InitializeRequest(config=plugin_config, verify_connection=True)
            )

        assert exc_info.value.step == "verify_connection"
        assert not plugin.initialized

    @pytest.mark.asyncio
    async def test_concurrent_initialize_last_started_wins(
        self, plugin_config, mock_client_factory, mock_admin_client
    ):
        plugin = MinioCredentialPlugin(client_factory=mock_client_factory)
        mock_admin_client.delay_on("health_check", 0.05)
        first = InitializeRequest(
            config={**plugin_config, "password": "pw-a"}, verify_connection=True
        )
        second = InitializeRequest(config={**plugin_config, "password": "pw-b"})

        await asyncio.gather(plugin.initialize(first), plugin.initialize(second))

        assert plugin.secret_values() == {"pw-b": "[Password]"}

    @pytest.mark.asyncio
    async def test_operations_require_initialization(self):
        plugin = MinioCredentialPlugin(client_factory=MockClientFactory())

        with pytest.raises(ConfigurationError, match="not initialized"):
            await plugin.new_user(new_user_request())
        with pytest.raises(ConfigurationError, match="not initialized"):
            await plugin.update_user(rotate_request("alice"))
        with pytest.raises(ConfigurationError, match="not initialized"):
            await plugin.delete_user(DeleteUserRequest(username="alice"))


class TestNewUser:
    """Test user creation."""

    @pytest.mark.asyncio
    async def test_create_with_named_policy(self, plugin, mock_admin_client):
        response = await plugin.new_user(new_user_request('{"SetPolicy":["readonly"]}'))

        assert re.match(r"^v-alice-ro-[A-Za-z0-9]{20}-\d+$", response.username)
        assert mock_admin_client.method_names() == ["add_user", "set_policy"]
        assert mock_admin_client.calls_to("set_policy")[0].args == (
            "readonly",
            response.username,
            False,
        )

    @pytest.mark.asyncio
    async def test_create_with_ensured_and_named_policies(
        self, plugin, mock_admin_client, ensure_statement
    ):
        response = await plugin.new_user(new_user_request(ensure_statement))

        username = response.username
        assert username.startswith("v-alice-ro-")
        assert mock_admin_client.method_names() == [
            "add_canned_policy",
            "add_user",
            "set_policy",
        ]
        assert mock_admin_client.calls_to("add_user")[0].args == (username, "user-pw")
        assert mock_admin_client.calls_to("set_policy")[0].args == (
            "ro,admin",
            username,
            False,
        )
        assert mock_admin_client.users[username].policies == ["ro", "admin"]
        assert "ro" in mock_admin_client.canned_policies

    @pytest.mark.asyncio
    async def test_create_without_statements_binds_empty_list(
        self, plugin, mock_admin_client
    ):
        response = await plugin.new_user(new_user_request())

        assert mock_admin_client.calls_to("set_policy")[0].args == (
            "",
            response.username,
            False,
        )

    @pytest.mark.asyncio
    async def test_custom_template(self, plugin_config, mock_client_factory):
        plugin = MinioCredentialPlugin(client_factory=mock_client_factory)
        plugin_config["username_template"] = "{{ RoleName }}_{{ DisplayName | lowercase }}"
        await plugin.initialize(InitializeRequest(config=plugin_config))

        response = await plugin.new_user(new_user_request(display_name="Alice"))

        assert response.username == "ro_alice"

    @pytest.mark.asyncio
    async def test_malformed_statement_creates_nothing(self, plugin, mock_admin_client):
        with pytest.raises(StatementParseError) as exc_info:
            await plugin.new_user(
                new_user_request('{"SetPolicy": ["readonly"]}', "{not json")
            )

        assert exc_info.value.step == "parse_statements"
        assert mock_admin_client.get_calls() == []

    @pytest.mark.asyncio
    async def test_invalid_policy_creates_nothing(self, plugin, mock_admin_client):
        statement = json.dumps(
            {
                "EnsurePolicy": [
                    {
                        "Name": "bad",
                        "Policy": {
                            "Version": "2012-10-17",
                            "Statement": [{"Effect": "Maybe", "Action": ["s3:*"]}],
                        },
                    }
                ]
            }
        )

        with pytest.raises(PolicyValidationError) as exc_info:
            await plugin.new_user(new_user_request(statement))

        assert exc_info.value.step == "reconcile_policies"
        assert mock_admin_client.get_calls() == []
        assert mock_admin_client.users == {}

    @pytest.mark.asyncio
    async def test_username_generation_failure(self, plugin_config, mock_client_factory):
        plugin = MinioCredentialPlugin(client_factory=mock_client_factory)
        plugin_config["username_template"] = "u{{ DisplayName | truncate(3 - RoleName | length) }}"
        await plugin.initialize(InitializeRequest(config=plugin_config))

        with pytest.raises(ConfigurationError) as exc_info:
            await plugin.new_user(new_user_request(role_name="longer"))

        assert exc_info.value.step == "generate_username"
        assert mock_client_factory.build_count == 0

    @pytest.mark.asyncio
    async def test_add_user_failure(self, plugin, mock_admin_client):
        mock_admin_client.fail_on("add_user", RuntimeError("user already exists"))

        with pytest.raises(BackendError) as exc_info:
            await plugin.new_user(new_user_request())

        assert exc_info.value.step == "add_user"
        assert mock_admin_client.method_names() == ["add_user"]

    @pytest.mark.asyncio
    async def test_bind_failure_removes_user(self, plugin, mock_admin_client, metrics):
        mock_admin_client.fail_on("set_policy", RuntimeError("policy not found"))

        with pytest.raises(BackendError, match="policy not found") as exc_info:
            await plugin.new_user(new_user_request('{"SetPolicy": ["missing"]}'))

        error = exc_info.value
        assert error.step == "set_policy"
        assert isinstance(error.__cause__, RuntimeError)
        assert mock_admin_client.method_names() == ["add_user", "set_policy", "remove_user"]
        assert mock_admin_client.users == {}
        assert sample(metrics, "miniocred_orphaned_users_total") == 0.0

    @pytest.mark.asyncio
    async def test_compensation_failure_surfaces_bind_error(
        self, plugin, mock_admin_client, metrics, caplog
    ):
        mock_admin_client.fail_on("set_policy", RuntimeError("policy not found"))
        mock_admin_client.fail_on("remove_user", ConnectionError("connection reset"))

        with caplog.at_level(logging.WARNING, logger="miniocred.plugin"):
            with pytest.raises(BackendError) as exc_info:
                await plugin.new_user(new_user_request())

        error = exc_info.value
        assert error.step == "set_policy"
        assert any("connection reset" in note for note in error.__notes__)
        assert len(mock_admin_client.calls_to("remove_user")) == 1
        assert len(mock_admin_client.users) == 1
        assert sample(metrics, "miniocred_orphaned_users_total") == 1.0
        assert "Orphaned user" in caplog.text

    async def _cancel_during(self, plugin, mock_admin_client, method):
        mock_admin_client.delay_on(method, 10)
        task = asyncio.create_task(plugin.new_user(new_user_request()))
        while not mock_admin_client.calls_to(method):
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_cancel_during_create_removes_user(self, plugin, mock_admin_client, metrics):
        await self._cancel_during(plugin, mock_admin_client, "add_user")

        assert mock_admin_client.method_names() == ["add_user", "remove_user"]
        assert mock_admin_client.users == {}
        assert sample(metrics, "miniocred_orphaned_users_total") == 0.0

    @pytest.mark.asyncio
    async def test_cancel_during_bind_removes_user(self, plugin, mock_admin_client):
        await self._cancel_during(plugin, mock_admin_client, "set_policy")

        assert mock_admin_client.method_names() == ["add_user", "set_policy", "remove_user"]
        assert mock_admin_client.users == {}

    @pytest.mark.asyncio
    async def test_cancel_with_failed_removal_counts_orphan(
        self, plugin, mock_admin_client, metrics, caplog
    ):
        mock_admin_client.fail_on("remove_user", ConnectionError("connection reset"))

        with caplog.at_level(logging.WARNING, logger="miniocred.plugin"):
            await self._cancel_during(plugin, mock_admin_client, "add_user")

        assert len(mock_admin_client.users) == 1
        assert sample(metrics, "miniocred_orphaned_users_total") == 1.0
        assert "Orphaned user" in caplog.text

    @pytest.mark.asyncio
    async def test_fresh_client_per_operation(self, plugin, mock_client_factory):
        await plugin.new_user(new_user_request())
        await plugin.new_user(new_user_request())

        assert mock_client_factory.build_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_creates(self, plugin, mock_admin_client):
        responses = await asyncio.gather(
            *(plugin.new_user(new_user_request()) for _ in range(5))
        )

        usernames = {response.username for response in responses}
        assert len(usernames) == 5
        assert set(mock_admin_client.users) == usernames

    @pytest.mark.asyncio
    async def test_metrics(self, plugin, mock_admin_client, metrics):
        await plugin.new_user(new_user_request())
        mock_admin_client.fail_on("add_user")
        with pytest.raises(BackendError):
            await plugin.new_user(new_user_request())

        assert sample(
            metrics, "miniocred_operations_total", operation="new_user", status="success"
        ) == 1.0
        assert sample(
            metrics, "miniocred_operations_total", operation="new_user", status="error"
        ) == 1.0


class TestUpdateUser:
    """Test password rotation."""

    @pytest.mark.asyncio
    async def test_no_password_is_noop(self, plugin, mock_admin_client, mock_client_factory):
        response = await plugin.update_user(UpdateUserRequest(username="alice"))

        assert response == UpdateUserResponse()
        assert mock_admin_client.get_calls() == []
        assert mock_client_factory.build_count == 1

    @pytest.mark.asyncio
    async def test_rotate_and_rebind(self, plugin, mock_admin_client, ensure_statement):
        await plugin.update_user(rotate_request("alice", ensure_statement))

        assert mock_admin_client.method_names() == [
            "add_canned_policy",
            "set_user",
            "set_policy",
        ]
        assert mock_admin_client.calls_to("set_user")[0].args == (
            "alice",
            "new-pw",
            AccountStatus.ENABLED,
        )
        assert mock_admin_client.calls_to("set_policy")[0].args == (
            "ro,admin",
            "alice",
            False,
        )

    @pytest.mark.asyncio
    async def test_rotate_without_statements_skips_bind(self, plugin, mock_admin_client):
        await plugin.update_user(rotate_request("alice"))

        assert mock_admin_client.method_names() == ["set_user"]

    @pytest.mark.asyncio
    async def test_malformed_statement_leaves_password(self, plugin, mock_admin_client):
        with pytest.raises(StatementParseError):
            await plugin.update_user(rotate_request("alice", "[]"))

        assert mock_admin_client.get_calls() == []

    @pytest.mark.asyncio
    async def test_set_user_failure(self, plugin, mock_admin_client):
        mock_admin_client.fail_on("set_user", RuntimeError("no such user"))

        with pytest.raises(BackendError) as exc_info:
            await plugin.update_user(rotate_request("alice", '{"SetPolicy": ["ro"]}'))

        assert exc_info.value.step == "set_user"
        assert mock_admin_client.calls_to("set_policy") == []


class TestDeleteUser:
    """Test user deletion."""

    @pytest.mark.asyncio
    async def test_delete_only_removes_user(self, plugin, mock_admin_client, ensure_statement):
        created = await plugin.new_user(new_user_request(ensure_statement))
        mock_admin_client.clear_calls()

        await plugin.delete_user(
            DeleteUserRequest(
                username=created.username,
                statements=Statements(commands=[ensure_statement]),
            )
        )

        assert mock_admin_client.method_names() == ["remove_user"]
        assert created.username not in mock_admin_client.users
        # Canned policies outlive the user
        assert "ro" in mock_admin_client.canned_policies

    @pytest.mark.asyncio
    async def test_delete_missing_user(self, plugin):
        with pytest.raises(BackendError) as exc_info:
            await plugin.delete_user(DeleteUserRequest(username="ghost"))

        assert exc_info.value.step == "remove_user"
        assert exc_info.value.details["username"] == "ghost"
