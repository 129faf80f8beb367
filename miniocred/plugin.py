"""
Identity lifecycle controller.

``MinioCredentialPlugin`` implements the operations a secrets-management host
invokes: initialize, create, rotate and delete. Each operation reads one
immutable configuration snapshot, builds its own admin client, and derives
everything else from the request. Nothing about identities or policies is
cached between calls.

User creation is a two-phase operation (create, then bind policies) with a
best-effort compensating delete when the bind fails or the task is cancelled
after the create was sent. It is not a transaction: if the process dies
between the two phases, or the compensating delete fails, the user is left
behind unbound. That case is logged at WARNING and counted in
``miniocred_orphaned_users_total``.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional

from miniocred.admin import AccountStatus, AdminClient, ClientFactory, build_client
from miniocred.config import PluginConfig
from miniocred.exceptions import (
    BackendError,
    CompensationFailure,
    ConfigurationError,
    PluginError,
)
from miniocred.models import (
    DeleteUserRequest,
    DeleteUserResponse,
    InitializeRequest,
    InitializeResponse,
    NewUserRequest,
    NewUserResponse,
    Statements,
    UpdateUserRequest,
    UpdateUserResponse,
)
from miniocred.observability.metrics import MetricsCollector
from miniocred.policy import parse_statements, reconcile_policies
from miniocred.sanitizer import SECRET_FIELDS, ErrorSanitizer
from miniocred.username import UsernameMetadata, UsernameTemplate


logger = logging.getLogger(__name__)

PLUGIN_TYPE = "minio"


@dataclass(frozen=True)
class PluginState:
    """Validated configuration and compiled username template."""

    config: PluginConfig
    username_template: UsernameTemplate


class MinioCredentialPlugin:
    """
    Manages MinIO users and their canned policies.

    Features:
    - Template-driven username generation
    - EnsurePolicy/SetPolicy statement reconciliation
    - Compensating delete when binding policies to a new user fails
    - Fresh admin client per operation

    Example:
        plugin = MinioCredentialPlugin()
        await plugin.initialize(InitializeRequest(config={
            "url": "https://minio.internal:9000",
            "username": "root",
            "password": "rootpw",
        }))
        response = await plugin.new_user(NewUserRequest(
            username_config=UsernameMetadata(display_name="alice", role_name="ro"),
            statements=Statements(commands=['{"SetPolicy": ["readonly"]}']),
            password="s3cr3t-password",
        ))
    """

    def __init__(
        self,
        client_factory: ClientFactory = build_client,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Args:
            client_factory: Builds an admin client from the configuration
            metrics: Optional metrics collector
        """
        self._client_factory = client_factory
        self._metrics = metrics
        self._state: Optional[PluginState] = None
        self._init_lock = asyncio.Lock()

    def type(self) -> str:
        return PLUGIN_TYPE

    def secret_values(self) -> dict[str, str]:
        """Map each configured secret value to its redaction placeholder."""
        state = self._state
        if state is None:
            return {}

        config = state.config.to_mapping()
        return {
            config[name]: placeholder
            for name, placeholder in SECRET_FIELDS.items()
            if isinstance(config.get(name), str) and config[name]
        }

    @property
    def initialized(self) -> bool:
        return self._state is not None

    async def initialize(self, request: InitializeRequest) -> InitializeResponse:
        """
        Validate and install a new configuration.

        The username template is compiled and rendered once with empty
        metadata before anything is installed. On any failure the previous
        configuration (if any) stays in place.

        Raises:
            ConfigurationError: If the configuration or template is invalid
            BackendError: If ``verify_connection`` is set and the backend is down
        """
        with self._track("initialize"):
            # Writers are serialized end to end so the last call to start wins
            async with self._init_lock:
                config = PluginConfig.from_mapping(request.config)
                template = UsernameTemplate.compile(config.username_template)
                template.generate(UsernameMetadata())

                if request.verify_connection:
                    client = self._build_client(config)
                    if not await client.health_check():
                        raise BackendError(
                            "unable to verify connection to admin backend",
                            details={"step": "verify_connection", "url": config.url},
                        )

                self._state = PluginState(config=config, username_template=template)

            logger.info(f"Plugin initialized for {config.url}")
            return InitializeResponse(config=dict(request.config))

    async def new_user(self, request: NewUserRequest) -> NewUserResponse:
        """
        Create a user bound to exactly the requested policies.

        Steps: generate username, build client, parse statements, reconcile
        policies, add the user, bind the policies. If binding fails the user
        is removed again on a best-effort basis and the binding error is
        raised. The same removal runs when the task is cancelled once the
        user may already exist.

        Raises:
            ConfigurationError: Username generation or client construction failed
            StatementParseError: A statement is malformed (nothing created)
            PolicyValidationError: A policy document is invalid (nothing created)
            BackendError: A backend call failed
        """
        with self._track("new_user"):
            state = self._snapshot()

            try:
                username = state.username_template.generate(request.username_config)
            except ConfigurationError as e:
                e.details.setdefault("step", "generate_username")
                raise

            client = self._build_client(state.config)
            policy_names = await self._resolve_policies(client, request.statements)

            try:
                await self._call_backend(
                    "add_user", username, client.add_user, username, request.password
                )
            except asyncio.CancelledError as cancelled:
                # The user may exist even though the call never returned
                await asyncio.shield(self._compensate(client, username, cancelled))
                raise

            try:
                await self._call_backend(
                    "set_policy",
                    username,
                    client.set_policy,
                    ",".join(policy_names),
                    username,
                    False,
                )
            except (PluginError, asyncio.CancelledError) as bind_error:
                await asyncio.shield(self._compensate(client, username, bind_error))
                raise

            logger.info(f"Created user {username} with policies [{', '.join(policy_names)}]")
            return NewUserResponse(username=username)

    async def update_user(self, request: UpdateUserRequest) -> UpdateUserResponse:
        """
        Rotate a user's password and rebind policies from its statements.

        A request without a password change is a successful no-op. The new
        password is only set after the statements have been parsed and
        reconciled, so a bad statement never leaves a half-rotated user.
        """
        with self._track("update_user"):
            state = self._snapshot()
            client = self._build_client(state.config)

            if request.password is None:
                logger.debug(f"No password change requested for {request.username}")
                return UpdateUserResponse()

            policy_names = await self._resolve_policies(
                client, request.password.statements
            )

            await self._call_backend(
                "set_user",
                request.username,
                client.set_user,
                request.username,
                request.password.new_password,
                AccountStatus.ENABLED,
            )

            if policy_names:
                await self._call_backend(
                    "set_policy",
                    request.username,
                    client.set_policy,
                    ",".join(policy_names),
                    request.username,
                    False,
                )

            logger.info(f"Rotated password for user {request.username}")
            return UpdateUserResponse()

    async def delete_user(self, request: DeleteUserRequest) -> DeleteUserResponse:
        """
        Remove a user.

        Canned policies registered for the user are left in place; policy
        lifecycle is independent of user lifecycle.
        """
        with self._track("delete_user"):
            state = self._snapshot()
            client = self._build_client(state.config)

            await self._call_backend(
                "remove_user", request.username, client.remove_user, request.username
            )

            logger.info(f"Deleted user {request.username}")
            return DeleteUserResponse()

    async def close(self) -> None:
        logger.debug("Plugin closed")

    def _snapshot(self) -> PluginState:
        state = self._state
        if state is None:
            raise ConfigurationError("plugin is not initialized")
        return state

    def _track(self, operation: str):
        if self._metrics is None:
            return contextlib.nullcontext()
        return self._metrics.track_operation(operation)

    def _build_client(self, config: PluginConfig) -> AdminClient:
        try:
            return self._client_factory(config)
        except PluginError as e:
            e.details.setdefault("step", "build_client")
            raise
        except Exception as e:
            raise ConfigurationError(
                f"unable to build admin client: {e}",
                details={"step": "build_client"},
            ) from e

    async def _resolve_policies(
        self, client: AdminClient, statements: Statements
    ) -> list[str]:
        directives = parse_statements(statements.commands)
        try:
            return await reconcile_policies(directives, client, self._metrics)
        except PluginError as e:
            e.details.setdefault("step", "reconcile_policies")
            raise

    async def _call_backend(
        self,
        step: str,
        username: str,
        call: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> None:
        try:
            await call(*args)
        except PluginError as e:
            e.details.setdefault("step", step)
            raise
        except Exception as e:
            raise BackendError(
                f"{step} failed: {e}",
                details={"step": step, "username": username},
            ) from e

    async def _compensate(
        self, client: AdminClient, username: str, cause: BaseException
    ) -> None:
        try:
            await client.remove_user(username)
        except Exception as e:
            failure = CompensationFailure(
                f"unable to remove user {username} after failed create: {e}",
                details={"step": "remove_user", "username": username},
            )
            logger.warning(f"Orphaned user {username}: {failure}")
            if self._metrics:
                self._metrics.record_orphaned_user()
            cause.add_note(str(failure))
        else:
            logger.info(f"Removed user {username} after failed create")


def new_plugin(
    client_factory: ClientFactory = build_client,
    metrics: Optional[MetricsCollector] = None,
):
    """Create a plugin wrapped so that errors never carry secret values."""
    return ErrorSanitizer(MinioCredentialPlugin(client_factory, metrics))
