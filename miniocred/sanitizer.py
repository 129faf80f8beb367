"""
Error sanitizing wrapper.

Errors raised by the admin SDK can echo request data back, including the
root secret. ``ErrorSanitizer`` wraps a plugin and rewrites every error its
operations raise, replacing each secret value reported by
``secret_values()`` with its placeholder. The cause chain of a rewritten
error is dropped, since it may carry the same secrets.
"""

import copy
from collections.abc import Mapping
from typing import Any

from miniocred.exceptions import PluginError, StatementParseError
from miniocred.models import (
    DeleteUserRequest,
    DeleteUserResponse,
    InitializeRequest,
    InitializeResponse,
    NewUserRequest,
    NewUserResponse,
    UpdateUserRequest,
    UpdateUserResponse,
)


# Configuration fields whose values must never appear in errors or logs
SECRET_FIELDS = {
    "secretKey": "[SecretKey]",
    "password": "[Password]",
}


def scrub(text: str, secrets: Mapping[str, str]) -> str:
    """Replace every secret value in ``text`` with its placeholder."""
    for secret, placeholder in secrets.items():
        if secret:
            text = text.replace(secret, placeholder)
    return text


def _scrub_value(value: Any, secrets: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return scrub(value, secrets)
    return value


class ErrorSanitizer:
    """
    Wraps a plugin so that no error it raises contains a secret value.

    Example:
        plugin = ErrorSanitizer(MinioCredentialPlugin())
        await plugin.initialize(InitializeRequest(config=...))
    """

    def __init__(self, plugin):
        self._plugin = plugin

    @property
    def plugin(self):
        return self._plugin

    def type(self) -> str:
        return self._plugin.type()

    def secret_values(self) -> dict[str, str]:
        return self._plugin.secret_values()

    async def initialize(self, request: InitializeRequest) -> InitializeResponse:
        # The new configuration is not installed yet when it fails validation
        config = request.config if isinstance(request.config, Mapping) else {}
        pending = {
            value: placeholder
            for name, placeholder in SECRET_FIELDS.items()
            if isinstance(value := config.get(name), str) and value
        }
        return await self._sanitized(self._plugin.initialize, request, pending)

    async def new_user(self, request: NewUserRequest) -> NewUserResponse:
        return await self._sanitized(self._plugin.new_user, request)

    async def update_user(self, request: UpdateUserRequest) -> UpdateUserResponse:
        return await self._sanitized(self._plugin.update_user, request)

    async def delete_user(self, request: DeleteUserRequest) -> DeleteUserResponse:
        return await self._sanitized(self._plugin.delete_user, request)

    async def close(self) -> None:
        await self._plugin.close()

    async def _sanitized(self, call, request, extra_secrets=None):
        try:
            return await call(request)
        except PluginError as e:
            secrets = {**self.secret_values(), **(extra_secrets or {})}
            raise self._redact(e, secrets) from None
        except Exception as e:
            secrets = {**self.secret_values(), **(extra_secrets or {})}
            raise PluginError(scrub(str(e), secrets)) from None

    @staticmethod
    def _redact(error: PluginError, secrets: Mapping[str, str]) -> PluginError:
        sanitized = copy.copy(error)
        sanitized.message = scrub(error.message, secrets)
        sanitized.args = (sanitized.message,)
        sanitized.details = {
            key: _scrub_value(value, secrets) for key, value in error.details.items()
        }
        if isinstance(sanitized, StatementParseError):
            sanitized.errors = [
                (index, scrub(reason, secrets)) for index, reason in error.errors
            ]
        notes = getattr(error, "__notes__", None)
        if notes:
            sanitized.__notes__ = [scrub(note, secrets) for note in notes]
        return sanitized
