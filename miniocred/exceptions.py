"""
Custom exceptions for miniocred.

All exceptions inherit from PluginError so a host can catch any plugin
failure with a single handler. Each carries a human-readable message and a
``details`` mapping; lifecycle operations record the failing step under
``details["step"]``.
"""

from typing import Optional


class PluginError(Exception):
    """
    Base exception for all miniocred errors.
    """

    def __init__(self, message: str = "", details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    @property
    def step(self) -> Optional[str]:
        """Lifecycle step that failed, if known."""
        return self.details.get("step")


class ConfigurationError(PluginError):
    """
    Raised when the plugin configuration is unusable.

    This includes:
    - Missing or non-string ``url``, ``username`` or ``password``
    - An unparseable connection URL
    - A username template that fails to compile or to render

    Configuration errors are fatal to initialization (nothing is installed)
    or to the single call that hit them. They are never retried.
    """

    pass


class StatementParseError(PluginError):
    """
    Raised when one or more statements in a batch are malformed.

    ``errors`` holds one ``(index, reason)`` pair for every failing statement
    in the batch, not only the first.
    """

    def __init__(
        self,
        message: str = "",
        errors: Optional[list[tuple[int, str]]] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.errors = list(errors or [])


class PolicyValidationError(PluginError):
    """
    Raised when a policy document is structurally invalid.

    Examples:
        - Effect is neither 'Allow' nor 'Deny'
        - Statement without any action
        - S3 action without a resource
        - Unsupported policy version
    """

    pass


class BackendError(PluginError):
    """
    Raised when a call to the admin backend fails.

    Wraps network, authentication, not-found and conflict errors from the
    admin client. The original exception is chained as ``__cause__``.
    """

    pass


class CompensationFailure(PluginError):
    """
    Failure of a best-effort rollback action.

    Built and logged when the delete-after-failed-bind step of user creation
    fails. It is never raised: the caller sees the original bind error.
    """

    pass
