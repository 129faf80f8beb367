"""
miniocred

Dynamic and static credential management for MinIO. Creates, rotates and
deletes users through the MinIO admin API and binds each one to exactly the
canned policies its statements request.

Statements are JSON objects:

    {"EnsurePolicy": [{"Name": "reports-ro", "Policy": {...}}],
     "SetPolicy": ["readonly"]}

``EnsurePolicy`` documents are validated and registered before binding;
``SetPolicy`` names are bound as they are.

Example:
    from miniocred import new_plugin, InitializeRequest

    plugin = new_plugin()
    await plugin.initialize(InitializeRequest(config={
        "url": "https://minio.internal:9000",
        "username": "root",
        "password": "rootpw",
    }))
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Plugin
from miniocred.plugin import MinioCredentialPlugin, new_plugin

# Requests and responses
from miniocred.models import (
    ChangePassword,
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
from miniocred.username import UsernameMetadata

# Errors
from miniocred.exceptions import (
    BackendError,
    CompensationFailure,
    ConfigurationError,
    PluginError,
    PolicyValidationError,
    StatementParseError,
)

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Plugin
    "MinioCredentialPlugin",
    "new_plugin",
    # Requests and responses
    "ChangePassword",
    "DeleteUserRequest",
    "DeleteUserResponse",
    "InitializeRequest",
    "InitializeResponse",
    "NewUserRequest",
    "NewUserResponse",
    "Statements",
    "UpdateUserRequest",
    "UpdateUserResponse",
    "UsernameMetadata",
    # Errors
    "PluginError",
    "ConfigurationError",
    "StatementParseError",
    "PolicyValidationError",
    "BackendError",
    "CompensationFailure",
]
