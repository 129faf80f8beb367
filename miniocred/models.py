"""
Request and response types exchanged with the host.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from miniocred.username import UsernameMetadata


@dataclass(frozen=True)
class Statements:
    """Caller-supplied statement texts, in order."""

    commands: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class InitializeRequest:
    config: dict[str, Any]
    verify_connection: bool = False


@dataclass(frozen=True)
class InitializeResponse:
    config: dict[str, Any]


@dataclass(frozen=True)
class NewUserRequest:
    """
    Request to create a dynamic identity.

    Attributes:
        username_config: Metadata fed to the username template
        statements: Creation statements (policies to ensure and bind)
        password: Secret to assign to the new user
        rollback_statements: Accepted for host compatibility, unused
        expiration: Accepted for host compatibility, unused
    """

    username_config: UsernameMetadata
    statements: Statements
    password: str = field(repr=False)
    rollback_statements: Statements = field(default_factory=Statements)
    expiration: Optional[datetime] = None


@dataclass(frozen=True)
class NewUserResponse:
    username: str


@dataclass(frozen=True)
class ChangePassword:
    new_password: str = field(repr=False)
    statements: Statements = field(default_factory=Statements)


@dataclass(frozen=True)
class UpdateUserRequest:
    """
    Request to rotate a user's password.

    Only password changes are acted on; a request without ``password``
    succeeds without touching the backend.
    """

    username: str
    password: Optional[ChangePassword] = None


@dataclass(frozen=True)
class UpdateUserResponse:
    pass


@dataclass(frozen=True)
class DeleteUserRequest:
    username: str
    statements: Statements = field(default_factory=Statements)


@dataclass(frozen=True)
class DeleteUserResponse:
    pass
