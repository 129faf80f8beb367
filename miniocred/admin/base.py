"""Abstract base class for admin backend clients.

This module defines the interface the lifecycle controller needs from the
object-storage admin API. Every method is a blocking remote call from the
backend's point of view and is exposed here as a coroutine, so cancelling the
calling task cancels the wait.
"""

from abc import ABC, abstractmethod
from enum import Enum


class AccountStatus(str, Enum):
    """Account state applied when a user's password is set."""

    ENABLED = "enabled"
    DISABLED = "disabled"


class AdminClient(ABC):
    """Abstract admin client.

    Implementations are built fresh for every lifecycle operation by the
    client factory and are not shared between operations.
    """

    @abstractmethod
    async def add_user(self, username: str, password: str) -> None:
        """Create a user with the given secret."""
        ...

    @abstractmethod
    async def remove_user(self, username: str) -> None:
        """Delete a user."""
        ...

    @abstractmethod
    async def set_user(self, username: str, password: str, status: AccountStatus) -> None:
        """Set a user's secret and account status."""
        ...

    @abstractmethod
    async def set_policy(self, policy_names: str, entity: str, is_group: bool = False) -> None:
        """Bind a comma separated list of canned policies to a user or group."""
        ...

    @abstractmethod
    async def add_canned_policy(self, name: str, document: bytes) -> None:
        """Register (or overwrite) a named policy document."""
        ...

    async def health_check(self) -> bool:
        """Check if the backend is reachable.

        Returns:
            bool: True if healthy, False otherwise
        """
        return True
