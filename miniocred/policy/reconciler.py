"""
Policy reconciliation.

Turns parsed directives into backend calls: every ``EnsurePolicy`` document
is validated, serialized and registered, then the list of policy names to
bind is returned in discovery order.
"""

import logging
from collections.abc import Sequence
from typing import Optional

from miniocred.admin.base import AdminClient
from miniocred.exceptions import BackendError, PluginError, PolicyValidationError
from miniocred.observability.metrics import MetricsCollector
from miniocred.policy.statements import EnsurePolicy, PolicyDirective


logger = logging.getLogger(__name__)


async def _register(
    client: AdminClient,
    entry: EnsurePolicy,
    metrics: Optional[MetricsCollector],
) -> None:
    if not entry.name:
        raise PolicyValidationError("policy name must not be empty")
    if entry.policy is None:
        raise PolicyValidationError(
            "policy document must be provided", details={"policy": entry.name}
        )

    try:
        entry.policy.validate_policy()
    except PolicyValidationError as e:
        e.details.setdefault("policy", entry.name)
        raise

    document = entry.policy.to_bytes()

    try:
        await client.add_canned_policy(entry.name, document)
    except PluginError:
        raise
    except Exception as e:
        if metrics:
            metrics.record_policy_registration("error")
        raise BackendError(
            f"failed to register policy {entry.name!r}: {e}",
            details={"step": "add_canned_policy", "policy": entry.name},
        ) from e

    if metrics:
        metrics.record_policy_registration("success")
    logger.debug(f"Registered canned policy {entry.name}")


async def reconcile_policies(
    directives: Sequence[PolicyDirective],
    client: AdminClient,
    metrics: Optional[MetricsCollector] = None,
) -> list[str]:
    """
    Register ensured policies and collect the names to bind.

    Directives are processed in order; within a directive, EnsurePolicy
    entries come first, then SetPolicy names. The first failure aborts the
    whole reconciliation. Policies registered before the failure are left
    in place.

    Args:
        directives: Parsed statements, in request order
        client: Admin client for this operation
        metrics: Optional metrics collector

    Returns:
        Policy names in discovery order, duplicates preserved

    Raises:
        PolicyValidationError: If a document is invalid or cannot be serialized
        BackendError: If registering a policy fails
    """
    policy_names: list[str] = []

    for directive in directives:
        for entry in directive.ensure_policy:
            await _register(client, entry, metrics)
            policy_names.append(entry.name)
        policy_names.extend(directive.set_policy)

    return policy_names
