"""
Policy handling for miniocred.

- ``statements``: decode caller statements into directives
- ``document``: policy document model and validation
- ``reconciler``: register ensured policies and collect names to bind
"""

from miniocred.policy.document import PolicyDocument, PolicyStatement
from miniocred.policy.reconciler import reconcile_policies
from miniocred.policy.statements import (
    EnsurePolicy,
    PolicyDirective,
    parse_statement,
    parse_statements,
)

__all__ = [
    "PolicyDocument",
    "PolicyStatement",
    "EnsurePolicy",
    "PolicyDirective",
    "parse_statement",
    "parse_statements",
    "reconcile_policies",
]
