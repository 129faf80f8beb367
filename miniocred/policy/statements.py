"""
Statement parsing.

A statement is a JSON object telling the plugin which policies to register
and which to attach to an identity:

    {"EnsurePolicy": [{"Name": "readonly-reports", "Policy": {...}}],
     "SetPolicy": ["readonly"]}

Both keys are optional. Parsing is fail-closed: if any statement in a batch
is malformed, the whole batch is rejected and no directives are returned.
"""

import json
import logging
from collections.abc import Iterable
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from miniocred.exceptions import StatementParseError
from miniocred.policy.document import PolicyDocument


logger = logging.getLogger(__name__)


class EnsurePolicy(BaseModel):
    """A policy document to register under ``name`` before binding."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    name: str = Field(default="", alias="Name")
    policy: Optional[PolicyDocument] = Field(default=None, alias="Policy")


class PolicyDirective(BaseModel):
    """The parsed form of one statement."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    ensure_policy: list[EnsurePolicy] = Field(default_factory=list, alias="EnsurePolicy")
    set_policy: list[str] = Field(default_factory=list, alias="SetPolicy")

    @field_validator("ensure_policy", "set_policy", mode="before")
    @classmethod
    def null_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    suffix = f" (+{error.error_count() - 1} more)" if error.error_count() > 1 else ""
    if location:
        return f"{location}: {first['msg']}{suffix}"
    return f"{first['msg']}{suffix}"


def parse_statement(command: str) -> PolicyDirective:
    """
    Decode a single statement.

    Raises:
        ValueError: If the text is not valid JSON or not a statement object
    """
    try:
        data = json.loads(command)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e}") from e
    except TypeError as e:
        raise ValueError(f"statement must be text, got {type(command).__name__}") from e

    if data is None:
        data = {}
    try:
        return PolicyDirective.model_validate(data)
    except ValidationError as e:
        raise ValueError(_describe(e)) from e


def parse_statements(commands: Optional[Iterable[str]]) -> list[PolicyDirective]:
    """
    Decode a batch of statements, preserving their order.

    Every statement is attempted. When any of them fails, a single
    StatementParseError naming all failing statements is raised and the
    successfully parsed ones are discarded.

    Args:
        commands: Statement texts, in request order

    Returns:
        One PolicyDirective per statement

    Raises:
        StatementParseError: If at least one statement is malformed
    """
    directives: list[PolicyDirective] = []
    errors: list[tuple[int, str]] = []

    for index, command in enumerate(commands or ()):
        try:
            directives.append(parse_statement(command))
        except ValueError as e:
            errors.append((index, str(e)))

    if errors:
        logger.debug(f"Rejected statement batch: {len(errors)} malformed statement(s)")
        summary = "; ".join(f"statement {index}: {reason}" for index, reason in errors)
        raise StatementParseError(
            f"{len(errors)} statement(s) failed to parse: {summary}",
            errors=errors,
            details={"step": "parse_statements"},
        )

    return directives
