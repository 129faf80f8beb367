"""
IAM policy documents.

Decoding is structural only: any JSON object shaped like a policy document
loads, even when its effect or actions make no sense. ``PolicyDocument.validate_policy``
applies the semantic checks the admin backend would apply, and must pass
before a document is registered. A document without statements is valid,
as it is for the server's own policy validator.
"""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from miniocred.exceptions import PolicyValidationError


DEFAULT_VERSION = "2012-10-17"
ALLOWED_EFFECTS = ("Allow", "Deny")
ALLOWED_SERVICES = ("s3", "admin", "kms", "sts")
S3_RESOURCE_PREFIX = "arn:aws:s3:::"

_ACTION_PATTERN = re.compile(r"^([a-z0-9]+):([A-Za-z0-9*]+)$")


def _as_list(value: Any) -> Any:
    # Action and Resource may be a single string or a list
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class PolicyStatement(BaseModel):
    """A single statement of a policy document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sid: Optional[str] = Field(default=None, alias="Sid")
    effect: str = Field(default="", alias="Effect")
    action: list[str] = Field(default_factory=list, alias="Action")
    not_action: Optional[list[str]] = Field(default=None, alias="NotAction")
    resource: list[str] = Field(default_factory=list, alias="Resource")
    condition: Optional[dict[str, Any]] = Field(default=None, alias="Condition")

    @field_validator("action", "resource", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> Any:
        return _as_list(v)

    @field_validator("not_action", mode="before")
    @classmethod
    def coerce_optional_list(cls, v: Any) -> Any:
        if v is None:
            return None
        return _as_list(v)

    def _actions(self) -> list[str]:
        return self.action or self.not_action or []

    def validate_statement(self, index: int) -> None:
        """Raise PolicyValidationError if this statement is not acceptable."""
        details = {"statement": index}
        if self.sid:
            details["sid"] = self.sid

        if self.effect not in ALLOWED_EFFECTS:
            raise PolicyValidationError(
                f"invalid Effect {self.effect!r}, must be one of {', '.join(ALLOWED_EFFECTS)}",
                details=details,
            )

        if self.action and self.not_action:
            raise PolicyValidationError(
                "Action and NotAction cannot be specified in the same statement",
                details=details,
            )

        actions = self._actions()
        if not actions:
            raise PolicyValidationError("Action must not be empty", details=details)

        has_s3_action = False
        for action in actions:
            match = _ACTION_PATTERN.match(action)
            if match is None or match.group(1) not in ALLOWED_SERVICES:
                raise PolicyValidationError(
                    f"invalid action {action!r}", details=details
                )
            has_s3_action = has_s3_action or match.group(1) == "s3"

        if has_s3_action and not self.resource:
            raise PolicyValidationError(
                "Resource must not be empty for s3 actions", details=details
            )

        for resource in self.resource:
            if not resource.startswith(S3_RESOURCE_PREFIX) or resource == S3_RESOURCE_PREFIX:
                raise PolicyValidationError(
                    f"invalid resource {resource!r}", details=details
                )


class PolicyDocument(BaseModel):
    """
    An IAM-style policy document.

    Wire format:
        {"Version": "2012-10-17",
         "Statement": [{"Effect": "Allow",
                        "Action": ["s3:GetObject"],
                        "Resource": ["arn:aws:s3:::bucket/*"]}]}
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = Field(default="", alias="Version")
    statements: list[PolicyStatement] = Field(default_factory=list, alias="Statement")

    @field_validator("statements", mode="before")
    @classmethod
    def coerce_statements(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, dict):
            return [v]
        return v

    def validate_policy(self) -> None:
        """
        Check the document the way the admin backend would.

        Raises:
            PolicyValidationError: On the first problem found
        """
        if self.version and self.version != DEFAULT_VERSION:
            raise PolicyValidationError(
                f"invalid Version {self.version!r}",
                details={"expected": DEFAULT_VERSION},
            )

        seen_sids: set[str] = set()
        for index, statement in enumerate(self.statements):
            if statement.sid:
                if statement.sid in seen_sids:
                    raise PolicyValidationError(
                        f"duplicate Sid {statement.sid!r}", details={"statement": index}
                    )
                seen_sids.add(statement.sid)
            statement.validate_statement(index)

    def to_bytes(self) -> bytes:
        """
        Serialize to canonical JSON as sent to the admin backend.

        Raises:
            PolicyValidationError: If the document cannot be serialized
        """
        try:
            return self.model_dump_json(by_alias=True, exclude_none=True).encode()
        except (ValidationError, ValueError, TypeError) as e:
            raise PolicyValidationError(f"unable to serialize policy: {e}") from e
