"""
Username generation from a configurable template.

Templates are Jinja2 expressions rendered in a sandbox. The rendering context
exposes the caller metadata as ``DisplayName`` and ``RoleName`` together with
a small set of helpers:

Filters:
    truncate(n), truncate_sha256(n), lowercase, uppercase,
    replace(old, new), sha256, base64

Functions:
    random(n), unix_time(), unix_time_millis(), timestamp(fmt), uuid()

Components are truncated before they are composed, so the default template
always yields ``v-<display>-<role>-<random>-<time>`` with each part intact
up to its own limit.
"""

import base64
import hashlib
import secrets
import string
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from jinja2 import StrictUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment

from miniocred.exceptions import ConfigurationError


DEFAULT_USERNAME_TEMPLATE = (
    '{{ ("v-%s-%s-%s-%s" | format(DisplayName | truncate(15), '
    "RoleName | truncate(15), random(20), unix_time())) | truncate(100) }}"
)

_RANDOM_ALPHABET = string.ascii_letters + string.digits


@dataclass(frozen=True)
class UsernameMetadata:
    """Per-request metadata supplied by the host for username generation."""

    display_name: Optional[str] = ""
    role_name: Optional[str] = ""

    def as_context(self) -> dict[str, str]:
        return {
            "DisplayName": self.display_name or "",
            "RoleName": self.role_name or "",
        }


def _truncate(value: str, length: int) -> str:
    if length < 0:
        raise ValueError("truncate length must not be negative")
    return str(value)[:length]


def _truncate_sha256(value: str, length: int) -> str:
    # Keeps a prefix and replaces the remainder with its digest
    value = str(value)
    if length < 0:
        raise ValueError("truncate length must not be negative")
    if len(value) <= length:
        return value
    digest = hashlib.sha256(value[length:].encode()).hexdigest()
    return value[:length] + digest


def _random(length: int) -> str:
    if length < 1:
        raise ValueError("random length must be positive")
    return "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(length))


def _timestamp(fmt: str = "%Y-%m-%dT%H:%M:%SZ") -> str:
    return datetime.now(timezone.utc).strftime(fmt)


def _build_environment() -> SandboxedEnvironment:
    env = SandboxedEnvironment(undefined=StrictUndefined, autoescape=False)
    env.filters.update(
        {
            "truncate": _truncate,
            "truncate_sha256": _truncate_sha256,
            "lowercase": lambda v: str(v).lower(),
            "uppercase": lambda v: str(v).upper(),
            "replace": lambda v, old, new: str(v).replace(old, new),
            "sha256": lambda v: hashlib.sha256(str(v).encode()).hexdigest(),
            "base64": lambda v: base64.b64encode(str(v).encode()).decode(),
        }
    )
    env.globals.update(
        {
            "random": _random,
            "unix_time": lambda: int(time.time()),
            "unix_time_millis": lambda: int(time.time() * 1000),
            "timestamp": _timestamp,
            "uuid": lambda: str(uuid.uuid4()),
        }
    )
    return env


class UsernameTemplate:
    """
    A compiled username template.

    Instances are immutable once compiled and safe to share between
    concurrent operations.

    Example:
        >>> template = UsernameTemplate.compile()
        >>> template.generate(UsernameMetadata(display_name="alice", role_name="ro"))
        'v-alice-ro-3kP0...-1760000000'
    """

    def __init__(self, source: str, compiled):
        self._source = source
        self._compiled = compiled

    @property
    def source(self) -> str:
        return self._source

    @classmethod
    def compile(cls, source: Optional[str] = None) -> "UsernameTemplate":
        """
        Compile a template, falling back to the default when empty.

        Raises:
            ConfigurationError: If the template does not parse
        """
        source = source or DEFAULT_USERNAME_TEMPLATE
        try:
            compiled = _build_environment().from_string(source)
        except TemplateError as e:
            raise ConfigurationError(
                f"unable to initialize username template: {e}",
                details={"field": "username_template"},
            ) from e
        return cls(source, compiled)

    def generate(self, metadata: Optional[UsernameMetadata] = None) -> str:
        """
        Render a username for the given metadata.

        Raises:
            ConfigurationError: If rendering fails or yields an empty name
        """
        metadata = metadata or UsernameMetadata()
        try:
            username = self._compiled.render(metadata.as_context()).strip()
        except (TemplateError, TypeError, ValueError) as e:
            raise ConfigurationError(
                f"invalid username template: {e}",
                details={"field": "username_template"},
            ) from e

        if not username:
            raise ConfigurationError(
                "invalid username template: rendered an empty username",
                details={"field": "username_template"},
            )
        return username
