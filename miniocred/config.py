"""
Configuration management for miniocred.

The host hands the plugin an opaque mapping at initialization. This module
turns it into a frozen, Pydantic-validated ``PluginConfig`` exactly once, so
lifecycle operations never re-check field types. Validation enforces:

- ``url``, ``username`` and ``password`` are present and are strings
- ``username_template``, when given, is a string

Configuration can be loaded from:
- The host's initialization mapping (``PluginConfig.from_mapping``)
- YAML files (for the command line tools)
- Environment variables (for container overrides)
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from miniocred.exceptions import ConfigurationError


REQUIRED_FIELDS = ("username", "password", "url")


class PluginConfig(BaseModel):
    """
    Connection and username template settings for one plugin instance.

    Extra keys supplied by the host (``plugin_name``, ``verify_connection``
    and the like) are preserved and echoed back on initialization.

    Example:
        config = PluginConfig.from_mapping({
            "url": "https://minio.internal:9000",
            "username": "root",
            "password": "rootpw",
        })
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    url: StrictStr = Field(..., description="Admin API endpoint URL")
    username: StrictStr = Field(..., description="Root access key")
    password: StrictStr = Field(..., repr=False, description="Root secret key")
    username_template: Optional[StrictStr] = Field(
        default=None, description="Template used to generate usernames"
    )

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PluginConfig":
        """
        Validate a host-supplied configuration mapping.

        Raises:
            ConfigurationError: naming the first offending field
        """
        if not isinstance(raw, Mapping):
            raise ConfigurationError("configuration must be a mapping")

        template = raw.get("username_template")
        if template is not None and not isinstance(template, str):
            raise ConfigurationError(
                "failed to retrieve username_template: must be a string",
                details={"field": "username_template"},
            )

        for required_field in REQUIRED_FIELDS:
            if required_field not in raw:
                raise ConfigurationError(
                    f"{required_field!r} must be provided",
                    details={"field": required_field},
                )
            if not isinstance(raw[required_field], str):
                raise ConfigurationError(
                    f"{required_field!r} must be a string",
                    details={"field": required_field},
                )

        try:
            return cls.model_validate(dict(raw))
        except ValidationError as e:
            raise ConfigurationError(
                f"invalid configuration: {e.errors()[0]['msg']}",
                details={"field": ".".join(str(p) for p in e.errors()[0]["loc"])},
            ) from None

    def to_mapping(self) -> dict[str, Any]:
        """Return the configuration as a plain mapping, extra keys included."""
        data = self.model_dump()
        if data.get("username_template") is None:
            data.pop("username_template", None)
        return data

    @classmethod
    def from_file(cls, path: str | Path) -> "PluginConfig":
        """
        Load configuration from a YAML file.

        Raises:
            ConfigurationError: If the file cannot be read or is invalid
        """
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                details={"path": str(path)},
            )

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {e}",
                details={"path": str(path)},
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration file must contain a YAML dictionary",
                details={"path": str(path)},
            )

        return cls.from_mapping(data)

    @classmethod
    def from_env(cls, prefix: str = "MINIOCRED_") -> "PluginConfig":
        """
        Load configuration from environment variables.

        Examples:
            MINIOCRED_URL=https://minio.internal:9000
            MINIOCRED_USERNAME=root
            MINIOCRED_PASSWORD=rootpw
            MINIOCRED_USERNAME_TEMPLATE='{{ DisplayName }}'
        """
        env_data: dict[str, Any] = {}
        for field in (*REQUIRED_FIELDS, "username_template"):
            value = os.environ.get(f"{prefix}{field.upper()}")
            if value is not None:
                env_data[field] = value

        missing = [f for f in REQUIRED_FIELDS if f not in env_data]
        if missing:
            raise ConfigurationError(
                "Required environment variables missing",
                details={"required": [f"{prefix}{f.upper()}" for f in missing]},
            )

        return cls.from_mapping(env_data)


class LoggingConfig(BaseModel):
    """Logging configuration for the command line tools."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    format: Literal["json", "text"] = Field(
        default="text", description="Log format"
    )
