"""Client factory.

Builds a fresh admin client from the plugin configuration on every call.
Connection pooling is left to the underlying SDK.
"""

from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlsplit

from miniocred.config import PluginConfig
from miniocred.exceptions import ConfigurationError

from .base import AdminClient
from .minio import MinioAdminClient


ClientFactory = Callable[[PluginConfig], AdminClient]


@dataclass(frozen=True)
class Endpoint:
    """Host and transport security derived from the configured URL."""

    host: str
    secure: bool


def parse_endpoint(url: str) -> Endpoint:
    """
    Split a connection URL into host and TLS flag.

    Only the ``https`` scheme selects a secured connection; every other
    scheme connects in plain text.

    Raises:
        ConfigurationError: If the URL cannot be parsed or has no host
    """
    try:
        parsed = urlsplit(url)
        # Accessing port validates it
        parsed.port
    except ValueError as e:
        raise ConfigurationError(
            f"unable to parse url: {e}", details={"field": "url"}
        ) from e

    host = parsed.netloc.rpartition("@")[2]
    if not host:
        raise ConfigurationError(
            f"url {url!r} has no host", details={"field": "url"}
        )

    return Endpoint(host=host, secure=parsed.scheme == "https")


def build_client(config: PluginConfig) -> AdminClient:
    """
    Construct a new admin client for ``config``.

    Raises:
        ConfigurationError: If the URL is unusable
    """
    endpoint = parse_endpoint(config.url)
    try:
        return MinioAdminClient(
            endpoint.host,
            config.username,
            config.password,
            secure=endpoint.secure,
        )
    except ValueError as e:
        raise ConfigurationError(
            f"unable to build admin client: {e}", details={"field": "url"}
        ) from e
