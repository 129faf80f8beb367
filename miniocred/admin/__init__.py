"""Admin backend clients for miniocred.

The lifecycle controller only depends on the ``AdminClient`` interface. A
client is built per operation by ``build_client`` from the validated
configuration:

    >>> from miniocred.admin import build_client
    >>> client = build_client(config)
    >>> await client.add_user("v-alice-ro-...", "s3cr3t")
"""

from .base import AccountStatus, AdminClient
from .factory import ClientFactory, Endpoint, build_client, parse_endpoint
from .minio import MinioAdminClient


__all__ = [
    # Interface
    "AdminClient",
    "AccountStatus",

    # Factory
    "ClientFactory",
    "Endpoint",
    "build_client",
    "parse_endpoint",

    # MinIO implementation
    "MinioAdminClient",
]
