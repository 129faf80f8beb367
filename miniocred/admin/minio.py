"""MinIO admin client backed by the ``minio`` SDK.

``minio.MinioAdmin`` is synchronous; each call is run in a worker thread via
``asyncio.to_thread`` so the event loop is never blocked. A worker thread
cannot be interrupted, so when the calling task is cancelled the client
waits for the in-flight request to settle before re-raising. Every request
goes through a urllib3 pool with a bounded timeout, which bounds that wait.

Liveness is checked over plain HTTP with ``httpx`` against the
unauthenticated ``/minio/health/live`` endpoint.
"""

import asyncio
import logging
import tempfile
from pathlib import Path

import httpx
import urllib3
from minio import MinioAdmin
from minio.credentials import StaticProvider

from .base import AccountStatus, AdminClient


logger = logging.getLogger(__name__)

HEALTH_PATH = "/minio/health/live"


class MinioAdminClient(AdminClient):
    """Admin client for a MinIO deployment.

    Example:
        >>> client = MinioAdminClient("minio.internal:9000", "root", "rootpw", secure=True)
        >>> await client.add_user("v-alice-ro-...", "s3cr3t")
    """

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        secure: bool = True,
        timeout: float = 5.0,
    ):
        """Initialize the client.

        Args:
            endpoint: host[:port] of the MinIO server
            access_key: Root access key
            secret_key: Root secret key
            secure: Use HTTPS
            timeout: Connect and read timeout for every request in seconds
        """
        self.endpoint = endpoint
        self.secure = secure
        self.timeout = timeout
        self._http = urllib3.PoolManager(
            timeout=urllib3.Timeout(connect=timeout, read=timeout),
            retries=False,
            cert_reqs="CERT_REQUIRED",
        )
        self._admin = MinioAdmin(
            endpoint=endpoint,
            credentials=StaticProvider(access_key, secret_key),
            secure=secure,
            http_client=self._http,
        )

    @property
    def base_url(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.endpoint}"

    async def _run(self, func, *args, **kwargs):
        call = asyncio.ensure_future(asyncio.to_thread(func, *args, **kwargs))
        try:
            return await asyncio.shield(call)
        except asyncio.CancelledError:
            # The request may still reach the server; let it finish first
            await asyncio.wait([call])
            if not call.cancelled() and call.exception() is not None:
                logger.debug(f"In-flight request failed after cancellation: {call.exception()}")
            raise

    async def add_user(self, username: str, password: str) -> None:
        logger.debug(f"Adding user {username}")
        await self._run(self._admin.user_add, username, password)

    async def remove_user(self, username: str) -> None:
        logger.debug(f"Removing user {username}")
        await self._run(self._admin.user_remove, username)

    async def set_user(self, username: str, password: str, status: AccountStatus) -> None:
        # user_add updates the secret of an existing user and enables it
        logger.debug(f"Setting secret for user {username} (status={status.value})")
        await self._run(self._admin.user_add, username, password)
        if status == AccountStatus.DISABLED:
            await self._run(self._admin.user_disable, username)

    async def set_policy(self, policy_names: str, entity: str, is_group: bool = False) -> None:
        logger.debug(f"Binding policies [{policy_names}] to {'group' if is_group else 'user'} {entity}")
        if is_group:
            await self._run(self._admin.policy_set, policy_names, group=entity)
        else:
            await self._run(self._admin.policy_set, policy_names, user=entity)

    async def add_canned_policy(self, name: str, document: bytes) -> None:
        logger.debug(f"Registering canned policy {name}")
        await self._run(self._add_policy_from_bytes, name, document)

    def _add_policy_from_bytes(self, name: str, document: bytes) -> None:
        # MinioAdmin reads policy documents from a file
        with tempfile.TemporaryDirectory(prefix="miniocred-") as tmp:
            policy_file = Path(tmp) / "policy.json"
            policy_file.write_bytes(document)
            self._admin.policy_add(name, policy_file=str(policy_file))

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}{HEALTH_PATH}")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"MinIO health check failed: {e}")
            return False
