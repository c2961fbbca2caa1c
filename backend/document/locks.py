"""Per-document edit serialization.

Every read-transform-write on a document runs while holding its lock, so two
tool calls from the same turn (or two requests) cannot both read version N
and both write version N+1.

Within one process an asyncio.Lock per document id is enough.  When Redis is
configured a lease key is taken as well, so several workers serialize too:
``SET doc_lock:<id> <token> NX PX <ttl>``, released only by the holder of the
token.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager

import redis.asyncio as redis

from document.exceptions import DocumentLockTimeoutError

logger = logging.getLogger(__name__)

LOCK_PREFIX = "doc_lock:"
DEFAULT_LEASE_TTL_MS = 30_000
RETRY_INTERVAL_SECONDS = 0.05


class DocumentLocks:
    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        timeout: float = 15.0,
        lease_ttl_ms: int = DEFAULT_LEASE_TTL_MS,
    ):
        self._redis = redis_client
        self.timeout = timeout
        self.lease_ttl_ms = lease_ttl_ms
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @classmethod
    def from_settings(cls, settings) -> "DocumentLocks":
        client = None
        if settings.redis_url:
            client = redis.from_url(settings.redis_url, decode_responses=True)
        return cls(client, timeout=settings.document_lock_timeout_seconds)

    @asynccontextmanager
    async def hold(self, document_id: str):
        """Hold the edit lock for ``document_id`` for the duration of the block.

        Raises:
            DocumentLockTimeoutError: If the lock is not acquired within
                ``timeout`` seconds.
        """
        lock = self._locks.setdefault(document_id, asyncio.Lock())
        self._waiters[document_id] = self._waiters.get(document_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                logger.warning(f"Timed out waiting for local lock on document {document_id}")
                raise DocumentLockTimeoutError(
                    f"Document {document_id} is busy, try again"
                ) from e

            try:
                token = await self._acquire_lease(document_id)
                try:
                    yield
                finally:
                    await self._release_lease(document_id, token)
            finally:
                lock.release()
        finally:
            self._waiters[document_id] -= 1
            if self._waiters[document_id] == 0:
                del self._waiters[document_id]
                self._locks.pop(document_id, None)

    async def _acquire_lease(self, document_id: str) -> str | None:
        if self._redis is None:
            return None

        key = f"{LOCK_PREFIX}{document_id}"
        token = str(uuid.uuid4())
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        while True:
            if await self._redis.set(key, token, nx=True, px=self.lease_ttl_ms):
                return token
            if loop.time() >= deadline:
                logger.warning(f"Timed out waiting for lease on document {document_id}")
                raise DocumentLockTimeoutError(f"Document {document_id} is busy, try again")
            await asyncio.sleep(RETRY_INTERVAL_SECONDS)

    async def _release_lease(self, document_id: str, token: str | None) -> None:
        if self._redis is None or token is None:
            return
        key = f"{LOCK_PREFIX}{document_id}"
        try:
            # Only delete the lease if it is still ours (it may have expired
            # and been taken by another worker).
            if await self._redis.get(key) == token:
                await self._redis.delete(key)
        except redis.RedisError:
            logger.error(f"Failed to release lease on document {document_id}", exc_info=True)
