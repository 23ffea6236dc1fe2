"""
Redis persistence for stock sync jobs.

JobStore keeps one JSON document per job with an inactivity TTL,
OwnerIndex remembers each user's last job for resume, and
PriceAdjustSettingsStore holds the saved price-adjust defaults.
"""

import asyncio
import json
import logging
import secrets
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from stock_sync.core.sync.errors import JobBusy, PersistenceFailure
from stock_sync.core.sync.models import Job
from stock_sync.core.sync.price_adjust import PriceAdjustment

logger = logging.getLogger(__name__)


# 30 minutes of inactivity
JOB_TTL = 1800
JOB_LOCK_TTL = 120

KEY_PREFIX = "stock_sync"


class JobStore:
    """Job documents in Redis, one key per job."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        ttl_seconds: int = JOB_TTL,
        lock_ttl_seconds: int = JOB_LOCK_TTL
    ):
        """
        Initialize job store.

        Args:
            redis_client: Redis async client
            ttl_seconds: Inactivity TTL applied on every write
            lock_ttl_seconds: Expiry of the per-job lock if never released
        """
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.lock_ttl_seconds = lock_ttl_seconds

    def _job_key(self, store_id: str, job_id: str) -> str:
        return f"{KEY_PREFIX}:job:{store_id}:{job_id}"

    async def put(self, job: Job, ttl_seconds: Optional[int] = None) -> None:
        """Write the whole job document and refresh its TTL."""
        key = self._job_key(job.store_id, job.job_id)
        try:
            await self.redis.set(
                key,
                json.dumps(job.to_dict()),
                ex=ttl_seconds or self.ttl_seconds
            )
        except RedisError as e:
            logger.error(f"Failed to persist job {job.job_id}: {str(e)}")
            raise PersistenceFailure(f"Failed to persist job: {str(e)}") from e

    async def get(self, store_id: str, job_id: str) -> Optional[Job]:
        """Load a job, or None if absent or expired."""
        try:
            raw = await self.redis.get(self._job_key(store_id, job_id))
        except RedisError as e:
            logger.error(f"Failed to load job {job_id}: {str(e)}")
            raise PersistenceFailure(f"Failed to load job: {str(e)}") from e

        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unreadable job document {job_id}")
            return None

        if not isinstance(data, dict) or not data.get("job_id"):
            return None
        return Job.from_dict(data)

    async def delete(self, store_id: str, job_id: str) -> bool:
        """Delete a job. Returns False if it did not exist."""
        try:
            deleted = await self.redis.delete(self._job_key(store_id, job_id))
        except RedisError as e:
            logger.error(f"Failed to delete job {job_id}: {str(e)}")
            raise PersistenceFailure(f"Failed to delete job: {str(e)}") from e
        return deleted > 0

    @asynccontextmanager
    async def lock(
        self,
        store_id: str,
        job_id: str,
        ttl_seconds: Optional[int] = None
    ) -> AsyncIterator[None]:
        """
        Single-flight guard around a job read-modify-write.

        The lock expiry is renewed in the background while the block runs;
        it only lapses if the holding process dies.

        Raises:
            JobBusy: If another invocation holds the job
        """
        key = f"{KEY_PREFIX}:lock:{store_id}:{job_id}"
        token = secrets.token_hex(16)
        ttl = ttl_seconds or self.lock_ttl_seconds

        try:
            acquired = await self.redis.set(key, token, nx=True, ex=ttl)
        except RedisError as e:
            raise PersistenceFailure(f"Failed to lock job: {str(e)}") from e

        if not acquired:
            raise JobBusy(job_id)

        renewer = asyncio.create_task(self._renew_lock(key, token, ttl))
        try:
            yield
        finally:
            renewer.cancel()
            with suppress(asyncio.CancelledError):
                await renewer
            try:
                # Only release our own lock; it may have expired and been retaken
                if await self.redis.get(key) == token:
                    await self.redis.delete(key)
            except RedisError as e:
                logger.warning(f"Failed to release lock for job {job_id}: {str(e)}")

    async def _renew_lock(self, key: str, token: str, ttl: int) -> None:
        """Push the lock expiry forward every third of its TTL while we hold it."""
        while True:
            await asyncio.sleep(ttl / 3)
            try:
                if await self.redis.get(key) != token:
                    logger.warning(f"Lock {key} was lost before the chunk finished")
                    return
                await self.redis.expire(key, ttl)
            except RedisError as e:
                logger.warning(f"Failed to renew lock {key}: {str(e)}")


class OwnerIndex:
    """Per-user pointer to the last created job."""

    def __init__(self, redis_client: aioredis.Redis):
        self.redis = redis_client

    def _owner_key(self, store_id: str, owner_id: str) -> str:
        return f"{KEY_PREFIX}:last_job:{store_id}:{owner_id}"

    async def remember_last_job(self, store_id: str, owner_id: Optional[str], job_id: str) -> None:
        if not owner_id:
            return
        try:
            await self.redis.set(self._owner_key(store_id, owner_id), job_id)
        except RedisError as e:
            raise PersistenceFailure(f"Failed to remember job: {str(e)}") from e

    async def forget_last_job(self, store_id: str, owner_id: Optional[str]) -> None:
        if not owner_id:
            return
        try:
            await self.redis.delete(self._owner_key(store_id, owner_id))
        except RedisError as e:
            raise PersistenceFailure(f"Failed to forget job: {str(e)}") from e

    async def last_job(self, store_id: str, owner_id: Optional[str]) -> Optional[str]:
        if not owner_id:
            return None
        try:
            return await self.redis.get(self._owner_key(store_id, owner_id))
        except RedisError as e:
            raise PersistenceFailure(f"Failed to read last job: {str(e)}") from e


class PriceAdjustSettingsStore:
    """Saved price-adjust defaults for one store."""

    def __init__(self, redis_client: aioredis.Redis, store_id: str):
        self.redis = redis_client
        self.key = f"{KEY_PREFIX}:price_adjust:{store_id}"

    async def load(self) -> Optional[PriceAdjustment]:
        """Saved defaults, or None if nothing was saved yet."""
        try:
            raw = await self.redis.get(self.key)
        except RedisError as e:
            raise PersistenceFailure(f"Failed to load price adjust settings: {str(e)}") from e
        if not raw:
            return None
        try:
            return PriceAdjustment.from_dict(json.loads(raw))
        except ValueError:
            return None

    async def save(self, adjustment: PriceAdjustment) -> None:
        try:
            await self.redis.set(self.key, json.dumps(adjustment.to_dict()))
        except RedisError as e:
            raise PersistenceFailure(f"Failed to save price adjust settings: {str(e)}") from e
