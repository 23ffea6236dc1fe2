import asyncio
from decimal import Decimal

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from stock_sync.core.sync.errors import JobBusy, PersistenceFailure
from stock_sync.core.sync.job_store import JobStore, OwnerIndex
from stock_sync.core.sync.models import Job, Task
from stock_sync.core.sync.price_adjust import PriceAdjustment

from conftest import STORE_ID


def _job(**kwargs):
    task = Task(
        sku="ABC-123", record_id=101, record_kind="product", parent_id=0,
        target_qty=4, target_price="199.90", original_price="199.90"
    )
    return Job.create(store_id=STORE_ID, tasks=[task], missing=0, **kwargs)


class BrokenRedis:
    async def set(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")

    async def get(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")

    async def delete(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")


async def test_put_get_delete(job_store, redis_client):
    job = _job(owner_id="7")

    await job_store.put(job)
    loaded = await job_store.get(STORE_ID, job.job_id)

    assert loaded == job
    ttl = await redis_client.ttl(f"stock_sync:job:{STORE_ID}:{job.job_id}")
    assert 0 < ttl <= 1800

    assert await job_store.delete(STORE_ID, job.job_id) is True
    assert await job_store.get(STORE_ID, job.job_id) is None
    assert await job_store.delete(STORE_ID, job.job_id) is False


async def test_put_honours_explicit_ttl(job_store, redis_client):
    job = _job()

    await job_store.put(job, ttl_seconds=60)

    assert 0 < await redis_client.ttl(f"stock_sync:job:{STORE_ID}:{job.job_id}") <= 60


async def test_jobs_are_namespaced_by_store(job_store):
    job = _job()
    await job_store.put(job)

    assert await job_store.get("other-store", job.job_id) is None


async def test_unreadable_document_is_treated_as_absent(job_store, redis_client):
    await redis_client.set(f"stock_sync:job:{STORE_ID}:broken", "{not json")

    assert await job_store.get(STORE_ID, "broken") is None


async def test_lock_is_single_flight(job_store):
    async with job_store.lock(STORE_ID, "job1"):
        with pytest.raises(JobBusy):
            async with job_store.lock(STORE_ID, "job1"):
                pass

        # Other jobs are not affected
        async with job_store.lock(STORE_ID, "job2"):
            pass

    async with job_store.lock(STORE_ID, "job1"):
        pass


async def test_lock_does_not_release_a_lock_taken_over(job_store, redis_client):
    key = f"stock_sync:lock:{STORE_ID}:job1"

    async with job_store.lock(STORE_ID, "job1"):
        await redis_client.set(key, "someone-else")

    assert await redis_client.get(key) == "someone-else"


async def test_redis_errors_become_persistence_failures():
    store = JobStore(BrokenRedis())

    with pytest.raises(PersistenceFailure):
        await store.put(_job())
    with pytest.raises(PersistenceFailure):
        await store.get(STORE_ID, "job1")
    with pytest.raises(PersistenceFailure):
        async with store.lock(STORE_ID, "job1"):
            pass


async def test_owner_index(owner_index):
    await owner_index.remember_last_job(STORE_ID, "7", "job1")

    assert await owner_index.last_job(STORE_ID, "7") == "job1"
    assert await owner_index.last_job(STORE_ID, "8") is None

    await owner_index.forget_last_job(STORE_ID, "7")
    assert await owner_index.last_job(STORE_ID, "7") is None


async def test_owner_index_ignores_anonymous_callers(owner_index, redis_client):
    await owner_index.remember_last_job(STORE_ID, None, "job1")

    assert await owner_index.last_job(STORE_ID, None) is None
    assert await redis_client.keys("*") == []


async def test_owner_index_wraps_redis_errors():
    index = OwnerIndex(BrokenRedis())

    with pytest.raises(PersistenceFailure):
        await index.last_job(STORE_ID, "7")


async def test_price_adjust_settings_round_trip(settings_store):
    assert await settings_store.load() is None

    await settings_store.save(PriceAdjustment(amount=Decimal("12.5"), round="integer"))

    assert await settings_store.load() == PriceAdjustment(Decimal("12.5"), "integer")


async def test_lock_is_renewed_while_held(redis_client):
    store = JobStore(redis_client, lock_ttl_seconds=1)
    key = f"stock_sync:lock:{STORE_ID}:job1"

    async with store.lock(STORE_ID, "job1"):
        await asyncio.sleep(2.5)

        assert await redis_client.get(key) is not None
        with pytest.raises(JobBusy):
            async with store.lock(STORE_ID, "job1"):
                pass

    assert await redis_client.get(key) is None
