"""
Chunk executor for stock sync jobs.

Each call advances a job by one bounded unit of work:

    prezero (optional) -> sync -> deleted

The job document is loaded, mutated in memory and written back once per
call. Failures on individual catalog records are counted and logged as
lines; job store failures propagate and leave the stored job untouched.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from stock_sync.core.catalog import CatalogStore
from stock_sync.core.sync.errors import JobNotFound, RecordNotFound
from stock_sync.core.sync.job_store import JobStore, OwnerIndex
from stock_sync.core.sync.models import (
    Job, Task, PHASE_SYNC, clamp_chunk_size
)
from stock_sync.core.sync.status import JobStatus, project_status

logger = logging.getLogger(__name__)


PREZERO_MARKER = "PREZERO…"


@dataclass
class ChunkResult:
    """Outcome of one chunk invocation."""
    state: JobStatus
    lines: List[str] = field(default_factory=list)
    done: bool = False


class ChunkRunner:
    """Advance stock sync jobs one chunk at a time."""

    def __init__(
        self,
        job_store: JobStore,
        owner_index: OwnerIndex,
        catalog: CatalogStore
    ):
        """
        Initialize chunk runner.

        Args:
            job_store: Job document store
            owner_index: Last-job pointers, cleared when a job ends
            catalog: Catalog store receiving stock/price writes
        """
        self.job_store = job_store
        self.owner_index = owner_index
        self.catalog = catalog

    async def _load(self, store_id: str, job_id: str) -> Job:
        job = await self.job_store.get(store_id, job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    async def peek(self, store_id: str, job_id: str) -> ChunkResult:
        """Current state without side effects."""
        job = await self._load(store_id, job_id)
        return ChunkResult(state=project_status(job), lines=[], done=job.finished)

    async def run_chunk(self, store_id: str, job_id: str, peek: bool = False) -> ChunkResult:
        """
        Run one chunk of a job.

        Args:
            store_id: Store ID
            job_id: Job ID
            peek: Only report state, do not advance the job

        Returns:
            ChunkResult with status snapshot, new log lines and done flag

        Raises:
            JobNotFound: If the job is absent or expired
            JobBusy: If another invocation is running the same job
            PersistenceFailure: If the job store cannot be read or written
        """
        if peek:
            return await self.peek(store_id, job_id)

        async with self.job_store.lock(store_id, job_id):
            job = await self._load(store_id, job_id)

            if job.prezero.pending:
                return await self._run_prezero_chunk(job)

            return await self._run_sync_chunk(job)

    async def cancel(self, store_id: str, job_id: str, owner_id: Optional[str] = None) -> bool:
        """
        Delete a job and clear the owner's resume pointer.

        Returns:
            True if a job document was deleted
        """
        async with self.job_store.lock(store_id, job_id):
            job = await self.job_store.get(store_id, job_id)
            deleted = await self.job_store.delete(store_id, job_id)

        await self.owner_index.forget_last_job(store_id, owner_id)
        if job is not None and job.owner_id and job.owner_id != owner_id:
            await self.owner_index.forget_last_job(store_id, job.owner_id)

        logger.info(f"Job {job_id} cancelled (existed={deleted})")
        return deleted

    async def _finish(self, job: Job) -> None:
        await self.job_store.delete(job.store_id, job.job_id)
        await self.owner_index.forget_last_job(job.store_id, job.owner_id)
        logger.info(
            f"Job {job.job_id} finished: {job.updated} updated, {job.errors} errors, "
            f"{job.missing} missing, {job.total} total"
        )

    # Pre-zero phase

    async def _run_prezero_chunk(self, job: Job) -> ChunkResult:
        lines: List[str] = []
        category_ids = list(job.prezero.category_ids)

        if not category_ids:
            job.prezero.done = True
            job.phase = PHASE_SYNC
            await self.job_store.put(job)
            return ChunkResult(
                state=project_status(job),
                lines=["[WARN][PREZERO] No categories selected. Skipping pre-zero."],
                done=False
            )

        chunk_size = clamp_chunk_size(job.chunk_size)
        offset = job.prezero.offset

        # Offset paging: fine for a one-off admin job, not for huge catalogs
        product_ids = await self.catalog.query_products_by_category(
            category_ids, limit=chunk_size, offset=offset
        )

        if not product_ids:
            job.prezero.done = True
            job.prezero.done_at = int(time.time())
            job.phase = PHASE_SYNC
            job.last_sku = ""
            lines.append("[OK][PREZERO] Completed. Switching to sync phase.")
            await self.job_store.put(job)
            logger.info(f"Job {job.job_id}: pre-zero completed after {offset} products")
            return ChunkResult(state=project_status(job), lines=lines, done=False)

        for product_id in product_ids:
            try:
                await self._zero_product(product_id, job.dry_run, lines)
            except Exception as e:
                job.errors += 1
                lines.append(f"[ERROR][PREZERO] Product ID {product_id} -> {str(e)}")
                logger.warning(f"Job {job.job_id}: pre-zero failed for product {product_id}: {str(e)}")

        job.prezero.offset = offset + len(product_ids)
        job.last_sku = PREZERO_MARKER
        await self.job_store.put(job)

        return ChunkResult(state=project_status(job), lines=lines, done=False)

    async def _zero_product(self, product_id: int, dry_run: bool, lines: List[str]) -> None:
        """Set stock to 0 for a product, or for all variations of a variable product."""
        product = await self.catalog.load_record(product_id, "product")
        if product is None:
            return

        tag = "[DRY][PREZERO]" if dry_run else "[OK][PREZERO]"

        if product.has_children():
            for variation_id in product.children():
                variation = await self.catalog.load_record(variation_id, "variation", product_id)
                if variation is None:
                    continue
                if not dry_run:
                    variation.set_manage_stock(True)
                    variation.set_quantity(0)
                    variation.set_status("outofstock")
                    await variation.save()

            # Parent stock management may differ; its status is always safe to set
            if not dry_run:
                product.set_status("outofstock")
                await product.save()

            lines.append(f"{tag} variable ID={product_id} -> variations set to 0")
            return

        if not dry_run:
            product.set_manage_stock(True)
            product.set_quantity(0)
            product.set_status("outofstock")
            await product.save()

        lines.append(f"{tag} {product.product_type} ID={product_id} -> stock=0")

    # Sync phase

    async def _run_sync_chunk(self, job: Job) -> ChunkResult:
        lines: List[str] = []
        job.phase = PHASE_SYNC

        start = job.processed
        end = min(job.total, start + clamp_chunk_size(job.chunk_size))

        if start >= job.total:
            await self._finish(job)
            return ChunkResult(state=project_status(job), lines=lines, done=True)

        for task in job.tasks[start:end]:
            job.last_sku = task.sku
            try:
                await self._apply_task(job, task, lines)
            except Exception as e:
                job.errors += 1
                msg = str(e)
                lines.append(f"[ERROR] SKU {task.sku} -> {msg}")
                job.record_error_message(f"SKU {task.sku}: {msg}")
                logger.warning(f"Job {job.job_id}: SKU {task.sku} failed: {msg}")

            job.processed += 1

        # Persist and refresh TTL
        await self.job_store.put(job)

        if job.finished:
            await self._finish(job)

        return ChunkResult(state=project_status(job), lines=lines, done=job.finished)

    async def _apply_task(self, job: Job, task: Task, lines: List[str]) -> None:
        summary = (
            f"{task.record_kind} sku={task.sku} qty={task.target_qty} "
            f"orig={task.original_price} -> new={task.target_price}"
        )

        if job.dry_run:
            job.updated += 1
            lines.append(f"[DRY] {summary}")
            return

        record = await self.catalog.load_record(task.record_id, task.record_kind, task.parent_id)
        if record is None:
            job.errors += 1
            lines.append(f"[ERROR] SKU {task.sku} -> {RecordNotFound(task.record_id)}")
            return

        record.set_manage_stock(True)
        record.set_quantity(task.target_qty)
        record.set_status("instock" if task.target_qty > 0 else "outofstock")
        record.set_regular_price(task.target_price)
        await record.save()

        job.updated += 1
        lines.append(f"[OK] {summary}")
