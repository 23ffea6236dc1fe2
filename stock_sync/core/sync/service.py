"""
Stock sync job creation.
"""

import logging
from typing import Any, List, Optional

from stock_sync.core.catalog import CatalogStore
from stock_sync.core.sync.csv_ingest import parse_csv, last_row_per_sku
from stock_sync.core.sync.job_store import JobStore, OwnerIndex, PriceAdjustSettingsStore
from stock_sync.core.sync.models import Job, Task
from stock_sync.core.sync.price_adjust import resolve_price_adjustment
from stock_sync.core.sync.resolver import resolve_skus

logger = logging.getLogger(__name__)


async def create_sync_job(
    job_store: JobStore,
    owner_index: OwnerIndex,
    settings_store: PriceAdjustSettingsStore,
    catalog: CatalogStore,
    store_id: str,
    csv_content: bytes,
    owner_id: Optional[str] = None,
    chunk_size: Optional[int] = None,
    dry_run: bool = False,
    prezero_enabled: bool = False,
    prezero_category_ids: Optional[List[int]] = None,
    price_adjust_amount: Optional[Any] = None,
    price_adjust_round: Optional[str] = None,
    save_price_adjust: bool = False
) -> Job:
    """
    Parse a stock CSV, resolve its SKUs and persist a new job.

    Args:
        job_store: Job document store
        owner_index: Last-job pointers for resume
        settings_store: Saved price-adjust defaults
        catalog: Catalog store used to resolve SKUs
        store_id: Store ID
        csv_content: Uploaded CSV bytes
        owner_id: User creating the job (optional)
        chunk_size: Records per chunk, clamped to [5, 200]
        dry_run: Log intended changes without writing
        prezero_enabled: Zero stock in the categories before syncing
        prezero_category_ids: Categories for pre-zero
        price_adjust_amount: Per-job amount override
        price_adjust_round: Per-job rounding override ("none" or "integer")
        save_price_adjust: Store the effective adjustment as new default

    Returns:
        The persisted job

    Raises:
        CsvIngestError: If the CSV cannot be used; nothing is persisted
        InvalidPriceAdjustment: If the amount override is unusable; nothing is persisted
        PersistenceFailure: If Redis cannot be written
    """
    rows = parse_csv(csv_content)

    saved = await settings_store.load()
    adjustment = resolve_price_adjustment(saved, price_adjust_amount, price_adjust_round)

    last_by_sku = last_row_per_sku(rows)
    resolved = await resolve_skus(catalog, list(last_by_sku.keys()))

    tasks = []
    missing = 0
    for sku, row in last_by_sku.items():
        info = resolved.get(sku)
        if info is None:
            missing += 1
            continue
        tasks.append(Task(
            sku=sku,
            record_id=info.record_id,
            record_kind=info.kind,
            parent_id=info.parent_id,
            target_qty=row.qty,
            target_price=adjustment.apply(row.price),
            original_price=row.price
        ))

    job = Job.create(
        store_id=store_id,
        tasks=tasks,
        missing=missing,
        owner_id=owner_id,
        dry_run=dry_run,
        chunk_size=chunk_size,
        prezero_enabled=prezero_enabled,
        prezero_category_ids=prezero_category_ids
    )

    await job_store.put(job)

    # Only a job that was actually created updates the saved default
    if save_price_adjust:
        await settings_store.save(adjustment)
        logger.info(f"Saved price adjust default for store {store_id}: {adjustment.to_dict()}")

    await owner_index.remember_last_job(store_id, owner_id, job.job_id)

    logger.info(
        f"Created stock sync job {job.job_id} for store {store_id}: "
        f"{job.total} tasks, {job.missing} missing, phase={job.phase}, dry_run={job.dry_run}"
    )
    return job
