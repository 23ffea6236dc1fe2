"""
Stock sync API endpoints.

Upload a CSV to create a job, then poll the chunk endpoint until done.
"""

import logging
import traceback
from fastapi import APIRouter, HTTPException, status, UploadFile, File, Form, Depends
from typing import Dict, List, Literal, Optional

from stock_sync.config import get_settings
from stock_sync.deps import get_catalog, get_job_store, get_owner_index, get_price_adjust_store
from stock_sync.core.auth import get_verified_store, get_owner_id
from stock_sync.core.catalog import CatalogStore
from stock_sync.core.security import sanitize_string_for_logging
from stock_sync.core.woo_client import WooCommerceError
from stock_sync.core.sync.errors import (
    StockSyncError, CsvIngestError, UnreadableInput, InvalidPriceAdjustment, JobNotFound, JobBusy,
    PersistenceFailure
)
from stock_sync.core.sync.job_store import JobStore, OwnerIndex, PriceAdjustSettingsStore
from stock_sync.core.sync.price_adjust import PriceAdjustment, parse_adjust_amount
from stock_sync.core.sync.runner import ChunkRunner, ChunkResult
from stock_sync.core.sync.service import create_sync_job
from stock_sync.core.sync.status import project_status
from stock_sync.schemas.common import ErrorResponse
from stock_sync.schemas.stock_sync import (
    JobState, StockSyncJobCreateResponse, ChunkRequest, ChunkResponse, CancelResponse,
    LastJobResponse, PriceAdjustSettings, PriceAdjustSettingsUpdate, CategoryOption
)

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


def _to_http_error(e: StockSyncError) -> HTTPException:
    """Map a stock sync error to an HTTP error response."""
    if isinstance(e, UnreadableInput) and e.too_large:
        return HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    if isinstance(e, (CsvIngestError, InvalidPriceAdjustment)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, JobNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, JobBusy):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, PersistenceFailure):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def _chunk_response(result: ChunkResult) -> ChunkResponse:
    return ChunkResponse(
        state=JobState(**result.state.to_dict()),
        lines=result.lines,
        done=result.done
    )


@router.post("/jobs", response_model=StockSyncJobCreateResponse, responses=ERROR_RESPONSES)
async def create_stock_sync_job(
    store_id: str,
    file: UploadFile = File(..., description="CSV with Sku, Available and Price columns"),
    chunk_size: Optional[int] = Form(None),
    dry_run: bool = Form(False),
    prezero_enable: bool = Form(False),
    prezero_category_ids: List[int] = Form(default=[]),
    price_adjust_amount: Optional[str] = Form(None),
    price_adjust_round: Optional[Literal["none", "integer"]] = Form(None),
    price_adjust_save: bool = Form(False),
    store: Dict = Depends(get_verified_store),
    owner_id: Optional[str] = Depends(get_owner_id),
    job_store: JobStore = Depends(get_job_store),
    owner_index: OwnerIndex = Depends(get_owner_index),
    settings_store: PriceAdjustSettingsStore = Depends(get_price_adjust_store),
    catalog: CatalogStore = Depends(get_catalog)
):
    """
    Create a stock sync job from an uploaded CSV.

    The CSV is parsed and its SKUs resolved right away; nothing is written
    to the catalog until the chunk endpoint is polled.
    """
    settings = get_settings()

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise _to_http_error(UnreadableInput(
            f"Uploaded CSV is too large. Max {settings.max_upload_bytes // (1024 * 1024)} MB.",
            too_large=True
        ))

    try:
        job = await create_sync_job(
            job_store=job_store,
            owner_index=owner_index,
            settings_store=settings_store,
            catalog=catalog,
            store_id=store_id,
            csv_content=content,
            owner_id=owner_id,
            chunk_size=chunk_size or settings.default_chunk_size,
            dry_run=dry_run,
            prezero_enabled=prezero_enable,
            prezero_category_ids=prezero_category_ids,
            price_adjust_amount=price_adjust_amount,
            price_adjust_round=price_adjust_round,
            save_price_adjust=price_adjust_save
        )
    except StockSyncError as e:
        logger.info(f"Stock sync job rejected for store {store_id}: {str(e)}")
        raise _to_http_error(e)
    except WooCommerceError as e:
        logger.error(f"SKU lookup failed for store {store_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Catalog lookup failed: {str(e)}"
        )

    return StockSyncJobCreateResponse(
        job_id=job.job_id,
        total=job.total,
        missing=job.missing,
        phase=job.phase,
        dry_run=job.dry_run,
        chunk_size=job.chunk_size
    )


@router.get("/jobs/last", response_model=LastJobResponse, responses=ERROR_RESPONSES)
async def get_last_job(
    store_id: str,
    store: Dict = Depends(get_verified_store),
    owner_id: Optional[str] = Depends(get_owner_id),
    job_store: JobStore = Depends(get_job_store),
    owner_index: OwnerIndex = Depends(get_owner_index)
):
    """Return the caller's last job if it can still be resumed."""
    try:
        job_id = await owner_index.last_job(store_id, owner_id)
        job = await job_store.get(store_id, job_id) if job_id else None
        if job is None:
            if job_id:
                await owner_index.forget_last_job(store_id, owner_id)
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No job to resume"
            )
    except StockSyncError as e:
        raise _to_http_error(e)

    return LastJobResponse(
        job_id=job.job_id,
        state=JobState(**project_status(job).to_dict()),
        done=job.finished
    )


@router.post("/jobs/{job_id}/chunk", response_model=ChunkResponse, responses=ERROR_RESPONSES)
async def run_chunk(
    store_id: str,
    job_id: str,
    request: Optional[ChunkRequest] = None,
    store: Dict = Depends(get_verified_store),
    job_store: JobStore = Depends(get_job_store),
    owner_index: OwnerIndex = Depends(get_owner_index),
    catalog: CatalogStore = Depends(get_catalog)
):
    """
    Process the next chunk of a job, or only report its state when peek is set.
    """
    peek = request.peek if request else False
    runner = ChunkRunner(job_store, owner_index, catalog)

    try:
        result = await runner.run_chunk(store_id, job_id, peek=peek)
    except StockSyncError as e:
        raise _to_http_error(e)
    except Exception as e:
        error_trace = traceback.format_exc()
        logger.error(f"Chunk failed for job {job_id}: {str(e)}\n{error_trace}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Chunk failed: {sanitize_string_for_logging(str(e))}"
        )

    return _chunk_response(result)


@router.post("/jobs/{job_id}/cancel", response_model=CancelResponse, responses=ERROR_RESPONSES)
async def cancel_job(
    store_id: str,
    job_id: str,
    store: Dict = Depends(get_verified_store),
    owner_id: Optional[str] = Depends(get_owner_id),
    job_store: JobStore = Depends(get_job_store),
    owner_index: OwnerIndex = Depends(get_owner_index)
):
    """Cancel a job. Deleting an already finished or expired job is not an error."""
    runner = ChunkRunner(job_store, owner_index, catalog=None)

    try:
        await runner.cancel(store_id, job_id, owner_id=owner_id)
    except StockSyncError as e:
        raise _to_http_error(e)

    return CancelResponse(ok=True)


@router.get("/price-adjust", response_model=PriceAdjustSettings, responses=ERROR_RESPONSES)
async def get_price_adjust(
    store_id: str,
    store: Dict = Depends(get_verified_store),
    settings_store: PriceAdjustSettingsStore = Depends(get_price_adjust_store)
):
    """Saved price adjustment defaults."""
    try:
        saved = await settings_store.load()
    except StockSyncError as e:
        raise _to_http_error(e)

    adjustment = saved or PriceAdjustment()
    return PriceAdjustSettings(
        amount=float(adjustment.amount),
        round=adjustment.round,
        saved=saved is not None
    )


@router.put("/price-adjust", response_model=PriceAdjustSettings, responses=ERROR_RESPONSES)
async def update_price_adjust(
    store_id: str,
    request: PriceAdjustSettingsUpdate,
    store: Dict = Depends(get_verified_store),
    settings_store: PriceAdjustSettingsStore = Depends(get_price_adjust_store)
):
    """Save price adjustment defaults."""
    try:
        adjustment = PriceAdjustment(amount=parse_adjust_amount(request.amount), round=request.round)
        await settings_store.save(adjustment)
    except StockSyncError as e:
        raise _to_http_error(e)

    return PriceAdjustSettings(amount=request.amount, round=request.round, saved=True)


@router.get("/categories", response_model=List[CategoryOption], responses=ERROR_RESPONSES)
async def list_categories(
    store_id: str,
    store: Dict = Depends(get_verified_store),
    catalog: CatalogStore = Depends(get_catalog)
):
    """Product categories available for pre-zero."""
    try:
        categories = await catalog.list_categories()
    except WooCommerceError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Error fetching categories: {str(e)}"
        )

    return [CategoryOption(**cat) for cat in categories]
