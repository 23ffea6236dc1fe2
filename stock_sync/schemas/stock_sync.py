"""
Stock sync request/response schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal


class JobState(BaseModel):
    """Status snapshot of a stock sync job."""
    processed: int = 0
    total: int = 0
    updated: int = 0
    missing: int = 0
    errors: int = 0
    dry_run: bool = False
    phase: Literal["prezero", "sync"] = "sync"
    current: str = ""


class StockSyncJobCreateResponse(BaseModel):
    """Job creation response."""
    job_id: str
    total: int
    missing: int
    phase: Literal["prezero", "sync"]
    dry_run: bool
    chunk_size: int


class ChunkRequest(BaseModel):
    """Run (or peek at) one chunk of a job."""
    peek: bool = Field(default=False, description="Return current state without processing")


class ChunkResponse(BaseModel):
    """Result of one chunk invocation."""
    state: JobState
    lines: List[str] = Field(default_factory=list)
    done: bool = False


class CancelResponse(BaseModel):
    """Cancel response."""
    ok: bool = True


class LastJobResponse(BaseModel):
    """The caller's resumable job."""
    job_id: str
    state: JobState
    done: bool = False


class PriceAdjustSettings(BaseModel):
    """Saved price adjustment defaults."""
    amount: float = Field(default=0.0, description="Fixed amount added to every CSV price (may be negative)")
    round: Literal["none", "integer"] = Field(default="none", description="Round adjusted prices to whole units")
    saved: bool = Field(default=False, description="Whether defaults have been saved for this store")


class PriceAdjustSettingsUpdate(BaseModel):
    """Update saved price adjustment defaults."""
    amount: float = Field(default=0.0, ge=-1000000, le=1000000, allow_inf_nan=False)
    round: Literal["none", "integer"] = "none"


class CategoryOption(BaseModel):
    """Product category offered for pre-zero."""
    id: int
    name: str
    parent: int = 0
    count: int = 0
