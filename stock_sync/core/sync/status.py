"""
Externally visible job state.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict

from stock_sync.core.sync.models import Job, Phase


@dataclass(frozen=True)
class JobStatus:
    """Minimal snapshot shown to the polling client."""
    processed: int
    total: int
    updated: int
    missing: int
    errors: int
    dry_run: bool
    phase: Phase
    current: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def project_status(job: Job) -> JobStatus:
    """Reduce a job document to its status snapshot. Never mutates the job."""
    return JobStatus(
        processed=job.processed,
        total=job.total,
        updated=job.updated,
        missing=job.missing,
        errors=job.errors,
        dry_run=job.dry_run,
        phase=job.phase,
        current=job.last_sku or "",
    )
