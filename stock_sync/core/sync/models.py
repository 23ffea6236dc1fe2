"""
Stock sync job document.

The job is stored as a single JSON document per job id and is the only
mutable state of a sync run. Tasks are fixed once the job is created.
"""

import secrets
import string
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Literal, Optional

from stock_sync.core.catalog import RecordKind


MIN_CHUNK_SIZE = 5
MAX_CHUNK_SIZE = 200
DEFAULT_CHUNK_SIZE = 25
MAX_ERROR_MESSAGES = 50

JOB_ID_LENGTH = 20
_JOB_ID_ALPHABET = string.ascii_letters + string.digits


# Job phase. Moves only from prezero to sync.
Phase = Literal["prezero", "sync"]
PHASE_PREZERO = "prezero"
PHASE_SYNC = "sync"


def clamp_chunk_size(value: Optional[int]) -> int:
    """Clamp a chunk size into [MIN_CHUNK_SIZE, MAX_CHUNK_SIZE]."""
    if value is None:
        return DEFAULT_CHUNK_SIZE
    return max(MIN_CHUNK_SIZE, min(MAX_CHUNK_SIZE, int(value)))


def make_job_id() -> str:
    """Generate an opaque random job id."""
    return "".join(secrets.choice(_JOB_ID_ALPHABET) for _ in range(JOB_ID_LENGTH))


@dataclass(frozen=True)
class Task:
    """One resolved SKU update."""
    sku: str
    record_id: int
    record_kind: RecordKind
    parent_id: int
    target_qty: int
    target_price: str
    original_price: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            sku=str(data["sku"]),
            record_id=int(data["record_id"]),
            record_kind="variation" if data.get("record_kind") == "variation" else "product",
            parent_id=int(data.get("parent_id", 0)),
            target_qty=int(data["target_qty"]),
            target_price=str(data["target_price"]),
            original_price=str(data.get("original_price", data["target_price"])),
        )


@dataclass
class PreZeroState:
    """Pre-zero phase bookkeeping."""
    enabled: bool = False
    category_ids: List[int] = field(default_factory=list)
    offset: int = 0
    done: bool = False
    done_at: int = 0

    @property
    def pending(self) -> bool:
        return self.enabled and not self.done


@dataclass
class Job:
    """Stock sync job document."""
    job_id: str
    store_id: str
    tasks: List[Task]
    missing: int = 0
    owner_id: Optional[str] = None
    created_at: int = field(default_factory=lambda: int(time.time()))
    dry_run: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE
    phase: Phase = PHASE_SYNC
    prezero: PreZeroState = field(default_factory=PreZeroState)
    total: int = 0
    processed: int = 0
    updated: int = 0
    errors: int = 0
    error_messages: List[str] = field(default_factory=list)
    last_sku: str = ""

    @classmethod
    def create(
        cls,
        store_id: str,
        tasks: List[Task],
        missing: int,
        owner_id: Optional[str] = None,
        dry_run: bool = False,
        chunk_size: Optional[int] = None,
        prezero_enabled: bool = False,
        prezero_category_ids: Optional[List[int]] = None
    ) -> "Job":
        """
        Build a fresh job.

        Pre-zero with no categories is switched off so a job can never
        zero the whole catalog by accident.
        """
        category_ids: List[int] = []
        for cat_id in prezero_category_ids or []:
            cat_id = int(cat_id)
            if cat_id > 0 and cat_id not in category_ids:
                category_ids.append(cat_id)

        enabled = bool(prezero_enabled and category_ids)
        if not enabled:
            category_ids = []

        return cls(
            job_id=make_job_id(),
            store_id=store_id,
            owner_id=owner_id or None,
            tasks=list(tasks),
            total=len(tasks),
            missing=missing,
            dry_run=bool(dry_run),
            chunk_size=clamp_chunk_size(chunk_size),
            phase=PHASE_PREZERO if enabled else PHASE_SYNC,
            prezero=PreZeroState(enabled=enabled, category_ids=category_ids),
        )

    def record_error_message(self, message: str) -> None:
        """Keep the first MAX_ERROR_MESSAGES messages; later ones are dropped."""
        if len(self.error_messages) < MAX_ERROR_MESSAGES:
            self.error_messages.append(message)

    @property
    def finished(self) -> bool:
        return self.phase == PHASE_SYNC and self.processed >= self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "store_id": self.store_id,
            "owner_id": self.owner_id,
            "created_at": self.created_at,
            "dry_run": self.dry_run,
            "chunk_size": self.chunk_size,
            "phase": self.phase,
            "prezero": asdict(self.prezero),
            "tasks": [task.to_dict() for task in self.tasks],
            "total": self.total,
            "processed": self.processed,
            "updated": self.updated,
            "missing": self.missing,
            "errors": self.errors,
            "error_messages": list(self.error_messages),
            "last_sku": self.last_sku,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        prezero = data.get("prezero") or {}
        tasks = [Task.from_dict(item) for item in data.get("tasks", [])]
        return cls(
            job_id=str(data["job_id"]),
            store_id=str(data.get("store_id", "")),
            owner_id=data.get("owner_id") or None,
            created_at=int(data.get("created_at", 0)),
            dry_run=bool(data.get("dry_run", False)),
            chunk_size=clamp_chunk_size(data.get("chunk_size")),
            phase=PHASE_PREZERO if data.get("phase") == PHASE_PREZERO else PHASE_SYNC,
            prezero=PreZeroState(
                enabled=bool(prezero.get("enabled", False)),
                category_ids=[int(c) for c in prezero.get("category_ids", [])],
                offset=int(prezero.get("offset", 0)),
                done=bool(prezero.get("done", False)),
                done_at=int(prezero.get("done_at", 0)),
            ),
            tasks=tasks,
            total=int(data.get("total", len(tasks))),
            processed=int(data.get("processed", 0)),
            updated=int(data.get("updated", 0)),
            missing=int(data.get("missing", 0)),
            errors=int(data.get("errors", 0)),
            error_messages=list(data.get("error_messages", [])),
            last_sku=str(data.get("last_sku", "")),
        )
