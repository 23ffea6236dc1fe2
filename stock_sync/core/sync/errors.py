"""
Stock sync error taxonomy.
"""

from typing import Any, Optional


class StockSyncError(Exception):
    """Base exception for stock sync errors."""
    pass


class CsvIngestError(StockSyncError):
    """CSV could not be turned into task rows. No job is persisted."""
    pass


class MissingColumn(CsvIngestError):
    """A required CSV header is absent."""

    def __init__(self, column: str):
        self.column = column
        super().__init__(f"Missing required column: {column}")


class EmptyInput(CsvIngestError):
    """Uploaded CSV has no content."""

    def __init__(self, message: str = "CSV appears empty."):
        super().__init__(message)


class UnreadableInput(CsvIngestError):
    """Uploaded CSV cannot be read or parsed."""

    def __init__(self, message: str = "Unable to read uploaded CSV.", too_large: bool = False):
        self.too_large = too_large
        super().__init__(message)


class JobNotFound(StockSyncError):
    """Job is absent or expired. The caller must upload the CSV again."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("Job not found or expired. Upload CSV again.")


class JobBusy(StockSyncError):
    """Another invocation currently holds the job."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} is already being processed. Retry shortly.")


class RecordNotFound(StockSyncError):
    """Catalog record referenced by a task no longer exists."""

    def __init__(self, record_id: int):
        self.record_id = record_id
        super().__init__(f"Product not found (ID {record_id})")


class CatalogWriteFailure(StockSyncError):
    """Catalog store rejected a record update."""

    def __init__(self, record_id: int, reason: Optional[str] = None):
        self.record_id = record_id
        self.reason = reason
        super().__init__(reason or f"Failed to save record {record_id}")


class PersistenceFailure(StockSyncError):
    """Job store read or write failed. The stored job is left as it was."""
    pass


class InvalidPriceAdjustment(StockSyncError):
    """Price adjustment amount is not a usable number."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid price adjustment amount: {value}")
