"""Data models for adapter results and batch submission runs."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class NormalizedResult(BaseModel):
    """The only shape an adapter hands back to the orchestrator."""

    success: bool
    invoice_number: str = ""
    random_number: str = ""
    create_time: str = ""
    error: Optional[str] = None
    error_type: Optional[str] = None
    aborted: bool = False
    raw: Any = Field(default=None, exclude=True, repr=False)

    @classmethod
    def failure(
        cls, error: str, error_type: str = "error", aborted: bool = False
    ) -> "NormalizedResult":
        return cls(success=False, error=error, error_type=error_type, aborted=aborted)


class VoidResult(NormalizedResult):
    """Outcome of a void call."""

    cancel_time: str = ""


class MaintenanceResult(BaseModel):
    """Outcome of the O'Pay B2B customer upsert."""

    success: bool
    action: str = "Update"
    code: Optional[int] = None
    message: str = ""


class BatchState(str, Enum):
    """Orchestrator state machine."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABORTED = "aborted"


class BatchStatistics(BaseModel):
    """Running counters of a batch job."""

    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    aborted: int = 0
    percentage: int = 0

    @property
    def remaining(self) -> int:
        return self.total - self.processed

    @property
    def success_rate(self) -> float:
        """Successful share of processed items, as a percentage."""
        if self.processed == 0:
            return 0.0
        return (self.successful / self.processed) * 100


class BatchStarted(BaseModel):
    batch_id: str
    total: int


class ItemProcessing(BaseModel):
    batch_id: str
    index: int
    merchant_order_no: str
    statistics: BatchStatistics


class BatchProgress(BaseModel):
    batch_id: str
    index: int
    merchant_order_no: str
    outcome: str
    statistics: BatchStatistics


class BatchPaused(BaseModel):
    batch_id: str
    next_index: int
    statistics: BatchStatistics


class BatchFinished(BaseModel):
    batch_id: str
    state: BatchState
    statistics: BatchStatistics


BatchEvent = Union[BatchStarted, ItemProcessing, BatchProgress, BatchPaused, BatchFinished]


class ItemOutcome(BaseModel):
    """Per-item record kept for exports and summaries."""

    merchant_order_no: str
    status: str
    invoice_number: str = ""
    error: Optional[str] = None


class BatchOutcome(BaseModel):
    """Terminal result of a batch run."""

    batch_id: str
    state: BatchState
    statistics: BatchStatistics
    started_at: datetime
    completed_at: Optional[datetime] = None
    items: list[ItemOutcome] = Field(default_factory=list)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate total duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def get_failed_items(self) -> list[ItemOutcome]:
        """Get all failed items."""
        return self.get_items_by_status("failed")

    def get_items_by_status(self, status: str) -> list[ItemOutcome]:
        """Get all items with a specific outcome."""
        return [item for item in self.items if item.status == status]
