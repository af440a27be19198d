"""Records describing batch scan jobs."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class BatchStatus(str, Enum):
    """Lifecycle state of a batch job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.FAILED, BatchStatus.CANCELLED)


@dataclass(frozen=True)
class BatchOCRError:
    """Failure of a single image inside a batch."""

    image_index: int
    """Position of the image in the submitted list."""

    message: str
    """Error message raised by the processor."""

    recoverable: bool
    """True for skipped-item failures such as an image without text."""


@dataclass
class BatchOCRJob:
    """A batch of images processed together."""

    images: list[Any]
    """Submitted images, in submission order."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: BatchStatus = BatchStatus.QUEUED
    progress: float = 0.0
    results: list[Any] = field(default_factory=list)
    result_indices: list[int] = field(default_factory=list)
    """Image index of each entry in results, filled in when the job ends."""

    errors: list[BatchOCRError] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime | None = None

    @property
    def total_pages(self) -> int:
        """Number of images in the batch."""
        return len(self.images)

    @property
    def is_complete(self) -> bool:
        """True once the job reached a terminal status."""
        return self.status.is_terminal

    @property
    def elapsed_ms(self) -> float:
        """Wall time between start and end (or now, while running)."""
        end = self.end_time or datetime.now(timezone.utc)
        return (end - self.start_time).total_seconds() * 1000


@dataclass(frozen=True)
class QueueStatus:
    """Point-in-time counts of the scheduler's jobs."""

    active_count: int
    queued_count: int
    processing_count: int
    completed_count: int
