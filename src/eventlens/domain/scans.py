"""Domain models for scan sessions."""

from dataclasses import dataclass, field
from enum import StrEnum

from eventlens.domain.photos import ReferenceSet


class ScanStatus(StrEnum):
    """Lifecycle of a scan run."""

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ScanUpdate:
    """Progress published after each processed chunk."""

    matched_ids: tuple[str, ...]
    progress_percent: int
    processed: int
    total: int


@dataclass
class ScanSession:
    """State of the guest's current scan."""

    reference_set: ReferenceSet | None = None
    matched_ids: list[str] = field(default_factory=list)
    progress_percent: int = 0
    status: ScanStatus = ScanStatus.IDLE
    last_error: str | None = None
    rejected_ids: set[str] = field(default_factory=set)

    def reset(self, status: ScanStatus = ScanStatus.IDLE) -> None:
        """Clear results ahead of a new run."""
        self.matched_ids = []
        self.progress_percent = 0
        self.status = status
        self.last_error = None
        self.rejected_ids = set()
