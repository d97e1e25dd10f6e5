"""Value types passed between the archiver components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class Record:
    """A document snapshot read from the live collection."""

    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommitResult:
    """Outcome of committing (or simulating) one batch."""

    batch_number: int
    records_committed: int
    dry_run: bool = False
    archived: bool = False
    deleted: bool = False
    last_document_id: Optional[str] = None


@dataclass
class ResumeCursor:
    """Position of the last batch committed to both sinks."""

    batch_number: int = 0
    last_document_id: Optional[str] = None
    records_archived: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_number": self.batch_number,
            "last_document_id": self.last_document_id,
            "records_archived": self.records_archived,
        }


class ArchiveStatus(str, Enum):
    """Final status of an archival run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FATAL = "fatal"


@dataclass
class ArchiveResult:
    """Typed result of archiving one organization out of one collection."""

    organization_id: str
    live_collection: str
    archive_collection: str
    status: ArchiveStatus = ArchiveStatus.SUCCESS
    dry_run: bool = False
    records_matched: int = 0
    records_archived: int = 0
    batches_committed: int = 0
    batches_total: int = 0
    resume_cursor: Optional[ResumeCursor] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ArchiveStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        """Convert result to a dictionary for logging and summaries."""
        return {
            "organization_id": self.organization_id,
            "live_collection": self.live_collection,
            "archive_collection": self.archive_collection,
            "status": self.status.value,
            "dry_run": self.dry_run,
            "records_matched": self.records_matched,
            "records_archived": self.records_archived,
            "batches_committed": self.batches_committed,
            "batches_total": self.batches_total,
            "resume_cursor": self.resume_cursor.to_dict() if self.resume_cursor else None,
            "error": self.error,
        }
