"""Data types shared by the sync pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

# Assigned to Document.metric when extraction finds nothing.
METRIC_SENTINEL = -1

STATUS_APPENDED = "appended"
STATUS_ABORTED = "aborted"


@dataclass
class Document:
    """One candidate source email."""
    subject: str
    published_at: datetime
    body: str
    id: str
    metric: Optional[int] = None

    @property
    def extracted(self) -> bool:
        return self.metric is not None and self.metric != METRIC_SENTINEL

    def to_row(self) -> list:
        """Table row for this document: [YYYY-MM-DD, saves]."""
        return [self.published_at.date().isoformat(), self.metric]


@dataclass
class SyncResult:
    """Outcome of a single sync run."""
    status: str                      # appended | aborted
    watermark: date
    rows_read: int
    documents: List[Document] = field(default_factory=list)
    skipped_subjects: List[Document] = field(default_factory=list)
    skipped_dates: List[Document] = field(default_factory=list)
    appended_rows: List[list] = field(default_factory=list)
    gap: Optional[Document] = None
    dry_run: bool = False

    @property
    def appended_count(self) -> int:
        return 0 if self.dry_run else len(self.appended_rows)

    @property
    def aborted(self) -> bool:
        return self.status == STATUS_ABORTED
