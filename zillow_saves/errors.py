"""
Error taxonomy for a sync run.

Every failure the pipeline knows about derives from SyncError so the
entry point can turn it into a readable message and a non-zero exit.
ExtractionGap is the exception to the "fatal" rule: the orchestrator
records it on the run result and closes the append gate instead of
propagating it.
"""

from typing import Any, Optional


class SyncError(Exception):
    """Base class for all sync failures."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(SyncError):
    """Run configuration is missing or malformed."""


class AuthError(SyncError):
    """Login or credential exchange failed (Google or IMAP)."""


# ---------------------------------------------------------------------------
# Fetch failures (table read, mail search/fetch)
# ---------------------------------------------------------------------------

class FetchError(SyncError):
    """Reading the table or retrieving documents failed."""


class MailConnectionError(FetchError):
    """Could not open a session with the mail server."""


class SearchError(FetchError):
    """Mailbox selection, search or fetch was rejected by the server."""


class WriteError(SyncError):
    """Appending rows to the table failed."""


class ExtractionGap(SyncError):
    """A document body matched none of the saves patterns."""

    def __init__(self, document) -> None:
        super().__init__(
            "No saves count found in document",
            {"id": document.id, "subject": document.subject,
             "published_at": document.published_at.isoformat()},
        )
        self.document = document
