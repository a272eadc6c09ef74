"""
Saves sync – the incremental pipeline.

  1) Read every recorded row from the table
  2) Resolve the watermark from the last row
  3) Fetch report emails since the watermark
  4) Drop emails whose subject does not contain the filter, or whose
     UTC date falls before the watermark
  5) Sort oldest first
  6) Extract the saves count from each body; stop at the first gap
  7) Append one [date, saves] row per email, only if every email
     yielded a count

Table and mail failures propagate.  An extraction gap closes the append
gate for the whole batch and is reported on the result.
"""

import logging

from zillow_saves.errors import ExtractionGap
from zillow_saves.models import (
    METRIC_SENTINEL,
    STATUS_ABORTED,
    STATUS_APPENDED,
    SyncResult,
)
from zillow_saves.saves_extractor import SAVES_PATTERNS, extract_saves_count
from zillow_saves.watermark import FALLBACK_WATERMARK, last_row, resolve_watermark

log = logging.getLogger(__name__)

# How many trailing table rows to echo in the progress log.
ROWS_TO_SHOW = 4


def subject_matches(subject, subject_filter):
    """Case-insensitive containment check."""
    if not subject_filter:
        return True
    return subject_filter.casefold() in (subject or "").casefold()


def sort_documents(documents):
    """Stable sort, oldest first."""
    return sorted(documents, key=lambda d: d.published_at)


class SavesSync:
    """Runs one read → fetch → extract → append cycle."""

    def __init__(self, table, source, range_spec, subject,
                 fallback_date=FALLBACK_WATERMARK, patterns=SAVES_PATTERNS,
                 run_logger=None, dry_run=False):
        self.table = table
        self.source = source
        self.range_spec = range_spec
        self.subject = subject
        self.fallback_date = fallback_date
        self.patterns = patterns
        self.run_logger = run_logger
        self.dry_run = dry_run

    def run(self):
        # ---- TableLoaded ----
        rows = self.table.read_rows(self.range_spec)
        self._log_rows(rows)

        # ---- WatermarkResolved ----
        watermark = resolve_watermark(last_row(rows), fallback=self.fallback_date)

        # ---- DocumentsFetched ----
        fetched = self.source.fetch_documents(self.subject, watermark)
        log.info("Found %d emails since %s", len(fetched), watermark.isoformat())

        documents = []
        skipped = []
        too_old = []
        for doc in fetched:
            if not subject_matches(doc.subject, self.subject):
                skipped.append(doc)
                log.info("Skipping email id=%s: subject %r does not contain %r",
                         doc.id, doc.subject, self.subject)
            elif doc.published_at.date() < watermark:
                # SINCE is evaluated on the server's local date, rows use UTC
                too_old.append(doc)
                log.info("Skipping email id=%s: dated %s, before watermark %s",
                         doc.id, doc.published_at.date().isoformat(), watermark.isoformat())
            else:
                documents.append(doc)

        # ---- DocumentsSorted ----
        documents = sort_documents(documents)
        log.debug("Sorted %d emails by date (oldest first)", len(documents))

        result = SyncResult(
            status=STATUS_APPENDED,
            watermark=watermark,
            rows_read=len(rows),
            documents=documents,
            skipped_subjects=skipped,
            skipped_dates=too_old,
            dry_run=self.dry_run,
        )

        # ---- Extracted ----
        ok = True
        for i, doc in enumerate(documents, 1):
            log.info("Email %d: subject=%r date=%s id=%s", i, doc.subject,
                     doc.published_at.strftime("%Y-%m-%d %H:%M:%S"), doc.id)
            count, found = extract_saves_count(doc.body, self.patterns)
            if not found:
                ok = False
                doc.metric = METRIC_SENTINEL
                gap = ExtractionGap(doc)
                result.gap = doc
                log.error("Email %d: %s", i, gap)
                break
            doc.metric = count
            log.info("Email %d: saves count %d", i, count)

        # ---- Appended | Aborted ----
        if not ok:
            result.status = STATUS_ABORTED
            remaining = sum(1 for d in documents if d.metric is None)
            log.error("Append aborted: extraction gap in email id=%s; "
                      "%d later emails left unprocessed", result.gap.id, remaining)
        else:
            result.appended_rows = [doc.to_row() for doc in documents]
            self._append(result.appended_rows)

        if self.run_logger is not None:
            self.run_logger.record_result(result)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append(self, rows):
        if not rows:
            log.info("No email data to append to table")
            return
        if self.dry_run:
            log.info("Dry run: would append %d rows: %s", len(rows), rows)
            return
        self.table.append_rows(self.range_spec, rows)

    @staticmethod
    def _log_rows(rows):
        log.info("Retrieved %d rows from table", len(rows))
        start = max(0, len(rows) - ROWS_TO_SHOW)
        if start:
            log.info("Showing last %d rows:", ROWS_TO_SHOW)
        for idx in range(start, len(rows)):
            log.info("Row %d: %s", idx + 1, rows[idx])
