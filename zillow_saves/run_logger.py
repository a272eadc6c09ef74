"""
Run Logger – creates a "RUN LOG PACK" per run in <log_dir>/<run_id>/
Artifacts produced:
  - raw_debug.log     (via Python logging, DEBUG and up)
  - documents.csv     (every fetched email and what happened to it)
  - appended_rows.csv (rows sent to the table)
  - run_summary.json
  - SYNC_REVIEW.txt   (single human-readable review file)
"""

import csv
import json
import logging
import os
import sys
from datetime import datetime

from zillow_saves.models import METRIC_SENTINEL


class RunLogger:
    """Manages all per-run logging artifacts."""

    DOCUMENT_FIELDS = [
        "id", "published_at", "date", "subject", "status", "saves",
    ]
    ROW_FIELDS = ["date", "saves"]

    def __init__(self, base_dir=None, console_level=logging.INFO, install_handlers=True):
        self.run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        if base_dir is None:
            base_dir = os.path.join("logs", "runs")
        self.run_dir = os.path.join(base_dir, self.run_id)
        os.makedirs(self.run_dir, exist_ok=True)
        self.started_at = datetime.now()

        if install_handlers:
            self._setup_logging(console_level)

        self._documents: list[dict] = []
        self._rows: list[dict] = []
        self._summary: dict = {}
        self._error: str = ""

    # ------------------------------------------------------------------
    # Logging setup
    # ------------------------------------------------------------------
    def _setup_logging(self, console_level):
        log_path = os.path.join(self.run_dir, "raw_debug.log")
        root = logging.getLogger()
        root.setLevel(logging.DEBUG)
        for h in root.handlers[:]:
            root.removeHandler(h)
        # File handler: everything (DEBUG+)
        fh = logging.FileHandler(log_path, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        root.addHandler(fh)
        # Console handler: progress lines
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(console_level)
        ch.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        root.addHandler(ch)

        for noisy in ("googleapiclient.discovery", "googleapiclient.discovery_cache",
                      "google_auth_oauthlib", "urllib3"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    # ------------------------------------------------------------------
    # Result tracking
    # ------------------------------------------------------------------
    def record_result(self, result):
        """Capture per-document outcomes and the rows built for *result*."""
        for doc in result.skipped_subjects:
            self._documents.append(self._document_row(doc, "SKIPPED_SUBJECT"))
        for doc in result.skipped_dates:
            self._documents.append(self._document_row(doc, "SKIPPED_DATE"))
        for doc in result.documents:
            if doc.metric is None:
                status = "NOT_PROCESSED"
            elif doc.metric == METRIC_SENTINEL:
                status = "EXTRACTION_GAP"
            else:
                status = "EXTRACTED"
            self._documents.append(self._document_row(doc, status))
        self._rows = [{"date": r[0], "saves": r[1]} for r in result.appended_rows]

        self._summary = {
            "run_id": self.run_id,
            "timestamp": self.started_at.isoformat(),
            "status": result.status,
            "dry_run": result.dry_run,
            "rows_read": result.rows_read,
            "watermark": result.watermark.isoformat(),
            "documents_fetched": (len(result.documents) + len(result.skipped_subjects)
                                  + len(result.skipped_dates)),
            "documents_skipped_subject": len(result.skipped_subjects),
            "documents_skipped_date": len(result.skipped_dates),
            "appended_count": result.appended_count,
            "gap_document_id": result.gap.id if result.gap is not None else "",
        }

    def record_error(self, exc):
        """Capture a fatal error for the summary."""
        self._error = f"{type(exc).__name__}: {exc}"
        self._summary.setdefault("run_id", self.run_id)
        self._summary.setdefault("timestamp", self.started_at.isoformat())
        self._summary["status"] = "failed"
        self._summary["error"] = self._error

    @staticmethod
    def _document_row(doc, status):
        return {
            "id": doc.id,
            "published_at": doc.published_at.isoformat(),
            "date": doc.published_at.date().isoformat(),
            "subject": doc.subject,
            "status": status,
            "saves": "" if doc.metric is None else doc.metric,
        }

    @property
    def summary(self):
        return dict(self._summary)

    # ------------------------------------------------------------------
    # Flush all artifacts to disk
    # ------------------------------------------------------------------
    def flush(self, args=None):
        self._summary["duration_sec"] = round(
            (datetime.now() - self.started_at).total_seconds(), 2)
        self._summary["args"] = args or {}
        self._write_csv("documents.csv", self.DOCUMENT_FIELDS, self._documents)
        self._write_csv("appended_rows.csv", self.ROW_FIELDS, self._rows)
        self._write_json("run_summary.json", self._summary)
        self._write_review()
        logging.getLogger(__name__).info("Run log pack written to %s", self.run_dir)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _write_csv(self, filename, fieldnames, rows):
        path = os.path.join(self.run_dir, filename)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
            writer.writeheader()
            for row in rows:
                writer.writerow(row)

    def _write_json(self, filename, data):
        path = os.path.join(self.run_dir, filename)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)

    def _write_review(self):
        s = self._summary
        lines = []
        lines.append("=" * 70)
        lines.append(f"  SYNC REVIEW - Run {s.get('run_id', self.run_id)}")
        lines.append("=" * 70)
        lines.append("")
        lines.append(f"  status:       {s.get('status', '')}")
        lines.append(f"  dry_run:      {s.get('dry_run', False)}")
        lines.append(f"  start:        {s.get('timestamp', '')}")
        lines.append(f"  duration:     {s.get('duration_sec', 0):.1f}s")
        lines.append(f"  rows_read:    {s.get('rows_read', 0)}")
        lines.append(f"  watermark:    {s.get('watermark', '')}")
        lines.append(f"  fetched:      {s.get('documents_fetched', 0)}")
        lines.append(f"  appended:     {s.get('appended_count', 0)}")
        lines.append("")

        if self._error:
            lines.append("-" * 50)
            lines.append("  FATAL ERROR")
            lines.append("-" * 50)
            lines.append(f"  {self._error}")
            lines.append("")

        lines.append("-" * 50)
        lines.append("  EMAILS")
        lines.append("-" * 50)
        if self._documents:
            for i, d in enumerate(self._documents, 1):
                lines.append(f"  [{i}] {d['date']} | {d['status']} | saves={d['saves']}")
                lines.append(f"       Subject: {d['subject'][:70]}")
                lines.append(f"       ID: {d['id']}  Received: {d['published_at']}")
        else:
            lines.append("  (No emails)")
        lines.append("")

        lines.append("-" * 50)
        lines.append("  WHAT GOT APPENDED")
        lines.append("-" * 50)
        if s.get("status") == "aborted":
            lines.append(f"  Nothing: extraction gap in email id={s.get('gap_document_id', '')}")
        elif self._rows and s.get("dry_run"):
            lines.append(f"  Nothing: dry run ({len(self._rows)} rows built)")
        elif self._rows:
            for r in self._rows:
                lines.append(f"  {r['date']}  {r['saves']}")
        else:
            lines.append("  (No rows)")
        lines.append("")

        path = os.path.join(self.run_dir, "SYNC_REVIEW.txt")
        with open(path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
