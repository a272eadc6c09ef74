"""
Local CSV table store – used when no spreadsheet is configured.

The range argument is accepted for interface parity and ignored; the
whole file is the table.  Rows are written without a header so the file
mirrors the sheet layout: date, saves.
"""

import csv
import logging
import os

from zillow_saves.errors import FetchError, WriteError
from zillow_saves.tables.base import TableStore

log = logging.getLogger(__name__)


class CsvTable(TableStore):
    def __init__(self, csv_path):
        self.csv_path = csv_path

    def read_rows(self, range_spec):
        if not os.path.exists(self.csv_path):
            log.info("CSV table %s does not exist yet; treating as empty", self.csv_path)
            return []
        try:
            with open(self.csv_path, "r", newline="", encoding="utf-8") as f:
                rows = [row for row in csv.reader(f) if row]
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise FetchError(f"Unable to read CSV table {self.csv_path}: {exc}") from exc
        log.info("Retrieved %d rows from CSV table %s", len(rows), self.csv_path)
        return rows

    def append_rows(self, range_spec, rows):
        rows = [list(r) for r in rows]
        if not rows:
            log.info("No rows to append to CSV table")
            return 0
        try:
            out_dir = os.path.dirname(os.path.abspath(self.csv_path))
            os.makedirs(out_dir, exist_ok=True)
            with open(self.csv_path, "a", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerows(rows)
        except OSError as exc:
            raise WriteError(f"Unable to append to CSV table {self.csv_path}: {exc}") from exc
        log.info("Successfully appended %d rows to %s", len(rows), self.csv_path)
        return len(rows)
