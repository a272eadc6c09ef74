"""
Watermark resolver – works out the first date to search for new report
emails from the last row already recorded in the table.

The date cell is hand-editable in the sheet, so several formats are
accepted before falling back to a fixed start date.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

log = logging.getLogger(__name__)

PRIMARY_DATE_FORMAT = "%Y-%m-%d"

# Tried in order when the primary format fails.  %m/%d accept both
# "7/20/2025" and "07/20/2025".
ALTERNATE_DATE_FORMATS = (
    "%m/%d/%Y",
    "%Y/%m/%d",
)

# "Jul 20, 2025" / "July 20, 2025".  Month names are matched in English
# here rather than with %b, which follows LC_TIME.
_MONTH_NAMES = ("january", "february", "march", "april", "may", "june", "july",
                "august", "september", "october", "november", "december")
_MONTH_NAME_DATE_RE = re.compile(r"^([A-Za-z]+)\.?\s+(\d{1,2}),\s*(\d{4})$")

# The listing went live around 2025-05-22.
FALLBACK_WATERMARK = date(2025, 5, 21)


def last_row(rows: Optional[Sequence[Sequence]]) -> Optional[Sequence]:
    """Return the final row of *rows*, or None if there are none."""
    if not rows:
        return None
    return rows[-1]


def parse_sheet_date(text: str) -> Optional[date]:
    """Parse a sheet date cell using the primary then alternate formats."""
    text = (text or "").strip()
    if not text:
        return None
    for fmt in (PRIMARY_DATE_FORMAT,) + ALTERNATE_DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        if fmt != PRIMARY_DATE_FORMAT:
            log.debug("Date %r parsed with alternate format %s", text, fmt)
        return parsed
    return _parse_month_name_date(text)


def _parse_month_name_date(text: str) -> Optional[date]:
    m = _MONTH_NAME_DATE_RE.match(text)
    if not m:
        return None
    word = m.group(1).lower()
    for idx, name in enumerate(_MONTH_NAMES, 1):
        # three-letter abbreviation, "Sept", or the full name
        if len(word) >= 3 and name.startswith(word):
            try:
                parsed = date(int(m.group(3)), idx, int(m.group(2)))
            except ValueError:
                return None
            log.debug("Date %r parsed as month-name date", text)
            return parsed
    return None


def resolve_watermark(row: Optional[Sequence], fallback: date = FALLBACK_WATERMARK) -> date:
    """Return the day after the date in *row*'s first cell.

    Falls back to *fallback* when there is no row, the first cell is
    empty, or no supported format matches.
    """
    if row is None:
        log.warning("No rows found in sheet, using default filter date: %s", fallback)
        return fallback

    if len(row) == 0 or row[0] is None or str(row[0]).strip() == "":
        log.warning("Last row has no data in first column, using default filter date: %s",
                    fallback)
        return fallback

    raw = str(row[0]).strip()
    parsed = parse_sheet_date(raw)
    if parsed is None:
        log.warning("Could not parse date '%s' from last row, using default filter date: %s",
                    raw, fallback)
        return fallback

    watermark = parsed + timedelta(days=1)
    log.info("Using filter date from sheet: %s (day after last entry: %s)",
             watermark.isoformat(), raw)
    return watermark
