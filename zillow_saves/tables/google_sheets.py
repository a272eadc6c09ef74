"""
Google Sheets table store.

Reads the whole saves range with values().get and appends new rows in a
single values().append call.  There is no retry: a failed call ends the
run and the next run picks up from the same watermark.
"""

import logging

from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from zillow_saves.errors import AuthError, FetchError, WriteError
from zillow_saves.tables.base import TableStore

log = logging.getLogger(__name__)

# Dates are written as plain text so the next run reads back exactly
# what was written.
VALUE_INPUT_OPTION = "RAW"
INSERT_DATA_OPTION = "INSERT_ROWS"


class GoogleSheetsTable(TableStore):
    """TableStore backed by the Sheets v4 API."""

    def __init__(self, spreadsheet_id, credentials=None, service=None):
        if not spreadsheet_id:
            raise ValueError("spreadsheet_id is required")
        self.spreadsheet_id = spreadsheet_id
        if service is None:
            service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        self.service = service

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read_rows(self, range_spec):
        log.debug("Reading range %s from sheet %s", range_spec, self.spreadsheet_id)
        try:
            resp = self.service.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id,
                range=range_spec,
            ).execute()
        except HttpError as exc:
            raise FetchError(
                f"Unable to retrieve data from sheet: {exc}",
                {"spreadsheet_id": self.spreadsheet_id, "range": range_spec,
                 "status": _status_of(exc)},
            ) from exc
        except GoogleAuthError as exc:
            raise AuthError(f"Google authorization failed while reading sheet: {exc}") from exc
        except (HttpLib2Error, OSError) as exc:
            raise FetchError(
                f"Unable to reach Google Sheets: {exc}",
                {"spreadsheet_id": self.spreadsheet_id, "range": range_spec},
            ) from exc

        rows = resp.get("values", [])
        log.info("Retrieved %d rows from Google Sheet", len(rows))
        return rows

    def append_rows(self, range_spec, rows):
        values = [list(row) for row in rows]
        if not values:
            log.info("No rows to append to sheet")
            return 0

        try:
            result = self.service.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=range_spec,
                valueInputOption=VALUE_INPUT_OPTION,
                insertDataOption=INSERT_DATA_OPTION,
                body={"values": values},
            ).execute()
        except HttpError as exc:
            raise WriteError(
                f"Unable to append data to sheet: {exc}",
                {"spreadsheet_id": self.spreadsheet_id, "range": range_spec,
                 "rows": len(values), "status": _status_of(exc)},
            ) from exc
        except GoogleAuthError as exc:
            raise AuthError(f"Google authorization failed while appending: {exc}") from exc
        except (HttpLib2Error, OSError) as exc:
            # transport failure: the append may or may not have landed
            raise WriteError(
                f"Unable to reach Google Sheets while appending: {exc}",
                {"spreadsheet_id": self.spreadsheet_id, "range": range_spec,
                 "rows": len(values)},
            ) from exc

        updated_range = (result or {}).get("updates", {}).get("updatedRange", "<none>")
        log.info("Successfully appended %d rows to Google Sheet (%s)", len(values), updated_range)
        return len(values)


def _status_of(exc):
    resp = getattr(exc, "resp", None)
    return getattr(resp, "status", None)
