"""Tests for the table stores.

Covers:
  1. CsvTable read/append, including the write-then-read watermark round trip
  2. GoogleSheetsTable request shape against a fake Sheets service
  3. HTTP and auth failures mapped onto the sync error taxonomy
  4. Transport and file-decoding failures mapped the same way
"""
from __future__ import annotations

import csv
import os
import socket
import ssl
import sys
from datetime import date

import httplib2
import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from zillow_saves.errors import AuthError, FetchError, WriteError
from zillow_saves.tables import CsvTable, GoogleSheetsTable
from zillow_saves.watermark import last_row, resolve_watermark

RANGE = "Sheet1!A:Z"


def http_error(status, message="forbidden"):
    resp = httplib2.Response({"status": status})
    content = ('{"error": {"message": "%s"}}' % message).encode()
    return HttpError(resp, content)


class _Request:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.response


class FakeValues:
    def __init__(self, values=None, get_error=None, append_error=None):
        self.values = values
        self.get_error = get_error
        self.append_error = append_error
        self.get_calls = []
        self.append_calls = []

    def get(self, **kwargs):
        self.get_calls.append(kwargs)
        resp = {"range": kwargs["range"]}
        if self.values is not None:
            resp["values"] = self.values
        return _Request(resp, self.get_error)

    def append(self, **kwargs):
        self.append_calls.append(kwargs)
        rows = kwargs["body"]["values"]
        resp = {"updates": {"updatedRange": f"Sheet1!A10:B{9 + len(rows)}",
                            "updatedRows": len(rows)}}
        return _Request(resp, self.append_error)


class FakeService:
    def __init__(self, values):
        self._values = values

    def spreadsheets(self):
        return self

    def values(self):
        return self._values


# =====================================================================
# 1. CsvTable
# =====================================================================

class TestCsvTable:
    def test_missing_file_reads_empty(self, tmp_path):
        assert CsvTable(str(tmp_path / "saves.csv")).read_rows(RANGE) == []

    def test_append_then_read(self, tmp_path):
        table = CsvTable(str(tmp_path / "out" / "saves.csv"))
        assert table.append_rows(RANGE, [["2025-07-20", 3], ["2025-07-21", 5]]) == 2
        assert table.read_rows(RANGE) == [["2025-07-20", "3"], ["2025-07-21", "5"]]

    def test_appends_accumulate(self, tmp_path):
        table = CsvTable(str(tmp_path / "saves.csv"))
        table.append_rows(RANGE, [["2025-07-20", 3]])
        table.append_rows(RANGE, [["2025-07-21", 5]])
        assert len(table.read_rows(RANGE)) == 2

    def test_empty_append_does_not_create_file(self, tmp_path):
        path = tmp_path / "saves.csv"
        assert CsvTable(str(path)).append_rows(RANGE, []) == 0
        assert not path.exists()

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "saves.csv"
        path.write_text("Date,Saves\n\n2025-07-20,3\n", encoding="utf-8")
        assert CsvTable(str(path)).read_rows(RANGE) == [["Date", "Saves"], ["2025-07-20", "3"]]

    def test_written_date_resolves_to_next_day(self, tmp_path):
        table = CsvTable(str(tmp_path / "saves.csv"))
        table.append_rows(RANGE, [["2025-07-20", 5]])
        assert resolve_watermark(last_row(table.read_rows(RANGE))) == date(2025, 7, 21)

    def test_unreadable_path_is_fetch_error(self, tmp_path):
        # a directory where the file should be
        path = tmp_path / "saves.csv"
        path.mkdir()
        with pytest.raises(FetchError):
            CsvTable(str(path)).read_rows(RANGE)

    def test_unwritable_path_is_write_error(self, tmp_path):
        path = tmp_path / "saves.csv"
        path.mkdir()
        with pytest.raises(WriteError):
            CsvTable(str(path)).append_rows(RANGE, [["2025-07-20", 5]])


# =====================================================================
# 2. GoogleSheetsTable
# =====================================================================

class TestGoogleSheetsTable:
    def test_requires_spreadsheet_id(self):
        with pytest.raises(ValueError):
            GoogleSheetsTable("", service=FakeService(FakeValues()))

    def test_read_rows(self):
        values = FakeValues(values=[["2025-07-19", "4"], ["2025-07-20", "5"]])
        table = GoogleSheetsTable("sheet-123", service=FakeService(values))
        assert table.read_rows(RANGE) == [["2025-07-19", "4"], ["2025-07-20", "5"]]
        assert values.get_calls == [{"spreadsheetId": "sheet-123", "range": RANGE}]

    def test_read_empty_sheet(self):
        # The API omits "values" entirely for an empty range.
        table = GoogleSheetsTable("sheet-123", service=FakeService(FakeValues()))
        assert table.read_rows(RANGE) == []

    def test_append_rows_single_call(self):
        values = FakeValues()
        table = GoogleSheetsTable("sheet-123", service=FakeService(values))
        assert table.append_rows(RANGE, [["2025-07-20", 3], ["2025-07-21", 5]]) == 2
        assert values.append_calls == [{
            "spreadsheetId": "sheet-123",
            "range": RANGE,
            "valueInputOption": "RAW",
            "insertDataOption": "INSERT_ROWS",
            "body": {"values": [["2025-07-20", 3], ["2025-07-21", 5]]},
        }]

    def test_empty_append_makes_no_call(self):
        values = FakeValues()
        table = GoogleSheetsTable("sheet-123", service=FakeService(values))
        assert table.append_rows(RANGE, []) == 0
        assert values.append_calls == []


# =====================================================================
# 3. Error mapping
# =====================================================================

class TestSheetsErrors:
    def test_read_http_error(self):
        values = FakeValues(get_error=http_error(403))
        table = GoogleSheetsTable("sheet-123", service=FakeService(values))
        with pytest.raises(FetchError) as excinfo:
            table.read_rows(RANGE)
        assert excinfo.value.details["status"] == 403
        assert isinstance(excinfo.value.__cause__, HttpError)

    def test_append_http_error(self):
        values = FakeValues(append_error=http_error(400, "Unable to parse range"))
        table = GoogleSheetsTable("sheet-123", service=FakeService(values))
        with pytest.raises(WriteError) as excinfo:
            table.append_rows(RANGE, [["2025-07-20", 3]])
        assert excinfo.value.details["rows"] == 1
        assert excinfo.value.details["status"] == 400

    def test_refresh_error_on_read(self):
        values = FakeValues(get_error=RefreshError("invalid_grant: Token has been expired or revoked."))
        table = GoogleSheetsTable("sheet-123", service=FakeService(values))
        with pytest.raises(AuthError):
            table.read_rows(RANGE)

    def test_refresh_error_on_append(self):
        values = FakeValues(append_error=RefreshError("invalid_grant"))
        table = GoogleSheetsTable("sheet-123", service=FakeService(values))
        with pytest.raises(AuthError):
            table.append_rows(RANGE, [["2025-07-20", 3]])


# =====================================================================
# 4. Transport failures
# =====================================================================

class TestTransportErrors:
    def test_read_server_not_found(self):
        values = FakeValues(get_error=httplib2.ServerNotFoundError("Unable to find the server at sheets.googleapis.com"))
        table = GoogleSheetsTable("sheet-123", service=FakeService(values))
        with pytest.raises(FetchError, match="Unable to reach Google Sheets"):
            table.read_rows(RANGE)

    @pytest.mark.parametrize("error", [
        socket.timeout("timed out"),
        ConnectionResetError(104, "Connection reset by peer"),
        ssl.SSLError("EOF occurred in violation of protocol"),
    ])
    def test_read_socket_errors(self, error):
        table = GoogleSheetsTable("sheet-123", service=FakeService(FakeValues(get_error=error)))
        with pytest.raises(FetchError) as excinfo:
            table.read_rows(RANGE)
        assert excinfo.value.__cause__ is error

    def test_append_timeout(self):
        values = FakeValues(append_error=socket.timeout("timed out"))
        table = GoogleSheetsTable("sheet-123", service=FakeService(values))
        with pytest.raises(WriteError) as excinfo:
            table.append_rows(RANGE, [["2025-07-20", 3], ["2025-07-21", 5]])
        assert excinfo.value.details["rows"] == 2

    def test_append_httplib2_error(self):
        values = FakeValues(append_error=httplib2.HttpLib2Error("redirect loop"))
        table = GoogleSheetsTable("sheet-123", service=FakeService(values))
        with pytest.raises(WriteError):
            table.append_rows(RANGE, [["2025-07-20", 3]])

    def test_csv_not_utf8(self, tmp_path):
        path = tmp_path / "saves.csv"
        path.write_bytes(b"2025-07-20,3\n\xff\xfe\xfa,1\n")
        with pytest.raises(FetchError):
            CsvTable(str(path)).read_rows(RANGE)

    def test_csv_field_too_large(self, tmp_path):
        path = tmp_path / "saves.csv"
        path.write_text('"' + "x" * (csv.field_size_limit() + 10) + '",1\n', encoding="utf-8")
        with pytest.raises(FetchError):
            CsvTable(str(path)).read_rows(RANGE)
