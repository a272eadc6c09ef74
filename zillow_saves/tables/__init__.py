"""Table stores: where recorded daily saves live."""

from zillow_saves.tables.base import TableStore
from zillow_saves.tables.csv_table import CsvTable
from zillow_saves.tables.google_sheets import GoogleSheetsTable

__all__ = [
    "TableStore",
    "CsvTable",
    "GoogleSheetsTable",
]
