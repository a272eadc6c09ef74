"""Incremental sync of daily listing saves from report emails to a sheet."""

__version__ = "1.0.0"
