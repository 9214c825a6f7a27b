"""Persistent stores for docsync reports."""

from .reports import ReportStore, format_timestamp, parse_timestamp

__all__ = ["ReportStore", "format_timestamp", "parse_timestamp"]
