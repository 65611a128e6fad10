"""
Errors module: exception types raised by the table pipeline.
"""


class TblSummaryError(Exception):
    """Base class for all tblsummary errors."""


class ConfigurationError(TblSummaryError, ValueError):
    """Malformed option, bucketing rule, or unknown column reference."""


class RangeError(TblSummaryError, ValueError):
    """A numeric value fell outside every interval of a bucketing rule."""

    def __init__(self, value, row, column=None):
        self.value = value
        self.row = row
        self.column = column
        where = f" in column {column!r}" if column else ""
        super().__init__(f"Value {value!r} at row {row!r}{where} is outside all bucket intervals")


class ExportError(TblSummaryError, OSError):
    """Writing a rendered table to disk failed."""

    def __init__(self, message, path=None):
        self.path = path
        super().__init__(message)
