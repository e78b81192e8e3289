# dbfixtures/errors.py
"""Exceptions raised while loading fixtures."""

from typing import Optional


class FixtureError(Exception):
    """Base class for every error raised by dbfixtures."""


class DocumentError(FixtureError, ValueError):
    """The fixture document could not be parsed into rows. Nothing was executed."""

    def __init__(self, message: str, entry: Optional[int] = None):
        self.entry = entry
        if entry is not None:
            message = f"Invalid fixture entry {entry}: {message}"
        super().__init__(message)


class RowError(FixtureError):
    """
    A statement for one row failed and the document was rolled back.

    Attributes:
        row_number: 1-based position of the row in its document
        table: Table the row targets
        cause: The underlying driver exception (also ``__cause__``)
    """

    def __init__(self, row_number: int, table: str, cause: BaseException):
        self.row_number = row_number
        self.table = table
        self.cause = cause
        super().__init__(f"Error loading row {row_number} ({table}): {cause}")


class FixtureFileError(FixtureError, OSError):
    """A fixture file could not be read."""

    def __init__(self, filename: str, cause: BaseException):
        reason = getattr(cause, 'strerror', None) or str(cause)
        super().__init__(f"Error loading file {filename}: {reason}")
        self.filename = str(filename)
        self.cause = cause

    def __str__(self) -> str:
        return self.args[0]
