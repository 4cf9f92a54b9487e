from __future__ import annotations


class IngestError(Exception):
    """Base class for every failure raised while ingesting a stored file."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class UnsupportedFormat(IngestError):
    pass


class FileReadError(IngestError):
    """The file stream could not be opened or read."""


class NotFound(FileReadError):
    pass


class ParseError(IngestError):
    """The content is not valid CSV or spreadsheet data."""
