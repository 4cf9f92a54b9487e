"""
Tabular ingestion core.

Responsibilities:
- dispatch a stored upload to the CSV or workbook reader by its type tag
- encoding + delimiter detection for CSV
- header trimming, row alignment to headers
- numeric coercion of cell values
- blank-row dropping and the accepted-row cap
"""

from __future__ import annotations

import csv
import logging
import math
import re
import struct
import zlib
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union
from zipfile import BadZipFile

import xlrd
from charset_normalizer import from_bytes
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet
from xlrd.compdoc import CompDocError

from .errors import FileReadError, NotFound, ParseError
from .files import file_type_from_path, normalize_file_type
from .rules import (
    CANDIDATE_DELIMITERS,
    DEFAULT_DELIMITER,
    DELIMITER_SAMPLE_CHARS,
    ENCODING_SAMPLE_BYTES,
    MAX_DATA_ROWS,
    OLE2_SIGNATURE,
    ZIP_SIGNATURE,
)

logger = logging.getLogger(__name__)

CellValue = Optional[Union[int, float, str]]
Row = Tuple[CellValue, ...]

_NUMERIC_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class ParsedTable:
    """
    Normalized headers and rows of one tabular file.

    Rows are kept positionally so duplicate headers lose nothing; the
    name-keyed `rows` view is a projection (last duplicate wins).
    """

    headers: Tuple[str, ...] = ()
    cells: Tuple[Row, ...] = ()

    @property
    def rows(self) -> List[Dict[str, CellValue]]:
        return [dict(zip(self.headers, row)) for row in self.cells]

    def to_dict(self) -> Dict[str, Any]:
        return {"headers": list(self.headers), "rows": self.rows}


def coerce_value(value: Any) -> CellValue:
    """
    Normalize a raw cell value.

    Rules:
    - strings are trimmed; an empty string becomes None
    - a numeric-looking string becomes int (no decimal point, no exponent)
      or float
    - native int/float pass through unchanged
    - booleans become "TRUE"/"FALSE", dates and times ISO-8601 text
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)

    text = str(value).strip()
    if not text:
        return None
    if _NUMERIC_RE.fullmatch(text):
        if "." in text or "e" in text or "E" in text:
            number = float(text)
            # literals past the double range stay text
            return text if math.isinf(number) else number
        return int(text)
    return text


def _header_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(coerce_value(value))


def _align(record: Sequence[Any], width: int) -> Row:
    # extra fields are ignored, missing trailing fields are None
    return tuple(
        coerce_value(record[i]) if i < len(record) else None
        for i in range(width)
    )


def _collect_rows(width: int, records: Iterable[Sequence[Any]]) -> Tuple[Row, ...]:
    """Align, coerce and keep the first MAX_DATA_ROWS non-blank records."""
    rows: List[Row] = []
    if width == 0:
        return ()

    for record in records:
        row = _align(record, width)
        if all(value is None for value in row):
            continue
        rows.append(row)
        if len(rows) >= MAX_DATA_ROWS:
            break

    return tuple(rows)


def parse_file(path: Union[str, Path], extension: str) -> ParsedTable:
    """
    Parse a stored upload into a ParsedTable.

    The extension is matched case-insensitively. Unknown extensions fail
    before the filesystem is touched.
    """
    file_type = normalize_file_type(extension)
    path = Path(path)
    if not path.is_file():
        raise NotFound(f"File not found: {path.name}")

    logger.debug("Parsing %s as %s", path, file_type)
    if file_type == "csv":
        table = parse_csv(path)
    else:
        table = parse_excel(path)

    logger.info(
        "Parsed %s: %d columns, %d rows", path.name, len(table.headers), len(table.cells)
    )
    return table


def parse_path(path: Union[str, Path]) -> ParsedTable:
    """Parse a stored upload whose type is only known from its file name."""
    return parse_file(path, file_type_from_path(path))


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def _detect_encoding(path: Path) -> str:
    with open(path, "rb") as fh:
        sample = fh.read(ENCODING_SAMPLE_BYTES)

    if sample.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    if len(sample) == ENCODING_SAMPLE_BYTES and b"\n" in sample:
        # don't feed a multibyte sequence cut in half to the detector
        sample = sample[: sample.rfind(b"\n") + 1]

    match = from_bytes(sample).best()
    if match is None or match.encoding == "ascii":
        return "utf-8"
    return match.encoding


def _sniff_delimiter(sample: str) -> str:
    if not sample:
        return DEFAULT_DELIMITER
    try:
        return csv.Sniffer().sniff(sample, delimiters=CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        return DEFAULT_DELIMITER


def parse_csv(path: Union[str, Path]) -> ParsedTable:
    """
    Read a CSV file: first record is the header row, then at most
    MAX_DATA_ROWS non-blank data rows. Records after the cap are never read.
    """
    path = Path(path)
    try:
        encoding = _detect_encoding(path)
        with open(path, "r", encoding=encoding, errors="replace", newline="") as fh:
            delimiter = _sniff_delimiter(fh.read(DELIMITER_SAMPLE_CHARS))
            fh.seek(0)

            reader = csv.reader(fh, delimiter=delimiter)
            header_record = next(reader, None)
            if header_record is None:
                return ParsedTable()

            headers = tuple(_header_text(h) for h in header_record)
            rows = _collect_rows(len(headers), reader)
    except FileNotFoundError as exc:
        raise NotFound(f"File not found: {path.name}") from exc
    except csv.Error as exc:
        logger.warning("CSV parse failed for %s: %s", path.name, exc)
        raise ParseError(f"Malformed CSV data: {exc}") from exc
    except OSError as exc:
        raise FileReadError(f"Unable to read {path.name}: {exc}") from exc

    logger.debug("CSV %s: encoding=%s delimiter=%r", path.name, encoding, delimiter)
    return ParsedTable(headers=headers, cells=rows)


# ---------------------------------------------------------------------------
# Workbooks
# ---------------------------------------------------------------------------

def _xlsx_rows(fh) -> Iterator[Sequence[Any]]:
    try:
        workbook = load_workbook(fh, data_only=True)
    except (
        InvalidFileException, BadZipFile, zlib.error, EOFError,
        KeyError, ValueError, TypeError, SyntaxError,
    ) as exc:
        logger.warning("openpyxl failed to load workbook: %s", exc)
        raise ParseError(f"Invalid or corrupted XLSX workbook: {exc}") from exc

    sheet = workbook.active
    if not isinstance(sheet, Worksheet):
        raise ParseError("Workbook has no active worksheet")

    return sheet.iter_rows(
        min_row=1, max_row=sheet.max_row, max_col=sheet.max_column, values_only=True
    )


def _xls_cell(cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if cell.ctype == xlrd.XL_CELL_NUMBER:
        # BIFF has no integer cells
        return int(cell.value) if float(cell.value).is_integer() else cell.value
    if cell.ctype == xlrd.XL_CELL_DATE:
        try:
            return xlrd.xldate_as_datetime(cell.value, datemode)
        except (xlrd.xldate.XLDateError, ValueError, OverflowError):
            return cell.value
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    return cell.value


def _xls_rows(fh) -> Iterator[Sequence[Any]]:
    try:
        book = xlrd.open_workbook(file_contents=fh.read())
    # xlrd checks parts of the OLE2 container with assert
    except (
        xlrd.XLRDError, CompDocError, struct.error, AssertionError,
        ValueError, IndexError, KeyError,
    ) as exc:
        logger.warning("xlrd failed to load workbook: %s", exc)
        raise ParseError(f"Invalid or corrupted XLS workbook: {exc}") from exc

    sheets = book.sheets()
    if not sheets:
        raise ParseError("Workbook has no worksheets")
    # WINDOW2 "sheet_visible" marks the sheet shown on open
    sheet = next(
        (s for s in sheets if getattr(s, "sheet_visible", 0)),
        next((s for s in sheets if getattr(s, "sheet_selected", 0)), sheets[0]),
    )

    return (
        tuple(_xls_cell(sheet.cell(r, c), book.datemode) for c in range(sheet.ncols))
        for r in range(sheet.nrows)
    )


def parse_excel(path: Union[str, Path]) -> ParsedTable:
    """
    Read the active sheet of an XLSX or XLS workbook.

    Row 1 is always the header row (columns A..last used column). The
    reader is chosen from the file signature, not the extension, so a
    mislabelled workbook still loads.
    """
    path = Path(path)
    try:
        with open(path, "rb") as fh:
            signature = fh.read(len(OLE2_SIGNATURE))
            fh.seek(0)
            if signature.startswith(ZIP_SIGNATURE):
                records = _xlsx_rows(fh)
            elif signature.startswith(OLE2_SIGNATURE):
                records = _xls_rows(fh)
            else:
                raise ParseError(f"{path.name} is not an XLSX or XLS workbook")

            header_record = next(records, None)
            if header_record is None:
                return ParsedTable()

            headers = tuple(_header_text(h) for h in header_record)
            rows = _collect_rows(len(headers), records)
    except FileNotFoundError as exc:
        raise NotFound(f"File not found: {path.name}") from exc
    except OSError as exc:
        raise FileReadError(f"Unable to read {path.name}: {exc}") from exc

    if not rows and not any(headers):
        # untouched sheet: openpyxl still reports a single A1 cell
        return ParsedTable()
    return ParsedTable(headers=headers, cells=rows)
