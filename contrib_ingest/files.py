"""
Helpers around stored uploads: type tags, storage paths and display sizes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

from .errors import NotFound, UnsupportedFormat
from .rules import SIZE_UNITS, SUPPORTED_FILE_TYPES


def normalize_file_type(extension: str) -> str:
    """
    Canonical lowercase type tag for a declared extension.

    ".CSV", "csv" and " Xlsx " are all accepted; anything outside
    csv/xlsx/xls raises UnsupportedFormat.
    """
    file_type = (extension or "").strip().lower().lstrip(".")
    if file_type not in SUPPORTED_FILE_TYPES:
        raise UnsupportedFormat(f"Unsupported file format: {extension!r}")
    return file_type


def file_type_from_path(path: Union[str, Path]) -> str:
    return normalize_file_type(Path(path).suffix)


def resolve_stored_path(storage_root: Union[str, Path], relative_path: str) -> Path:
    """Resolve an upload path recorded relative to the storage root."""
    root = Path(storage_root).resolve()
    candidate = (root / relative_path).resolve()
    # stored paths never point outside the public disk
    if candidate != root and root not in candidate.parents:
        raise NotFound(f"File not found: {relative_path}")
    return candidate


def format_size(size_bytes: int) -> str:
    """
    Human readable size, base 1024.

    0 -> "0 Bytes", 1536 -> "1.5 KB", 10485760 -> "10 MB".
    Anything past MB is still expressed in MB.
    """
    if size_bytes <= 0:
        return "0 Bytes"

    exponent = 0
    scaled = float(size_bytes)
    while scaled >= 1024 and exponent < len(SIZE_UNITS) - 1:
        scaled /= 1024
        exponent += 1

    value = round(scaled, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {SIZE_UNITS[exponent]}"
