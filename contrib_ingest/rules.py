"""
Deterministic ingestion rules.

This file exists to make the parsing limits explicit and enforceable.
"""

from types import MappingProxyType

MAX_DATA_ROWS = 1000  # accepted (non-blank) rows per parsed file
SUPPORTED_FILE_TYPES = ("csv", "xlsx", "xls")

ENCODING_SAMPLE_BYTES = 64 * 1024
DELIMITER_SAMPLE_CHARS = 4096
CANDIDATE_DELIMITERS = [",", ";", "\t", "|"]
DEFAULT_DELIMITER = ","

# Container signatures used to pick the workbook reader
ZIP_SIGNATURE = b"PK\x03\x04"
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

SIZE_UNITS = ("Bytes", "KB", "MB")


DEFAULT_CATEGORY_METADATA = MappingProxyType({
    "icon": "folder",
    "description": "Community contributed datasets.",
})

CATEGORY_METADATA = MappingProxyType({
    "agriculture": MappingProxyType({
        "icon": "sprout",
        "description": "Crop production, livestock and land use.",
    }),
    "economy": MappingProxyType({
        "icon": "chart-line",
        "description": "Prices, trade, employment and public finance.",
    }),
    "education": MappingProxyType({
        "icon": "graduation-cap",
        "description": "Schools, enrolment and learning outcomes.",
    }),
    "environment": MappingProxyType({
        "icon": "leaf",
        "description": "Climate, air and water quality, natural resources.",
    }),
    "health": MappingProxyType({
        "icon": "heart-pulse",
        "description": "Facilities, disease surveillance and public health.",
    }),
    "transport": MappingProxyType({
        "icon": "bus",
        "description": "Roads, transit ridership and traffic safety.",
    }),
})


def category_metadata(name: str):
    """Icon/description fallback for a category name (case-insensitive)."""
    key = (name or "").strip().lower()
    return CATEGORY_METADATA.get(key, DEFAULT_CATEGORY_METADATA)
