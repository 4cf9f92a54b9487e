from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class TableData(BaseModel):
    headers: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)


class FileInfo(BaseModel):
    id: Optional[int] = Field(default=None, examples=[12])
    name: str
    type: str = Field(examples=["csv"])
    size: str = Field(examples=["1.5 KB"])


class FileDataResponse(BaseModel):
    success: bool = True
    data: TableData
    file_info: FileInfo
    file_type: str
    headers: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)


class CategoryDefaults(BaseModel):
    name: str
    icon: str
    description: str


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    ok: bool = True


def build_file_data_response(
    table: Dict[str, Any],
    *,
    file_type: str,
    name: str,
    size: str,
    file_id: Optional[int] = None,
) -> FileDataResponse:
    """Wrap a parsed table's dict form with the stored file's metadata."""
    data = TableData(**table)
    return FileDataResponse(
        data=data,
        file_info=FileInfo(id=file_id, name=name, type=file_type, size=size),
        file_type=file_type,
        headers=data.headers,
        rows=data.rows,
    )
