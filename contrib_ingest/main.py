import logging
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .errors import FileReadError, NotFound, ParseError, UnsupportedFormat
from .files import file_type_from_path, format_size, normalize_file_type, resolve_stored_path
from .logging_setup import configure_logging
from .models import (
    CategoryDefaults,
    ErrorResponse,
    FileDataResponse,
    HealthResponse,
    build_file_data_response,
)
from .normalize import parse_file
from .rules import category_metadata

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings().log_level)
    yield


app = FastAPI(
    title="contrib-ingest",
    description="Tabular file ingestion for open-data contributions",
    version="0.1.0",
    lifespan=lifespan,
)


ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Stored file not found"},
    422: {"model": ErrorResponse, "description": "Unsupported file format"},
    500: {"model": ErrorResponse, "description": "File could not be read or parsed"},
}


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(UnsupportedFormat)
async def unsupported_format_handler(request: Request, exc: UnsupportedFormat):
    return JSONResponse(status_code=422, content={"error": exc.detail})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"error": exc.detail})


@app.exception_handler(FileReadError)
async def file_read_handler(request: Request, exc: FileReadError):
    logger.error("File read failed: %s", exc.detail)
    return JSONResponse(status_code=500, content={"error": exc.detail})


@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError):
    return JSONResponse(
        status_code=500, content={"error": f"Failed to parse file: {exc.detail}"}
    )


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.get("/files/data", response_model=FileDataResponse, responses=ERROR_RESPONSES)
def stored_file_data(
    path: str = Query(..., description="Upload path relative to the storage root"),
    file_type: Optional[str] = Query(default=None, description="csv, xlsx or xls"),
    file_id: Optional[int] = None,
    name: Optional[str] = None,
    size: Optional[int] = Query(default=None, ge=0),
    settings: Settings = Depends(get_settings),
):
    # legacy uploads only recorded a path, so the type falls back to its suffix
    if file_type:
        kind = normalize_file_type(file_type)
    else:
        kind = file_type_from_path(path)

    resolved = resolve_stored_path(settings.storage_root, path)
    table = parse_file(resolved, kind)

    size_bytes = size if size is not None else resolved.stat().st_size
    return build_file_data_response(
        table.to_dict(),
        file_type=kind,
        name=name or resolved.name,
        size=format_size(size_bytes),
        file_id=file_id,
    )


@app.post(
    "/preview",
    response_model=FileDataResponse,
    responses={**ERROR_RESPONSES, 413: {"model": ErrorResponse, "description": "Upload too large"}},
)
async def preview_upload(
    file: UploadFile = File(...),
    settings: Settings = Depends(get_settings),
):
    if not file.filename:
        raise HTTPException(status_code=422, detail="Uploaded file has no name")
    kind = file_type_from_path(file.filename)

    too_large = HTTPException(
        status_code=413,
        detail=f"File exceeds the {format_size(settings.max_upload_bytes)} upload limit",
    )
    # the multipart parser has already spooled the part, so its size is known
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise too_large

    raw = await file.read(settings.max_upload_bytes + 1)
    if len(raw) > settings.max_upload_bytes:
        raise too_large

    with tempfile.TemporaryDirectory(prefix="contrib-ingest-") as tmp:
        target = Path(tmp) / f"upload.{kind}"
        target.write_bytes(raw)
        table = await run_in_threadpool(parse_file, target, kind)

    return build_file_data_response(
        table.to_dict(),
        file_type=kind,
        name=file.filename,
        size=format_size(len(raw)),
    )


@app.get("/categories/{name}/defaults", response_model=CategoryDefaults)
def category_defaults(name: str):
    meta = category_metadata(name)
    return {"name": name, "icon": meta["icon"], "description": meta["description"]}
