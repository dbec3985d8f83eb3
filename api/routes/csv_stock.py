"""
CSV Stock Import API

Bulk ingestion of dealer stock exports:
- Schema preview without persisting
- Import with per-row error reporting (201 full success, 207 partial)
- CSV-origin listing and per-batch views
"""

import logging
from typing import Optional, List, Dict
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel

from api.auth import get_actor_id
from api.routes.stock import CamelModel, Pagination, StockListResponse, StockUnitResponse
from core.config import get_config
from services import batch_reporting, stock_service
from services.csv_reader import read_csv_rows
from services.schema_detector import detect_schema
from services.stock_ingestion import StockIngestionPipeline


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/csv-stock", tags=["CSV Stock"])


# =============================================================================
# MODELS
# =============================================================================

class RowErrorResponse(CamelModel):
    row: int
    data: Dict[str, str]
    error: str


class BatchReportResponse(CamelModel):
    """Outcome of a CSV import."""
    success: bool
    batch_id: str
    file_name: Optional[str] = None
    total_rows: int
    success_count: int
    failure_count: int
    detected_columns: List[str]
    mappings: Dict[str, str]
    errors: List[RowErrorResponse]
    created: List[str]


class SchemaPreviewResponse(CamelModel):
    """Detected schema for an uploaded file."""
    file_name: Optional[str] = None
    total_rows: int
    columns: List[str]
    mappings: Dict[str, str]
    sample_data: List[Dict[str, str]]


class BatchSummary(CamelModel):
    batch_id: str
    file_name: Optional[str] = None
    import_date: Optional[str] = None
    total_stocks: int
    available_stocks: int
    sold_stocks: int
    models: List[str]
    locations: List[str]


class BatchListResponse(CamelModel):
    items: List[BatchSummary]
    pagination: Pagination


class BatchStocksResponse(CamelModel):
    batch_id: str
    items: List[StockUnitResponse]
    pagination: Pagination


def _camel_keys(mapping: Dict[str, str]) -> Dict[str, str]:
    return {to_camel(key): value for key, value in mapping.items()}


async def _read_upload(file: Optional[UploadFile]) -> bytes:
    """Read an uploaded CSV, enforcing presence, type and size."""
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files are supported")

    content = await file.read()
    max_bytes = get_config().imports.max_file_bytes
    if len(content) > max_bytes:
        logger.warning(f"Rejected upload {file.filename}: {len(content)} bytes")
        raise HTTPException(status_code=413, detail=f"File exceeds the maximum size of {max_bytes} bytes")
    return content


# =============================================================================
# ROUTES
# =============================================================================

@router.post("/import/preview", response_model=SchemaPreviewResponse)
async def preview_import(file: Optional[UploadFile] = File(None)):
    """
    Detect the column mapping of a CSV without importing it.

    Returns every header column, the resolved field mappings and the
    first few rows.
    """
    content = await _read_upload(file)
    config = get_config()
    rows = read_csv_rows(content, max_rows=config.imports.max_rows)
    schema = detect_schema(rows, sample_size=config.imports.sample_size)
    return SchemaPreviewResponse(
        file_name=file.filename,
        total_rows=len(rows),
        columns=schema.columns,
        mappings=_camel_keys(schema.mappings),
        sample_data=schema.sample_data,
    )


@router.post("/import", response_model=BatchReportResponse, status_code=201,
             responses={207: {"model": BatchReportResponse}})
async def import_csv(
    file: Optional[UploadFile] = File(None),
    default_branch_id: Optional[int] = Form(None, alias="defaultBranchId"),
    actor_id: str = Depends(get_actor_id),
):
    """
    Import stock units from a CSV file.

    Rows are processed in order; failing rows are reported and skipped,
    successful rows are kept. Responds 201 when every row was imported,
    207 otherwise.
    """
    content = await _read_upload(file)
    if not default_branch_id:
        raise HTTPException(status_code=400, detail="defaultBranchId is required")

    report = StockIngestionPipeline().run(content, file.filename, default_branch_id, actor_id)

    data = report.to_dict()
    data["mappings"] = _camel_keys(report.mappings)
    response = BatchReportResponse.model_validate(data)
    return JSONResponse(
        status_code=201 if report.success else 207,
        content=response.model_dump(mode="json", by_alias=True),
    )


@router.get("/", response_model=StockListResponse)
async def list_csv_stock(
    batch_id: Optional[str] = Query(None, alias="batchId"),
    status: Optional[str] = None,
    location: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
):
    """List active CSV-origin stock units, newest first."""
    units, pagination = stock_service.list_stock(
        origin="csv", batch_id=batch_id, status=status,
        location=location.upper() if location else None, page=page, limit=limit,
    )
    return StockListResponse(
        items=[StockUnitResponse.from_unit(u) for u in units],
        pagination=Pagination(**pagination),
    )


@router.get("/batches/list", response_model=BatchListResponse)
async def list_import_batches(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
):
    """Summaries of all import batches, newest first."""
    summaries, pagination = batch_reporting.list_batches(page=page, limit=limit)
    return BatchListResponse(
        items=[BatchSummary.model_validate(s) for s in summaries],
        pagination=Pagination(**pagination),
    )


@router.get("/batch/{batch_id}", response_model=BatchStocksResponse)
async def get_batch(
    batch_id: str,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
):
    """Stock units of one import batch in import order."""
    units, pagination = batch_reporting.get_batch_stocks(
        batch_id, status=status, page=page, limit=limit,
    )
    return BatchStocksResponse(
        batch_id=batch_id,
        items=[StockUnitResponse.from_unit(u) for u in units],
        pagination=Pagination(**pagination),
    )
