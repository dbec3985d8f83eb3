"""
CSV stock ingestion pipeline.

Turns detected-schema rows into CSV-origin stock units, one row at a
time. A bad row never aborts the batch: its error is recorded in the
report and processing continues. Rows already inserted are kept.
"""
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from api.audit_log import AuditEventType, AuditLogRepository
from api.models import BranchRepository, StockOrigin, StockStatus, StockUnitRepository
from core.config import AppConfig, get_config
from core.logging_config import LogContext, current_request_id, generate_batch_id
from services.csv_reader import read_csv_rows
from services.errors import (
    DuplicateUnitError,
    NotFoundError,
    RowValidationError,
    StockError,
)
from services.schema_detector import DetectedSchema, detect_schema
from services.stock_service import generate_stock_id

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@dataclass
class RowError:
    """A row that could not be ingested."""
    row: int
    data: Dict[str, str]
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "data": self.data, "error": self.error}


@dataclass
class BatchReport:
    """Outcome of one ingestion call."""
    batch_id: str
    file_name: Optional[str]
    total_rows: int = 0
    success_count: int = 0
    failure_count: int = 0
    detected_columns: List[str] = field(default_factory=list)
    mappings: Dict[str, str] = field(default_factory=dict)
    errors: List[RowError] = field(default_factory=list)
    created: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "batch_id": self.batch_id,
            "file_name": self.file_name,
            "total_rows": self.total_rows,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "detected_columns": self.detected_columns,
            "mappings": self.mappings,
            "errors": [e.to_dict() for e in self.errors],
            "created": self.created,
        }


class StockIngestionPipeline:
    """Sequential CSV row ingestion into the stock store."""

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or get_config()

    def run(self, content: bytes, file_name: Optional[str],
            default_branch_id: Optional[int], actor_id: str) -> BatchReport:
        """Read, detect and ingest an uploaded file."""
        rows = read_csv_rows(content, max_rows=self.config.imports.max_rows)
        schema = detect_schema(rows, sample_size=self.config.imports.sample_size)
        return self.ingest(rows, schema, default_branch_id, actor_id, file_name)

    def ingest(self, rows: List[Dict[str, str]], schema: DetectedSchema,
               default_branch_id: Optional[int], actor_id: str,
               file_name: Optional[str] = None) -> BatchReport:
        """
        Ingest parsed rows as one batch.

        Raises:
            StockError: If the default branch id is missing
            NotFoundError: If the default branch does not exist
        """
        if not default_branch_id:
            raise StockError("defaultBranchId is required")
        if BranchRepository.get_by_id(default_branch_id) is None:
            raise NotFoundError(f"Branch {default_branch_id} not found")

        batch_id = generate_batch_id()
        report = BatchReport(
            batch_id=batch_id,
            file_name=file_name,
            total_rows=len(rows),
            detected_columns=list(schema.columns),
            mappings=dict(schema.mappings),
        )
        import_date = datetime.now(timezone.utc).isoformat()

        with LogContext(actor_id=actor_id, batch_id=batch_id):
            logger.info(f"Starting CSV import of {len(rows)} rows from {file_name or '<upload>'}")

            for index, row in enumerate(rows):
                row_number = index + 2  # header is line 1
                try:
                    stock_id = self._ingest_row(
                        row, schema, batch_id, import_date, file_name,
                        default_branch_id, actor_id,
                    )
                except StockError as e:
                    report.failure_count += 1
                    report.errors.append(RowError(row=row_number, data=dict(row), error=e.message))
                    logger.debug(f"Row {row_number} rejected: {e.message}")
                    continue

                report.success_count += 1
                report.created.append(stock_id)

            logger.info(
                f"CSV import finished: {report.success_count} created, "
                f"{report.failure_count} failed"
            )

        return report

    def _ingest_row(self, row: Dict[str, str], schema: DetectedSchema, batch_id: str,
                    import_date: str, file_name: Optional[str], branch_id: int,
                    actor_id: str) -> str:
        engine = schema.extract(row, "engine_number").upper()
        chassis = schema.extract(row, "chassis_number").upper()
        location = schema.extract(row, "location").upper() or self.config.imports.default_location

        if not engine or not chassis:
            raise RowValidationError("Engine/Chassis number missing")

        if StockUnitRepository.exists_by_engine_or_chassis(engine, chassis):
            raise DuplicateUnitError(f"Duplicate: {engine or chassis}")

        stock_id = generate_stock_id(StockOrigin.CSV)
        try:
            StockUnitRepository.create(
                stock_id=stock_id,
                origin=StockOrigin.CSV,
                engine_number=engine,
                chassis_number=chassis,
                location=location,
                updated_by=actor_id,
                status=StockStatus.AVAILABLE.value,
                model_name=schema.extract(row, "model_name"),
                color=schema.extract(row, "color"),
                branch_id=branch_id,
                csv_import_batch=batch_id,
                csv_import_date=import_date,
                csv_file_name=file_name,
                raw_row=dict(row),
                detected_columns=schema.columns,
                schema_version=SCHEMA_VERSION,
            )
        except sqlite3.IntegrityError:
            # Lost a race with another writer between the check and the insert
            raise DuplicateUnitError(f"Duplicate: {engine or chassis}")

        AuditLogRepository.create(
            event_type=AuditEventType.CSV_IMPORT,
            actor_id=actor_id,
            stock_id=stock_id,
            batch_id=batch_id,
            request_id=current_request_id.get() or None,
            metadata={"file_name": file_name, "engine_number": engine, "chassis_number": chassis},
        )

        return stock_id
