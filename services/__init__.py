"""Services for dealership stock inventory."""

from services.errors import (
    StockError,
    SchemaError,
    RowValidationError,
    DuplicateUnitError,
    StateConflictError,
    NotFoundError,
)
from services.schema_detector import DetectedSchema, detect_schema
from services.csv_reader import CSVReadError, read_csv_rows
from services.stock_ingestion import BatchReport, RowError, StockIngestionPipeline
from services.stock_service import (
    ManualStockInput,
    create_manual_stock,
    get_stock,
    list_stock,
    update_status,
    soft_delete,
)
from services.stock_assignment import (
    AssignmentRequest,
    AssignmentResult,
    assign_stock,
    unassign_stock,
    derive_rto_info,
)
from services.batch_reporting import list_batches, get_batch_stocks

__all__ = [
    # Errors
    "StockError",
    "SchemaError",
    "RowValidationError",
    "DuplicateUnitError",
    "StateConflictError",
    "NotFoundError",
    # CSV ingestion
    "DetectedSchema",
    "detect_schema",
    "CSVReadError",
    "read_csv_rows",
    "BatchReport",
    "RowError",
    "StockIngestionPipeline",
    # Stock lifecycle
    "ManualStockInput",
    "create_manual_stock",
    "get_stock",
    "list_stock",
    "update_status",
    "soft_delete",
    # Assignment
    "AssignmentRequest",
    "AssignmentResult",
    "assign_stock",
    "unassign_stock",
    "derive_rto_info",
    # Reporting
    "list_batches",
    "get_batch_stocks",
]
