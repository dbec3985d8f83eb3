"""
Database Models for Stock Inventory

This module defines the stock lifecycle schema on top of api.database:
- StockUnit records from two origins (manual entry, CSV import) in one table
- Current sale info and the append-only sales history ledger
- CustomerVehicle links created by assignment
- Minimal Customer/Branch records used for reference lookups
"""

import json
from datetime import datetime, timezone
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any, Tuple
from enum import Enum

from api.database import get_connection, init_db


# =============================================================================
# ENUMS
# =============================================================================

class StockOrigin(str, Enum):
    """Where a stock unit came from."""
    MANUAL = "manual"
    CSV = "csv"


class StockStatus(str, Enum):
    """Stock unit status."""
    AVAILABLE = "Available"
    RESERVED = "Reserved"
    SOLD = "Sold"
    SERVICE = "Service"
    DAMAGED = "Damaged"
    TRANSIT = "Transit"


class StockLocation(str, Enum):
    """Fixed locations for manually entered stock."""
    SHOWROOM = "Showroom"
    WAREHOUSE = "Warehouse"
    SERVICE_CENTER = "Service Center"
    CUSTOMER = "Customer"


class PaymentStatus(str, Enum):
    """Payment status of a sale."""
    PAID = "Paid"
    PARTIAL = "Partial"
    PENDING = "Pending"


class TransferType(str, Enum):
    """Tag recorded on sales history entries."""
    NEW_SALE = "New Sale"
    OWNERSHIP_TRANSFER = "Ownership Transfer"
    RESALE = "Resale"


ALLOWED_STATUSES: Dict[StockOrigin, Tuple[str, ...]] = {
    StockOrigin.MANUAL: tuple(s.value for s in StockStatus),
    StockOrigin.CSV: (
        StockStatus.AVAILABLE.value,
        StockStatus.SOLD.value,
        StockStatus.RESERVED.value,
        StockStatus.SERVICE.value,
    ),
}

STOCK_ID_PREFIX: Dict[StockOrigin, str] = {
    StockOrigin.MANUAL: "STK",
    StockOrigin.CSV: "CSV",
}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _loads(value: Optional[str], default=None):
    if value is None or value == "":
        return default
    return json.loads(value)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class SalesInfo:
    """Current sale recorded on a stock unit."""
    sold_to: int
    sold_date: str
    sale_price: float
    invoice_number: str
    payment_status: str = PaymentStatus.PENDING.value
    customer_vehicle_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SalesInfo":
        return cls(
            sold_to=data["sold_to"],
            sold_date=data["sold_date"],
            sale_price=data["sale_price"],
            invoice_number=data["invoice_number"],
            payment_status=data.get("payment_status", PaymentStatus.PENDING.value),
            customer_vehicle_id=data.get("customer_vehicle_id"),
        )


@dataclass
class SalesHistoryEntry:
    """A past sale kept in the append-only ledger."""
    sold_to: int
    sold_date: str
    sale_price: float
    invoice_number: str
    payment_status: str
    customer_vehicle_id: Optional[int]
    transfer_type: str
    recorded_at: str
    reversed_at: Optional[str] = None
    reversal_reason: Optional[str] = None

    @classmethod
    def from_sales_info(
        cls,
        info: SalesInfo,
        transfer_type: TransferType,
        reversed_at: Optional[str] = None,
        reversal_reason: Optional[str] = None,
    ) -> "SalesHistoryEntry":
        return cls(
            **info.to_dict(),
            transfer_type=transfer_type.value,
            recorded_at=utc_now(),
            reversed_at=reversed_at,
            reversal_reason=reversal_reason,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def sales_info(self) -> SalesInfo:
        """The sale this entry was recorded from."""
        return SalesInfo.from_dict(self.to_dict())


@dataclass
class StockUnit:
    """Stock unit entity (either origin)."""
    id: int
    stock_id: str
    origin: str
    engine_number: str
    chassis_number: str
    status: str
    location: str
    model_name: Optional[str] = None
    color: Optional[str] = None
    variant: Optional[str] = None
    year_of_manufacture: Optional[int] = None
    engine_type: Optional[str] = None
    branch_id: Optional[int] = None
    last_updated: Optional[str] = None
    updated_by: Optional[str] = None
    price_info: Optional[Dict[str, float]] = None
    sales_info: Optional[SalesInfo] = None
    sales_history: List[SalesHistoryEntry] = field(default_factory=list)
    csv_import_batch: Optional[str] = None
    csv_import_date: Optional[str] = None
    csv_file_name: Optional[str] = None
    raw_row: Optional[Dict[str, str]] = None
    detected_columns: Optional[List[str]] = None
    schema_version: Optional[int] = None
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_sold(self) -> bool:
        return self.status == StockStatus.SOLD.value

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["is_active"] = bool(self.is_active)
        return data


@dataclass
class CustomerVehicle:
    """Vehicle owned by a customer, linked to one stock unit."""
    id: int
    stock_id: str
    customer_id: int
    model_name: Optional[str] = None
    color: Optional[str] = None
    registration_date: Optional[str] = None
    purchase_date: Optional[str] = None
    number_plate: Optional[str] = None
    registered_owner_name: Optional[str] = None
    is_paid: bool = False
    is_finance: bool = False
    insurance: bool = False
    rto_info: Optional[Dict[str, str]] = None
    active_value_added_services: List[Dict[str, Any]] = field(default_factory=list)
    is_active: bool = True
    created_at: Optional[str] = None


@dataclass
class Customer:
    """Customer record (lookup only)."""
    id: int
    phone_number: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class Branch:
    """Branch record (lookup only)."""
    id: int
    branch_name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None


# =============================================================================
# REPOSITORY CLASSES
# =============================================================================

_STOCK_JSON_COLUMNS = {
    "price_info": "price_info_json",
    "raw_row": "raw_row_json",
    "detected_columns": "detected_columns_json",
}


class StockUnitRepository:
    """Repository for StockUnit operations across both origins."""

    @staticmethod
    def _row_to_unit(row) -> StockUnit:
        data = dict(row)
        sales_info = _loads(data.pop("sales_info_json"))
        history = _loads(data.pop("sales_history_json"), [])
        for attr, column in _STOCK_JSON_COLUMNS.items():
            data[attr] = _loads(data.pop(column))
        data["is_active"] = bool(data["is_active"])
        return StockUnit(
            **data,
            sales_info=SalesInfo.from_dict(sales_info) if sales_info else None,
            sales_history=[SalesHistoryEntry(**entry) for entry in history],
        )

    @staticmethod
    def _encode(kwargs: Dict[str, Any]) -> Dict[str, Any]:
        """Map dataclass attribute names to stored columns."""
        encoded = {}
        for key, value in kwargs.items():
            if key in _STOCK_JSON_COLUMNS:
                encoded[_STOCK_JSON_COLUMNS[key]] = json.dumps(value) if value is not None else None
            elif key == "sales_info":
                encoded["sales_info_json"] = json.dumps(value.to_dict()) if value else None
            elif key == "sales_history":
                encoded["sales_history_json"] = json.dumps([e.to_dict() for e in value])
            else:
                encoded[key] = value.value if isinstance(value, Enum) else value
        return encoded

    @staticmethod
    def create(stock_id: str, origin: StockOrigin, engine_number: str,
               chassis_number: str, location: str, updated_by: str,
               status: str = StockStatus.AVAILABLE.value, **fields) -> int:
        """Insert a stock unit. Raises sqlite3.IntegrityError on duplicates."""
        now = utc_now()
        values = StockUnitRepository._encode({
            "stock_id": stock_id,
            "origin": origin,
            "engine_number": engine_number,
            "chassis_number": chassis_number,
            "status": status,
            "location": location,
            "updated_by": updated_by,
            "last_updated": now,
            "created_at": now,
            "updated_at": now,
            **fields,
        })
        columns = ", ".join(values.keys())
        placeholders = ", ".join("?" for _ in values)

        with get_connection() as conn:
            cursor = conn.execute(
                f"INSERT INTO stock_units ({columns}) VALUES ({placeholders})",
                list(values.values()),
            )
            conn.commit()
            return cursor.lastrowid

    @staticmethod
    def get_by_stock_id(stock_id: str, conn=None) -> Optional[StockUnit]:
        """Get a stock unit by its human-readable stock ID."""
        sql = "SELECT * FROM stock_units WHERE stock_id = ?"
        if conn is not None:
            row = conn.execute(sql, (stock_id,)).fetchone()
        else:
            with get_connection() as conn:
                row = conn.execute(sql, (stock_id,)).fetchone()
        if row:
            return StockUnitRepository._row_to_unit(row)
        return None

    @staticmethod
    def exists_by_engine_or_chassis(engine_number: str, chassis_number: str) -> bool:
        """Check both origins for a unit with either identifier."""
        with get_connection() as conn:
            row = conn.execute(
                """SELECT 1 FROM stock_units
                   WHERE engine_number = ? OR chassis_number = ? LIMIT 1""",
                (engine_number.upper(), chassis_number.upper()),
            ).fetchone()
            return row is not None

    @staticmethod
    def count_by_origin(origin: StockOrigin) -> int:
        with get_connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM stock_units WHERE origin = ?", (origin.value,)
            ).fetchone()[0]

    @staticmethod
    def list_units(origin: str = None, status: str = None, location: str = None,
                   branch_id: int = None, batch_id: str = None, search: str = None,
                   include_inactive: bool = False, limit: int = 20, offset: int = 0,
                   oldest_first: bool = False) -> Tuple[List[StockUnit], int]:
        """List stock units with filters. Returns (page, total)."""
        where = " WHERE 1=1"
        params: List[Any] = []

        if not include_inactive:
            where += " AND is_active = TRUE"
        if origin:
            where += " AND origin = ?"
            params.append(origin)
        if status:
            where += " AND status = ?"
            params.append(status)
        if location:
            where += " AND location = ?"
            params.append(location)
        if branch_id:
            where += " AND branch_id = ?"
            params.append(branch_id)
        if batch_id:
            where += " AND csv_import_batch = ?"
            params.append(batch_id)
        if search:
            where += """ AND (stock_id LIKE ? OR model_name LIKE ?
                         OR engine_number LIKE ? OR chassis_number LIKE ?)"""
            params.extend([f"%{search}%"] * 4)

        order = "ASC" if oldest_first else "DESC"

        with get_connection() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM stock_units{where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM stock_units{where} ORDER BY id {order} LIMIT ? OFFSET ?",
                params + [limit, offset],
            ).fetchall()

        return [StockUnitRepository._row_to_unit(row) for row in rows], total

    @staticmethod
    def update(stock_id: str, conn=None, **kwargs) -> bool:
        """Update a stock unit. Returns True if a row changed."""
        if not kwargs:
            return False

        kwargs["updated_at"] = utc_now()
        values = StockUnitRepository._encode(kwargs)
        set_clause = ", ".join(f"{k} = ?" for k in values.keys())
        params = list(values.values()) + [stock_id]
        sql = f"UPDATE stock_units SET {set_clause} WHERE stock_id = ?"

        if conn is not None:
            return conn.execute(sql, params).rowcount == 1

        with get_connection() as conn:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount == 1

    @staticmethod
    def transition_status(conn, stock_id: str, from_status: StockStatus,
                          to_status: StockStatus, **kwargs) -> bool:
        """
        Conditionally move an active unit from one status to another.

        Runs on the caller's connection so it can share a transaction with
        related writes. Returns False when no row matched, i.e. the unit is
        not (or no longer) in from_status.
        """
        kwargs["status"] = to_status
        kwargs["updated_at"] = utc_now()
        values = StockUnitRepository._encode(kwargs)
        set_clause = ", ".join(f"{k} = ?" for k in values.keys())

        cursor = conn.execute(
            f"""UPDATE stock_units SET {set_clause}
                WHERE stock_id = ? AND status = ? AND is_active = TRUE""",
            list(values.values()) + [stock_id, from_status.value],
        )
        return cursor.rowcount == 1

    @staticmethod
    def summarize_batches(limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        """Per-batch counts for CSV-origin units, newest import first."""
        with get_connection() as conn:
            rows = conn.execute(
                """SELECT csv_import_batch AS batch_id,
                          MIN(csv_file_name) AS file_name,
                          MIN(csv_import_date) AS import_date,
                          COUNT(*) AS total_stocks,
                          SUM(CASE WHEN status = 'Available' THEN 1 ELSE 0 END) AS available_stocks,
                          SUM(CASE WHEN status = 'Sold' THEN 1 ELSE 0 END) AS sold_stocks
                   FROM stock_units
                   WHERE origin = 'csv' AND csv_import_batch IS NOT NULL
                   GROUP BY csv_import_batch
                   ORDER BY import_date DESC, batch_id DESC
                   LIMIT ? OFFSET ?""",
                (limit, offset),
            ).fetchall()
            return [dict(row) for row in rows]

    @staticmethod
    def count_batches() -> int:
        with get_connection() as conn:
            return conn.execute(
                """SELECT COUNT(DISTINCT csv_import_batch) FROM stock_units
                   WHERE origin = 'csv' AND csv_import_batch IS NOT NULL"""
            ).fetchone()[0]

    @staticmethod
    def distinct_values(batch_id: str, column: str) -> List[str]:
        """Distinct non-empty values of a column within one batch."""
        if column not in ("model_name", "location"):
            raise ValueError(f"Unsupported column: {column}")
        with get_connection() as conn:
            rows = conn.execute(
                f"""SELECT DISTINCT {column} FROM stock_units
                    WHERE csv_import_batch = ? AND {column} IS NOT NULL AND {column} != ''
                    ORDER BY {column}""",
                (batch_id,),
            ).fetchall()
            return [row[0] for row in rows]


class CustomerVehicleRepository:
    """Repository for CustomerVehicle operations."""

    @staticmethod
    def _row_to_vehicle(row) -> CustomerVehicle:
        data = dict(row)
        data["rto_info"] = _loads(data.pop("rto_info_json"))
        data["active_value_added_services"] = _loads(
            data.pop("active_value_added_services_json"), []
        )
        for flag in ("is_paid", "is_finance", "insurance", "is_active"):
            data[flag] = bool(data[flag])
        return CustomerVehicle(**data)

    @staticmethod
    def create(conn, stock_id: str, customer_id: int, model_name: str = None,
               color: str = None, registration_date: str = None,
               purchase_date: str = None, number_plate: str = None,
               registered_owner_name: str = None, is_paid: bool = False,
               is_finance: bool = False, insurance: bool = False,
               rto_info: Dict[str, str] = None) -> int:
        """Create a customer vehicle on the caller's connection."""
        cursor = conn.execute(
            """INSERT INTO customer_vehicles
               (stock_id, customer_id, model_name, color, registration_date,
                purchase_date, number_plate, registered_owner_name, is_paid,
                is_finance, insurance, rto_info_json)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (stock_id, customer_id, model_name, color, registration_date,
             purchase_date, number_plate.upper() if number_plate else None,
             registered_owner_name, is_paid, is_finance, insurance,
             json.dumps(rto_info) if rto_info else None)
        )
        return cursor.lastrowid

    @staticmethod
    def get_by_id(id: int) -> Optional[CustomerVehicle]:
        with get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM customer_vehicles WHERE id = ?", (id,)
            ).fetchone()
            if row:
                return CustomerVehicleRepository._row_to_vehicle(row)
            return None

    @staticmethod
    def delete(conn, id: int) -> bool:
        """Hard delete on the caller's connection."""
        cursor = conn.execute("DELETE FROM customer_vehicles WHERE id = ?", (id,))
        return cursor.rowcount == 1


class CustomerRepository:
    """Repository for Customer lookups."""

    @staticmethod
    def create(phone_number: str, full_name: str = None, email: str = None) -> int:
        with get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO customers (phone_number, full_name, email) VALUES (?, ?, ?)",
                (phone_number, full_name, email),
            )
            conn.commit()
            return cursor.lastrowid

    @staticmethod
    def get_by_id(id: int) -> Optional[Customer]:
        with get_connection() as conn:
            row = conn.execute("SELECT * FROM customers WHERE id = ?", (id,)).fetchone()
            if row:
                return Customer(**dict(row))
            return None


class BranchRepository:
    """Repository for Branch lookups."""

    @staticmethod
    def create(branch_name: str, address: str = None, phone: str = None) -> int:
        with get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO branches (branch_name, address, phone) VALUES (?, ?, ?)",
                (branch_name, address, phone),
            )
            conn.commit()
            return cursor.lastrowid

    @staticmethod
    def get_by_id(id: int) -> Optional[Branch]:
        with get_connection() as conn:
            row = conn.execute("SELECT * FROM branches WHERE id = ?", (id,)).fetchone()
            if row:
                data = dict(row)
                data["is_active"] = bool(data["is_active"])
                return Branch(**data)
            return None


# =============================================================================
# SCHEMA INITIALIZATION
# =============================================================================

def init_schema():
    """Initialize the stock schema and the audit table."""
    from api.audit_log import init_audit_table

    init_db()
    init_audit_table()
