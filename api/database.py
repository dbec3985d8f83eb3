"""SQLite database for stock inventory and collaborator records."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path

from core.config import get_config


def get_db_path() -> Path:
    """Resolve the database file from configuration."""
    return Path(get_config().storage.database_path)


def init_db():
    """Initialize the database with required tables."""
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_connection() as conn:
        # Stock units - both origins share one table so engine/chassis
        # uniqueness is enforced across manual and CSV stock alike
        conn.execute("""
            CREATE TABLE IF NOT EXISTS stock_units (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                stock_id TEXT NOT NULL UNIQUE,
                origin TEXT NOT NULL CHECK (origin IN ('manual', 'csv')),
                model_name TEXT,
                color TEXT,
                variant TEXT,
                year_of_manufacture INTEGER,
                engine_type TEXT,
                engine_number TEXT NOT NULL UNIQUE,
                chassis_number TEXT NOT NULL UNIQUE,
                status TEXT NOT NULL DEFAULT 'Available',
                location TEXT NOT NULL,
                branch_id INTEGER,
                last_updated TIMESTAMP,
                updated_by TEXT,
                price_info_json TEXT,
                sales_info_json TEXT,
                sales_history_json TEXT NOT NULL DEFAULT '[]',
                csv_import_batch TEXT,
                csv_import_date TIMESTAMP,
                csv_file_name TEXT,
                raw_row_json TEXT,
                detected_columns_json TEXT,
                schema_version INTEGER,
                is_active BOOLEAN DEFAULT TRUE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (branch_id) REFERENCES branches(id)
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_stock_units_origin ON stock_units(origin)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_stock_units_status ON stock_units(status)")
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_stock_units_batch ON stock_units(csv_import_batch, status)"
        )

        # Customers - collaborator records, looked up by id only
        conn.execute("""
            CREATE TABLE IF NOT EXISTS customers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                full_name TEXT,
                phone_number TEXT NOT NULL UNIQUE,
                email TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Branches - collaborator records, looked up by id only
        conn.execute("""
            CREATE TABLE IF NOT EXISTS branches (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                branch_name TEXT NOT NULL,
                address TEXT,
                phone TEXT,
                is_active BOOLEAN DEFAULT TRUE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Customer vehicles - one per customer
        conn.execute("""
            CREATE TABLE IF NOT EXISTS customer_vehicles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                stock_id TEXT NOT NULL,
                customer_id INTEGER NOT NULL UNIQUE,
                model_name TEXT,
                color TEXT,
                registration_date TEXT,
                purchase_date TEXT,
                number_plate TEXT UNIQUE,
                registered_owner_name TEXT,
                is_paid BOOLEAN DEFAULT FALSE,
                is_finance BOOLEAN DEFAULT FALSE,
                insurance BOOLEAN DEFAULT FALSE,
                rto_info_json TEXT,
                active_value_added_services_json TEXT NOT NULL DEFAULT '[]',
                is_active BOOLEAN DEFAULT TRUE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (stock_id) REFERENCES stock_units(stock_id),
                FOREIGN KEY (customer_id) REFERENCES customers(id)
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_customer_vehicles_stock ON customer_vehicles(stock_id)"
        )

        conn.commit()


@contextmanager
def get_connection():
    """Get a database connection."""
    conn = sqlite3.connect(str(get_db_path()))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction():
    """
    Explicit write transaction for multi-statement operations.

    BEGIN IMMEDIATE takes the write lock up front, so conditional updates
    inside the block cannot interleave with another writer.

    Usage:
        with transaction() as conn:
            conn.execute(...)
            conn.execute(...)
        # Commits on success, rolls back on exception
    """
    with get_connection() as conn:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
