"""
Audit Log Module

Provides the audit trail for stock lifecycle operations.
Every mutating operation records who did it, under which request,
and enough metadata to reconstruct what happened.

Features:
- One event per create/import/status change/delete/assign/unassign
- Actor and request ID tracking
- Batch ID tracking for CSV imports
- Customer identifiers and credentials masked in metadata
"""

import json
import uuid
from dataclasses import dataclass
from typing import Optional, Dict, Any, List
from enum import Enum

from api.database import get_connection


class AuditEventType(str, Enum):
    """Types of audit events."""
    STOCK_CREATE = "STOCK_CREATE"
    CSV_IMPORT = "CSV_IMPORT"
    STATUS_UPDATE = "STATUS_UPDATE"
    SOFT_DELETE = "SOFT_DELETE"
    ASSIGN = "ASSIGN"
    UNASSIGN = "UNASSIGN"


@dataclass
class AuditEvent:
    """An audit event record."""
    id: int = None
    event_type: str = None
    stock_id: Optional[str] = None
    batch_id: Optional[str] = None
    actor_id: Optional[str] = None
    request_id: Optional[str] = None
    metadata_json: Optional[Dict] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "stock_id": self.stock_id,
            "batch_id": self.batch_id,
            "actor_id": self.actor_id,
            "request_id": self.request_id,
            "metadata": self.metadata_json,
            "created_at": self.created_at,
        }


def init_audit_table():
    """Initialize audit_events table."""
    with get_connection() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS audit_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_type TEXT NOT NULL,
                stock_id TEXT,
                batch_id TEXT,
                actor_id TEXT,
                request_id TEXT,
                metadata_json TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_audit_stock
            ON audit_events(stock_id)
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_audit_batch
            ON audit_events(batch_id)
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_audit_type_time
            ON audit_events(event_type, created_at)
        """)
        conn.commit()


def _row_to_event(row) -> AuditEvent:
    data = dict(row)
    if data.get("metadata_json"):
        data["metadata_json"] = json.loads(data["metadata_json"])
    return AuditEvent(**data)


class AuditLogRepository:
    """Repository for audit log operations."""

    @staticmethod
    def create(
        event_type: AuditEventType,
        actor_id: str,
        stock_id: str = None,
        batch_id: str = None,
        request_id: str = None,
        metadata: Dict = None,
    ) -> int:
        """Create a new audit event."""
        if metadata:
            metadata = _redact_sensitive(metadata)

        with get_connection() as conn:
            cursor = conn.execute(
                """INSERT INTO audit_events
                   (event_type, stock_id, batch_id, actor_id, request_id, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    event_type.value,
                    stock_id,
                    batch_id,
                    actor_id,
                    request_id,
                    json.dumps(metadata, default=str) if metadata else None,
                )
            )
            conn.commit()
            return cursor.lastrowid

    @staticmethod
    def get_by_stock(stock_id: str) -> List[AuditEvent]:
        """Get all audit events for a stock unit, oldest first."""
        with get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM audit_events WHERE stock_id = ? ORDER BY id ASC",
                (stock_id,)
            ).fetchall()
        return [_row_to_event(row) for row in rows]

    @staticmethod
    def get_by_batch(batch_id: str) -> List[AuditEvent]:
        """Get all audit events for an import batch."""
        with get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM audit_events WHERE batch_id = ? ORDER BY id ASC",
                (batch_id,)
            ).fetchall()
        return [_row_to_event(row) for row in rows]


# Customer identity and credential fields never go into audit metadata in clear
SENSITIVE_KEY_PARTS = ("phone", "aadhaar", "pan_number", "account", "password", "token")


def _mask(value: Any) -> str:
    text = str(value)
    return "*" * max(len(text) - 4, 0) + text[-4:]


def _redact_sensitive(data: Dict) -> Dict:
    """Mask sensitive values (keeping the last 4 characters), recursing into dicts."""
    redacted = {}
    for key, value in data.items():
        if isinstance(value, dict):
            redacted[key] = _redact_sensitive(value)
        elif value is not None and any(part in key.lower() for part in SENSITIVE_KEY_PARTS):
            redacted[key] = _mask(value)
        else:
            redacted[key] = value
    return redacted


def generate_request_id() -> str:
    """Generate a unique request ID for tracing."""
    return str(uuid.uuid4())[:12]


def get_stock_audit_trail(stock_id: str) -> List[Dict]:
    """Get complete audit trail for a stock unit."""
    events = AuditLogRepository.get_by_stock(stock_id)
    return [e.to_dict() for e in events]
