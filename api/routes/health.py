"""Health, readiness and liveness probes."""
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.database import get_connection, get_db_path
from core.config import get_config

router = APIRouter()

APP_VERSION = "1.0.0"
STARTED_AT = datetime.now(timezone.utc).isoformat()

REQUIRED_TABLES = ("stock_units", "customer_vehicles", "audit_events")


class HealthResponse(BaseModel):
    status: str
    version: str
    started_at: str
    checks: Dict[str, Any]


def _database_check() -> Dict[str, Any]:
    db_path = get_db_path()
    if not db_path.exists():
        return {"status": "not_initialized", "path": str(db_path)}

    with get_connection() as conn:
        tables = {
            row[0] for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            ).fetchall()
        }
        missing = [t for t in REQUIRED_TABLES if t not in tables]
        if missing:
            return {"status": "not_initialized", "path": str(db_path), "missing_tables": missing}
        counts = dict(conn.execute(
            "SELECT origin, COUNT(*) FROM stock_units WHERE is_active = TRUE GROUP BY origin"
        ).fetchall())
    return {
        "status": "ok",
        "path": str(db_path),
        "active_units": {"manual": counts.get("manual", 0), "csv": counts.get("csv", 0)},
    }


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Database state, active unit counts per origin, data directory and the
    import limits currently in effect.
    """
    config = get_config()
    checks: Dict[str, Any] = {}
    status = "healthy"

    try:
        checks["database"] = _database_check()
    except sqlite3.Error as e:
        checks["database"] = {"status": "error", "error": str(e)}
        status = "unhealthy"

    data_dir = Path(config.storage.data_dir)
    checks["data_dir"] = {
        "path": str(data_dir),
        "writable": data_dir.exists() and os.access(data_dir, os.W_OK),
    }
    checks["imports"] = {
        "max_file_bytes": config.imports.max_file_bytes,
        "max_rows": config.imports.max_rows,
        "default_location": config.imports.default_location,
    }

    return HealthResponse(status=status, version=APP_VERSION, started_at=STARTED_AT, checks=checks)


@router.get("/ready")
async def readiness_check():
    """Ready once the schema exists; 503 otherwise."""
    try:
        ready = _database_check()["status"] == "ok"
    except sqlite3.Error:
        ready = False
    return JSONResponse(status_code=200 if ready else 503, content={"ready": ready})


@router.get("/live")
async def liveness_check():
    return {"alive": True}
