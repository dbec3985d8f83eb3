"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import tempfile
from pathlib import Path

# Set environment variables BEFORE any imports that might use them
TEST_DATA_DIR = tempfile.mkdtemp()

os.environ["DATABASE_PATH"] = os.path.join(TEST_DATA_DIR, "session.db")
os.environ["DATA_DIR"] = TEST_DATA_DIR
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_FORMAT"] = "text"

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def test_db(tmp_path, monkeypatch):
    """Fresh SQLite database per test."""
    from core.config import reset_config
    from api.models import init_schema

    db_path = tmp_path / "dealership.db"
    monkeypatch.setenv("DATABASE_PATH", str(db_path))
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    reset_config()
    init_schema()
    yield db_path
    reset_config()


@pytest.fixture
def app():
    """FastAPI application."""
    from api.main import app

    return app


@pytest.fixture
def client(app):
    """Test client with lifespan (tables are created on startup)."""
    from fastapi.testclient import TestClient

    with TestClient(app) as client:
        yield client


@pytest.fixture
def db_connection():
    """Get database connection for test assertions."""
    from api.database import get_connection

    with get_connection() as conn:
        yield conn


@pytest.fixture
def branch_id():
    """A branch to import stock into."""
    from api.models import BranchRepository

    return BranchRepository.create("Main Showroom", address="GS Road, Guwahati")


@pytest.fixture
def make_customer():
    """Factory for customers with unique phone numbers."""
    from api.models import CustomerRepository

    counter = {"n": 0}

    def _make(full_name: str = None) -> int:
        counter["n"] += 1
        return CustomerRepository.create(
            phone_number=f"98640{counter['n']:05d}",
            full_name=full_name or f"Customer {counter['n']}",
        )

    return _make


@pytest.fixture
def make_manual_stock(branch_id):
    """Factory for manually entered stock units."""
    from services.stock_service import ManualStockInput, create_manual_stock

    counter = {"n": 0}

    def _make(engine_number: str = None, chassis_number: str = None, **overrides):
        counter["n"] += 1
        data = ManualStockInput(
            model_name=overrides.pop("model_name", "Classic 350"),
            engine_number=engine_number or f"ENG-M{counter['n']:04d}",
            chassis_number=chassis_number or f"CHS-M{counter['n']:04d}",
            color=overrides.pop("color", "Black"),
            branch_id=overrides.pop("branch_id", branch_id),
            ex_showroom_price=overrides.pop("ex_showroom_price", 190000),
            **overrides,
        )
        return create_manual_stock(data, actor_id="tester")

    return _make


def build_csv(header, rows) -> bytes:
    """Build CSV bytes from a header list and row lists."""
    lines = [",".join(header)]
    lines.extend(",".join(row) for row in rows)
    return ("\n".join(lines) + "\n").encode("utf-8")


STANDARD_HEADER = ["Model Variant", "Engine Number", "Frame Number", "Color", "LOCATION"]


@pytest.fixture
def csv_bytes():
    """Three valid rows in the common dealer export layout."""
    return build_csv(STANDARD_HEADER, [
        ["Pulsar 150", "eng001", "chs001", "Red", "guwahati"],
        ["Pulsar 220", "ENG002", "CHS002", "Blue", ""],
        ["Dominar 400", "ENG003", "CHS003", "Green", "Jorhat"],
    ])


@pytest.fixture
def import_csv(branch_id):
    """Run the ingestion pipeline on CSV bytes."""
    from services.stock_ingestion import StockIngestionPipeline

    def _import(content: bytes, file_name: str = "stock.csv", actor_id: str = "importer"):
        return StockIngestionPipeline().run(content, file_name, branch_id, actor_id)

    return _import


@pytest.fixture
def csv_builder():
    """Expose build_csv to tests."""
    return build_csv
