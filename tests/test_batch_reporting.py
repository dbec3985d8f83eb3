"""Tests for import batch summaries and batch listings."""

import pytest

from services.batch_reporting import get_batch_stocks, list_batches
from services.errors import NotFoundError
from services.stock_assignment import AssignmentRequest, assign_stock
from services.stock_service import soft_delete

HEADER = ["Model Variant", "Engine Number", "Frame Number", "Color", "LOCATION"]


class TestListBatches:
    """Tests for list_batches."""

    def test_empty(self):
        """No imports yet means no batches."""
        batches, page = list_batches()
        assert batches == []
        assert page["total"] == 0

    def test_summary_counts(self, import_csv, csv_bytes, make_customer):
        """Counts reflect the current status of each unit in the batch."""
        report = import_csv(csv_bytes, file_name="april.csv")
        assign_stock(AssignmentRequest(
            stock_id=report.created[0], customer_id=make_customer(),
            sale_price=95000, invoice_number="INV-9",
        ), actor_id="sales-1")

        batches, page = list_batches()

        assert page["total"] == 1
        summary = batches[0]
        assert summary["batch_id"] == report.batch_id
        assert summary["file_name"] == "april.csv"
        assert summary["total_stocks"] == 3
        assert summary["available_stocks"] == 2
        assert summary["sold_stocks"] == 1
        assert summary["import_date"]

    def test_models_and_locations(self, import_csv, csv_bytes):
        """Distinct models and locations are listed per batch."""
        import_csv(csv_bytes)
        summary = list_batches()[0][0]
        assert summary["models"] == ["Dominar 400", "Pulsar 150", "Pulsar 220"]
        assert summary["locations"] == ["GUWAHATI", "JORHAT", "WAREHOUSE"]

    def test_newest_first_and_paginated(self, import_csv, csv_builder):
        """Batches are ordered by import date, newest first."""
        first = import_csv(csv_builder(HEADER, [["A", "E1", "C1", "Red", ""]]))
        second = import_csv(csv_builder(HEADER, [["B", "E2", "C2", "Red", ""]]))
        third = import_csv(csv_builder(HEADER, [["C", "E3", "C3", "Red", ""]]))

        batches, page = list_batches(page=1, limit=2)
        assert [b["batch_id"] for b in batches] == [third.batch_id, second.batch_id]
        assert page == {"page": 1, "limit": 2, "total": 3, "pages": 2}

        batches, _ = list_batches(page=2, limit=2)
        assert [b["batch_id"] for b in batches] == [first.batch_id]

    def test_fully_failed_import_has_no_batch(self, import_csv, csv_bytes):
        """A batch exists only through its created units."""
        import_csv(csv_bytes)
        import_csv(csv_bytes)
        _, page = list_batches()
        assert page["total"] == 1

    def test_manual_units_excluded(self, make_manual_stock):
        """Manual units never appear as a batch."""
        make_manual_stock()
        assert list_batches()[0] == []


class TestGetBatchStocks:
    """Tests for get_batch_stocks."""

    def test_units_in_creation_order(self, import_csv, csv_bytes):
        """Units come back oldest first."""
        report = import_csv(csv_bytes)
        units, page = get_batch_stocks(report.batch_id)
        assert [u.stock_id for u in units] == report.created
        assert page["total"] == 3

    def test_status_filter(self, import_csv, csv_bytes, make_customer):
        """Filtering by status narrows the batch."""
        report = import_csv(csv_bytes)
        sold_id = report.created[1]
        assign_stock(AssignmentRequest(
            stock_id=sold_id, customer_id=make_customer(),
            sale_price=120000, invoice_number="INV-7",
        ), actor_id="sales-1")

        units, page = get_batch_stocks(report.batch_id, status="Sold")
        assert [u.stock_id for u in units] == [sold_id]
        assert page["total"] == 1

    def test_status_filter_with_no_matches(self, import_csv, csv_bytes):
        """An existing batch with no matching units returns an empty page."""
        report = import_csv(csv_bytes)
        units, page = get_batch_stocks(report.batch_id, status="Service")
        assert units == []
        assert page["total"] == 0

    def test_deleted_units_included(self, import_csv, csv_bytes):
        """Soft-deleted units still belong to their batch."""
        report = import_csv(csv_bytes)
        soft_delete(report.created[0], actor_id="admin")
        units, _ = get_batch_stocks(report.batch_id)
        assert len(units) == 3
        assert units[0].is_active is False

    def test_pagination(self, import_csv, csv_bytes):
        """Pages follow creation order."""
        report = import_csv(csv_bytes)
        units, page = get_batch_stocks(report.batch_id, page=2, limit=2)
        assert [u.stock_id for u in units] == [report.created[2]]
        assert page["pages"] == 2

    def test_unknown_batch(self):
        """Unknown batches raise NotFoundError."""
        with pytest.raises(NotFoundError, match="No stocks found for batch CSV-0-XXXXXX"):
            get_batch_stocks("CSV-0-XXXXXX")
