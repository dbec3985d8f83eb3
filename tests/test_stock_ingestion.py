"""Tests for the CSV stock ingestion pipeline."""

import re

import pytest

from api.audit_log import AuditEventType, AuditLogRepository
from api.models import StockOrigin, StockUnitRepository
from services.errors import NotFoundError, SchemaError, StockError
from services.schema_detector import detect_schema
from services.stock_ingestion import StockIngestionPipeline

STANDARD_COLUMNS = ["Model Variant", "Engine Number", "Frame Number", "Color", "LOCATION"]
HEADER = ["Model Variant", "Engine Number", "Frame Number", "Color", "LOCATION", "Dealer Code"]


def _unit(stock_id):
    return StockUnitRepository.get_by_stock_id(stock_id)


class TestSuccessfulImport:
    """Tests for batches without row failures."""

    def test_all_rows_created(self, import_csv, csv_bytes):
        """Every valid row becomes an Available CSV-origin unit."""
        report = import_csv(csv_bytes)

        assert report.success is True
        assert report.total_rows == 3
        assert report.success_count == 3
        assert report.failure_count == 0
        assert report.errors == []
        assert len(report.created) == 3
        assert StockUnitRepository.count_by_origin(StockOrigin.CSV) == 3

    def test_identifiers_uppercased(self, import_csv, csv_bytes):
        """Engine and chassis numbers are stored uppercase."""
        report = import_csv(csv_bytes)
        first = _unit(report.created[0])
        assert first.engine_number == "ENG001"
        assert first.chassis_number == "CHS001"

    def test_location_uppercased_with_default(self, import_csv, csv_bytes):
        """Locations are uppercased; blanks fall back to WAREHOUSE."""
        report = import_csv(csv_bytes)
        assert [_unit(s).location for s in report.created] == ["GUWAHATI", "WAREHOUSE", "JORHAT"]

    def test_batch_metadata(self, import_csv, csv_bytes, branch_id):
        """Units carry batch, file, branch, actor and detected columns."""
        report = import_csv(csv_bytes, file_name="march.csv", actor_id="clerk-7")

        assert re.match(r"^CSV-\d{13}-[A-Z0-9]{6}$", report.batch_id)
        for stock_id in report.created:
            unit = _unit(stock_id)
            assert unit.origin == "csv"
            assert unit.status == "Available"
            assert unit.csv_import_batch == report.batch_id
            assert unit.csv_file_name == "march.csv"
            assert unit.branch_id == branch_id
            assert unit.updated_by == "clerk-7"
            assert unit.schema_version == 1
            assert unit.detected_columns == STANDARD_COLUMNS
        assert report.mappings["chassis_number"] == "Frame Number"

    def test_stock_ids_sequential(self, import_csv, csv_bytes):
        """Stock IDs use the CSV prefix and a running 4-digit sequence."""
        report = import_csv(csv_bytes)
        sequences = []
        for stock_id in report.created:
            match = re.match(r"^CSV-(\d{13})-(\d{4})$", stock_id)
            assert match
            sequences.append(match.group(2))
        assert sequences == ["0001", "0002", "0003"]

    def test_raw_row_preserved(self, import_csv, csv_builder):
        """Unmapped columns are kept verbatim in raw_row."""
        content = csv_builder(HEADER, [["Pulsar", "e1", "c1", "Red", "", "DLR-42"]])
        report = import_csv(content)
        raw = _unit(report.created[0]).raw_row
        assert raw["Dealer Code"] == "DLR-42"
        assert raw["Engine Number"] == "e1"

    def test_audit_event_per_unit(self, import_csv, csv_bytes):
        """Each created unit gets a CSV_IMPORT audit event."""
        report = import_csv(csv_bytes, actor_id="clerk-7")
        events = AuditLogRepository.get_by_batch(report.batch_id)
        assert len(events) == 3
        assert {e.event_type for e in events} == {AuditEventType.CSV_IMPORT.value}
        assert {e.actor_id for e in events} == {"clerk-7"}
        assert [e.stock_id for e in events] == report.created

    def test_report_lists_header_columns_and_stock_ids(self, import_csv, csv_builder):
        """detected_columns is the full header; created holds stock ids only."""
        header = ["Model Variant", "Engine Number", "Frame Number", "Color", "Extra"]
        report = import_csv(csv_builder(header, [["Pulsar", "e1", "c1", "Red", "x"]]))

        data = report.to_dict()
        assert data["detected_columns"] == header
        assert "Extra" not in data["mappings"].values()
        assert len(data["created"]) == 1
        assert isinstance(data["created"][0], str)
        assert data["created"][0] == _unit(data["created"][0]).stock_id


class TestRowFailures:
    """Tests for per-row error capture."""

    def test_blank_chassis_reported_with_row_offset(self, import_csv, csv_builder):
        """Row 2 of 3 with a blank chassis fails as line 3; others succeed."""
        content = csv_builder(HEADER[:5], [
            ["Pulsar", "E1", "C1", "Red", ""],
            ["Pulsar", "E2", "", "Red", ""],
            ["Pulsar", "E3", "C3", "Red", ""],
        ])
        report = import_csv(content)

        assert report.success is False
        assert report.success_count == 2
        assert report.failure_count == 1
        assert len(report.errors) == 1
        assert report.errors[0].row == 3
        assert report.errors[0].error == "Engine/Chassis number missing"
        assert report.errors[0].data["Engine Number"] == "E2"

    def test_duplicate_of_manual_unit(self, import_csv, csv_builder, make_manual_stock):
        """An engine number held by a manual unit fails the row."""
        make_manual_stock(engine_number="ENG777", chassis_number="CHS777")
        content = csv_builder(HEADER[:5], [["Pulsar", "eng777", "NEWCHS", "Red", ""]])

        report = import_csv(content)

        assert report.success_count == 0
        assert report.failure_count == 1
        assert report.errors[0].error == "Duplicate: ENG777"
        assert StockUnitRepository.count_by_origin(StockOrigin.CSV) == 0

    def test_duplicate_within_same_file(self, import_csv, csv_builder):
        """The second row with the same chassis fails; the first is kept."""
        content = csv_builder(HEADER[:5], [
            ["Pulsar", "E1", "SAME", "Red", ""],
            ["Pulsar", "E2", "same", "Red", ""],
        ])
        report = import_csv(content)
        assert report.success_count == 1
        assert report.errors[0].row == 3
        assert report.errors[0].error == "Duplicate: E2"

    def test_reimport_fails_every_row(self, import_csv, csv_bytes):
        """Importing the same file twice duplicates nothing."""
        import_csv(csv_bytes)
        report = import_csv(csv_bytes)
        assert report.success_count == 0
        assert report.failure_count == 3
        assert StockUnitRepository.count_by_origin(StockOrigin.CSV) == 3

    def test_counts_always_add_up(self, import_csv, csv_builder, make_manual_stock):
        """success_count + failure_count == total_rows for mixed input."""
        make_manual_stock(engine_number="TAKEN")
        content = csv_builder(HEADER[:5], [
            ["A", "E1", "C1", "Red", ""],
            ["B", "", "C2", "Red", ""],
            ["C", "TAKEN", "C3", "Red", ""],
            ["D", "E4", "C1", "Red", ""],
            ["E", "E5", "C5", "Red", ""],
        ])
        report = import_csv(content)
        assert report.success_count + report.failure_count == report.total_rows == 5
        assert report.success_count == 2
        assert [e.row for e in report.errors] == [3, 4, 5]

    def test_report_dict_shape(self, import_csv, csv_builder):
        """to_dict exposes the report fields."""
        content = csv_builder(HEADER[:5], [["A", "", "", "Red", ""]])
        data = import_csv(content).to_dict()
        assert data["success"] is False
        assert data["errors"] == [{
            "row": 2,
            "data": {"Model Variant": "A", "Engine Number": "", "Frame Number": "",
                     "Color": "Red", "LOCATION": ""},
            "error": "Engine/Chassis number missing",
        }]
        assert data["created"] == []
        assert data["detected_columns"] == ["Model Variant", "Engine Number", "Frame Number",
                                            "Color", "LOCATION"]
        assert data["mappings"]["engine_number"] == "Engine Number"


class TestPipelineFailures:
    """Tests for errors that abort the whole import."""

    def test_unresolved_schema_aborts(self, import_csv, csv_builder):
        """Missing required columns abort before any row is processed."""
        content = csv_builder(["Model", "Engine"], [["Pulsar", "E1"]])
        with pytest.raises(SchemaError, match="chassis_number, color"):
            import_csv(content)
        assert StockUnitRepository.count_by_origin(StockOrigin.CSV) == 0

    def test_missing_branch_id(self, csv_bytes):
        """A default branch is required."""
        with pytest.raises(StockError, match="defaultBranchId is required"):
            StockIngestionPipeline().run(csv_bytes, "stock.csv", None, "importer")

    def test_unknown_branch(self, csv_bytes):
        """The default branch must exist."""
        with pytest.raises(NotFoundError):
            StockIngestionPipeline().run(csv_bytes, "stock.csv", 999, "importer")

    def test_ingest_with_detected_schema(self, branch_id):
        """ingest() accepts rows and a schema detected separately."""
        rows = [{"Model": "X", "Engine No": "e9", "Chassis": "c9", "Colour": "Grey"}]
        schema = detect_schema(rows)
        report = StockIngestionPipeline().ingest(rows, schema, branch_id, "importer")
        assert report.success_count == 1
        unit = _unit(report.created[0])
        assert unit.color == "Grey"
        assert unit.location == "WAREHOUSE"
