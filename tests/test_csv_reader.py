"""Tests for CSV file reading."""

import pytest

from services.csv_reader import CSVReadError, read_csv_rows


class TestReadCsvRows:
    """Tests for read_csv_rows."""

    def test_basic_rows(self):
        """Rows are keyed by trimmed header names."""
        content = b" Model , Engine No \nPulsar , E1 \nApache,E2\n"
        rows = read_csv_rows(content)
        assert rows == [
            {"Model": "Pulsar", "Engine No": "E1"},
            {"Model": "Apache", "Engine No": "E2"},
        ]

    def test_utf8_bom_tolerated(self):
        """A BOM does not leak into the first header."""
        content = b"\xef\xbb\xbfModel,Color\nX,Red\n"
        rows = read_csv_rows(content)
        assert list(rows[0].keys()) == ["Model", "Color"]

    def test_blank_rows_skipped(self):
        """Blank lines and all-empty rows are skipped."""
        content = b"Model,Color\nX,Red\n\n , \nY,Blue\n"
        rows = read_csv_rows(content)
        assert [r["Model"] for r in rows] == ["X", "Y"]

    def test_short_rows_padded(self):
        """Missing trailing cells become empty strings."""
        rows = read_csv_rows(b"Model,Engine,Frame\nX,E1\n")
        assert rows == [{"Model": "X", "Engine": "E1", "Frame": ""}]

    def test_quoted_values(self):
        """Quoted values may contain commas."""
        rows = read_csv_rows(b'Model,Color\n"Pulsar, NS",Red\n')
        assert rows[0]["Model"] == "Pulsar, NS"

    def test_empty_content(self):
        """Empty uploads are rejected."""
        with pytest.raises(CSVReadError):
            read_csv_rows(b"")
        with pytest.raises(CSVReadError):
            read_csv_rows(b"   \n")

    def test_header_only_yields_no_rows(self):
        """A header without data is not an error here."""
        assert read_csv_rows(b"Model,Color\n") == []

    def test_non_utf8_rejected(self):
        """Undecodable bytes are reported."""
        with pytest.raises(CSVReadError, match="UTF-8"):
            read_csv_rows(b"Model,Color\n\xff\xfe,\x80\n")

    def test_max_rows(self):
        """More rows than allowed is an error."""
        content = b"Model\n" + b"".join(f"M{i}\n".encode() for i in range(4))
        assert len(read_csv_rows(content, max_rows=4)) == 4
        with pytest.raises(CSVReadError, match="maximum of 3 rows"):
            read_csv_rows(content, max_rows=3)

    def test_status_code(self):
        """Read errors map to 400."""
        assert CSVReadError("x").status_code == 400
