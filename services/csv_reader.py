"""Read uploaded CSV files into header-keyed rows."""
import csv
import io
import logging
from typing import Dict, List, Optional

from services.errors import StockError

logger = logging.getLogger(__name__)


class CSVReadError(StockError):
    """Uploaded file is empty, undecodable or not tabular."""
    status_code = 400


def read_csv_rows(content: bytes, max_rows: Optional[int] = None) -> List[Dict[str, str]]:
    """
    Parse CSV bytes into a list of dicts keyed by header.

    Headers and values are trimmed, blank lines and rows whose every
    value is empty are skipped. A UTF-8 BOM is tolerated.

    Raises:
        CSVReadError: On empty/undecodable input or too many rows
    """
    if not content or not content.strip():
        raise CSVReadError("Uploaded file is empty")

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise CSVReadError("File must be UTF-8 encoded CSV")

    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        header = next(reader)
    except StopIteration:
        raise CSVReadError("Uploaded file is empty")
    except csv.Error as e:
        raise CSVReadError(f"Malformed CSV: {e}")

    header = [h.strip() for h in header]
    if not any(header):
        raise CSVReadError("CSV header row is empty")

    rows: List[Dict[str, str]] = []
    try:
        for values in reader:
            values = [v.strip() for v in values]
            if not any(values):
                continue
            # Short rows pad with empty strings, extra cells are dropped
            values += [""] * (len(header) - len(values))
            rows.append(dict(zip(header, values)))
            if max_rows is not None and len(rows) > max_rows:
                raise CSVReadError(f"CSV exceeds the maximum of {max_rows} rows")
    except csv.Error as e:
        raise CSVReadError(f"Malformed CSV at line {reader.line_num}: {e}")

    logger.debug(f"Read {len(rows)} rows with {len(header)} columns")
    return rows
