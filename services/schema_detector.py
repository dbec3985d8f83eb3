"""
CSV schema detection for stock imports.

Resolves the canonical stock fields from whatever header a dealer's
export happens to use. Matching is case-insensitive and exact; for
each field the aliases are tried in order and the first one present
in the header wins.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from services.errors import SchemaError

logger = logging.getLogger(__name__)


FIELD_ALIASES: Dict[str, List[str]] = {
    "model_name": ["Model Variant", "Model", "Variant", "Model Name"],
    "engine_number": ["Engine Number", "Engine No", "Engine"],
    "chassis_number": ["Frame Number", "Chassis Number", "Chassis", "Frame"],
    "color": ["Color", "Colour"],
    "location": ["LOCATION", "Location", "Branch"],
}

REQUIRED_FIELDS = ["model_name", "engine_number", "chassis_number", "color"]


@dataclass
class DetectedSchema:
    """Result of header detection."""
    columns: List[str]
    mappings: Dict[str, str]
    sample_data: List[Dict[str, str]] = field(default_factory=list)

    def column_for(self, field_name: str) -> Optional[str]:
        return self.mappings.get(field_name)

    def extract(self, row: Dict[str, str], field_name: str) -> str:
        """Value of a canonical field in a row, stripped; empty if unmapped."""
        column = self.mappings.get(field_name)
        if column is None:
            return ""
        value = row.get(column)
        return value.strip() if value else ""


def find_column(columns: List[str], aliases: List[str]) -> Optional[str]:
    """First column, in header order, whose name matches any alias (case-insensitive)."""
    wanted = {alias.lower() for alias in aliases}
    for column in columns:
        if column.strip().lower() in wanted:
            return column
    return None


def detect_schema(rows: List[Dict[str, str]], sample_size: int = 3) -> DetectedSchema:
    """
    Detect the column mapping from parsed CSV rows.

    Args:
        rows: Parsed rows; the header is taken from the first row's keys
        sample_size: Number of leading rows echoed back as sample data

    Returns:
        DetectedSchema with all columns, resolved mappings and sample rows

    Raises:
        SchemaError: If there are no rows or any required field is unresolved
    """
    if not rows:
        raise SchemaError("No records to analyze")

    columns = list(rows[0].keys())
    mappings: Dict[str, str] = {}
    for field_name, aliases in FIELD_ALIASES.items():
        column = find_column(columns, aliases)
        if column is not None:
            mappings[field_name] = column

    missing = [f for f in REQUIRED_FIELDS if f not in mappings]
    if missing:
        logger.warning(f"Schema detection failed, missing: {missing}; header: {columns}")
        raise SchemaError(f"Missing required columns: {', '.join(missing)}")

    logger.debug(f"Detected mappings: {mappings}")
    return DetectedSchema(
        columns=columns,
        mappings=mappings,
        sample_data=[dict(row) for row in rows[:sample_size]],
    )
