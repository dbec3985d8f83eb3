"""Read-only views over CSV import batches."""
from typing import Any, Dict, List, Optional, Tuple

from api.models import StockOrigin, StockUnit, StockUnitRepository
from services.errors import NotFoundError
from services.stock_service import pagination


def list_batches(page: int = 1, limit: int = 20) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    """
    Summaries of every import batch, newest import first.

    Each summary carries counts by status plus the distinct models and
    locations seen in the batch.
    """
    page = max(page, 1)
    summaries = StockUnitRepository.summarize_batches(limit=limit, offset=(page - 1) * limit)
    for summary in summaries:
        summary["models"] = StockUnitRepository.distinct_values(summary["batch_id"], "model_name")
        summary["locations"] = StockUnitRepository.distinct_values(summary["batch_id"], "location")
    return summaries, pagination(page, limit, StockUnitRepository.count_batches())


def get_batch_stocks(batch_id: str, status: Optional[str] = None, page: int = 1,
                     limit: int = 50) -> Tuple[List[StockUnit], Dict[str, int]]:
    """Units of one batch in creation order. Raises NotFoundError for unknown batches."""
    page = max(page, 1)
    units, total = StockUnitRepository.list_units(
        origin=StockOrigin.CSV.value, batch_id=batch_id, status=status,
        include_inactive=True, limit=limit, offset=(page - 1) * limit, oldest_first=True,
    )
    if total == 0:
        if status is None or not _batch_exists(batch_id):
            raise NotFoundError(f"No stocks found for batch {batch_id}")
    return units, pagination(page, limit, total)


def _batch_exists(batch_id: str) -> bool:
    _, total = StockUnitRepository.list_units(
        origin=StockOrigin.CSV.value, batch_id=batch_id, include_inactive=True, limit=1,
    )
    return total > 0
