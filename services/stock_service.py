"""
Stock unit lifecycle operations.

Manual stock creation, lookups, administrative status/location updates
and soft deletion. Moves into and out of Sold are owned by
services.stock_assignment and are rejected here.
"""
import logging
import sqlite3
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from api.audit_log import AuditEventType, AuditLogRepository
from api.database import transaction
from api.models import (
    ALLOWED_STATUSES,
    STOCK_ID_PREFIX,
    BranchRepository,
    StockLocation,
    StockOrigin,
    StockStatus,
    StockUnit,
    StockUnitRepository,
    utc_now,
)
from core.config import get_config
from core.logging_config import LogContext, current_request_id
from services.errors import (
    DuplicateUnitError,
    NotFoundError,
    RowValidationError,
    StateConflictError,
)

logger = logging.getLogger(__name__)


def generate_stock_id(origin: StockOrigin) -> str:
    """<PREFIX>-<unixMillis>-<count of that origin + 1, 4 digits>."""
    sequence = StockUnitRepository.count_by_origin(origin) + 1
    return f"{STOCK_ID_PREFIX[origin]}-{int(time.time() * 1000)}-{sequence:04d}"


def default_location(origin: StockOrigin) -> str:
    if origin == StockOrigin.CSV:
        return get_config().imports.default_location
    return StockLocation.WAREHOUSE.value


def _audit(event_type: AuditEventType, actor_id: str, stock_id: str, **metadata) -> None:
    AuditLogRepository.create(
        event_type=event_type,
        actor_id=actor_id,
        stock_id=stock_id,
        request_id=current_request_id.get() or None,
        metadata=metadata or None,
    )


# =============================================================================
# MANUAL CREATION
# =============================================================================

@dataclass
class ManualStockInput:
    """Fields accepted for a manually entered unit."""
    model_name: str
    engine_number: str
    chassis_number: str
    color: str
    branch_id: int
    ex_showroom_price: float
    variant: Optional[str] = None
    year_of_manufacture: Optional[int] = None
    engine_type: Optional[str] = None
    road_tax: float = 0
    insurance: float = 0
    additional_charges: float = 0
    discount: float = 0
    location: str = StockLocation.WAREHOUSE.value


def compute_price_info(data: ManualStockInput) -> Dict[str, float]:
    """Derive on-road and final prices from the price components."""
    components = {
        "ex_showroom_price": data.ex_showroom_price,
        "road_tax": data.road_tax or 0,
        "insurance": data.insurance or 0,
        "additional_charges": data.additional_charges or 0,
        "discount": data.discount or 0,
    }
    negative = [name for name, value in components.items() if value < 0]
    if negative:
        raise RowValidationError(f"Prices must not be negative: {', '.join(negative)}")

    on_road_price = (
        components["ex_showroom_price"]
        + components["road_tax"]
        + components["insurance"]
        + components["additional_charges"]
    )
    final_price = on_road_price - components["discount"]
    if final_price < 0:
        raise RowValidationError("Discount exceeds on-road price")

    return {**components, "on_road_price": on_road_price, "final_price": final_price}


def create_manual_stock(data: ManualStockInput, actor_id: str) -> StockUnit:
    """
    Create a manual-origin unit.

    Raises:
        RowValidationError: Missing identifiers, bad location or prices
        NotFoundError: Unknown branch
        DuplicateUnitError: Engine or chassis already registered in either origin
    """
    engine = (data.engine_number or "").strip().upper()
    chassis = (data.chassis_number or "").strip().upper()
    if not engine or not chassis:
        raise RowValidationError("Engine/Chassis number missing")

    allowed_locations = [loc.value for loc in StockLocation]
    if data.location not in allowed_locations:
        raise RowValidationError(
            f"Invalid location: {data.location}. Allowed: {', '.join(allowed_locations)}"
        )

    price_info = compute_price_info(data)

    if BranchRepository.get_by_id(data.branch_id) is None:
        raise NotFoundError(f"Branch {data.branch_id} not found")

    if StockUnitRepository.exists_by_engine_or_chassis(engine, chassis):
        raise DuplicateUnitError(f"Duplicate: {engine or chassis}")

    stock_id = generate_stock_id(StockOrigin.MANUAL)
    try:
        StockUnitRepository.create(
            stock_id=stock_id,
            origin=StockOrigin.MANUAL,
            engine_number=engine,
            chassis_number=chassis,
            location=data.location,
            updated_by=actor_id,
            model_name=data.model_name,
            color=data.color,
            variant=data.variant,
            year_of_manufacture=data.year_of_manufacture,
            engine_type=data.engine_type,
            branch_id=data.branch_id,
            price_info=price_info,
        )
    except sqlite3.IntegrityError:
        raise DuplicateUnitError(f"Duplicate: {engine or chassis}")

    with LogContext(actor_id=actor_id, stock_id=stock_id):
        logger.info(f"Stock item created: {stock_id} by {actor_id}")
    _audit(AuditEventType.STOCK_CREATE, actor_id, stock_id,
           engine_number=engine, chassis_number=chassis, final_price=price_info["final_price"])

    return StockUnitRepository.get_by_stock_id(stock_id)


# =============================================================================
# QUERIES
# =============================================================================

def get_stock(stock_id: str) -> StockUnit:
    unit = StockUnitRepository.get_by_stock_id(stock_id)
    if unit is None:
        raise NotFoundError(f"Stock item {stock_id} not found")
    return unit


def list_stock(origin: Optional[str] = None, status: Optional[str] = None,
               location: Optional[str] = None, branch_id: Optional[int] = None,
               batch_id: Optional[str] = None, search: Optional[str] = None,
               page: int = 1, limit: int = 20) -> Tuple[List[StockUnit], Dict[str, Any]]:
    """Active units matching the filters, newest first, with pagination info."""
    page = max(page, 1)
    units, total = StockUnitRepository.list_units(
        origin=origin, status=status, location=location, branch_id=branch_id,
        batch_id=batch_id, search=search, limit=limit, offset=(page - 1) * limit,
    )
    return units, pagination(page, limit, total)


def pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if limit else 0,
    }


# =============================================================================
# ADMINISTRATIVE UPDATES
# =============================================================================

def update_status(stock_id: str, actor_id: str, status: Optional[str] = None,
                  location: Optional[str] = None) -> StockUnit:
    """
    Change status and/or location of an unsold unit.

    Status is checked against the unit's origin. CSV locations are free
    text stored uppercase; manual locations must be one of StockLocation.
    """
    unit = get_stock(stock_id)
    if not unit.is_active:
        raise StateConflictError(f"Stock item {stock_id} has been deleted")

    origin = StockOrigin(unit.origin)
    changes: Dict[str, Any] = {}

    if status is not None:
        allowed = ALLOWED_STATUSES[origin]
        if status not in allowed:
            raise RowValidationError(f"Invalid status: {status}. Allowed: {', '.join(allowed)}")
        if status != unit.status and StockStatus.SOLD.value in (status, unit.status):
            raise StateConflictError("Use assign/unassign to move stock into or out of Sold")
        changes["status"] = status

    if location is not None:
        if origin == StockOrigin.CSV:
            location = location.strip().upper()
            if not location:
                raise RowValidationError("Location must not be empty")
        else:
            allowed_locations = [loc.value for loc in StockLocation]
            if location not in allowed_locations:
                raise RowValidationError(
                    f"Invalid location: {location}. Allowed: {', '.join(allowed_locations)}"
                )
        changes["location"] = location

    if not changes:
        raise RowValidationError("Nothing to update: provide status or location")

    new_status = StockStatus(changes.pop("status", unit.status))
    with transaction() as conn:
        # Guarded on the status we validated against
        updated = StockUnitRepository.transition_status(
            conn, stock_id, StockStatus(unit.status), new_status,
            last_updated=utc_now(), updated_by=actor_id, **changes,
        )
    if not updated:
        raise StateConflictError(f"Stock item {stock_id} was modified concurrently, retry")

    with LogContext(actor_id=actor_id, stock_id=stock_id):
        logger.info(f"Stock item {stock_id} updated: status={new_status.value} location={location}")
    _audit(AuditEventType.STATUS_UPDATE, actor_id, stock_id,
           previous_status=unit.status, status=new_status.value,
           previous_location=unit.location, location=changes.get("location", unit.location))

    return get_stock(stock_id)


def soft_delete(stock_id: str, actor_id: str) -> StockUnit:
    """Mark a unit inactive. Sold units cannot be deleted."""
    unit = get_stock(stock_id)
    if unit.is_sold:
        raise StateConflictError("Cannot delete sold stock")
    if not unit.is_active:
        return unit

    current = StockStatus(unit.status)
    with transaction() as conn:
        deleted = StockUnitRepository.transition_status(
            conn, stock_id, current, current,
            is_active=False, last_updated=utc_now(), updated_by=actor_id,
        )
    if not deleted:
        raise StateConflictError(f"Stock item {stock_id} was modified concurrently, retry")

    with LogContext(actor_id=actor_id, stock_id=stock_id):
        logger.info(f"Stock item {stock_id} soft-deleted by {actor_id}")
    _audit(AuditEventType.SOFT_DELETE, actor_id, stock_id, status=unit.status)

    return get_stock(stock_id)
