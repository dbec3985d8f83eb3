"""
Assignment (sale) and unassignment (reversal) of stock units.

Assignment links an Available unit to a customer through a new
CustomerVehicle record and moves it to Sold. Unassignment reverses
that link. Both run inside one BEGIN IMMEDIATE transaction with a
status-guarded update, so two concurrent assignments of the same unit
cannot both succeed.

Sales history is append-only:
- assigning a unit that still carries sales_info appends it as
  "Ownership Transfer"
- unassigning appends the reversed sale as "New Sale" with
  reversed_at/reversal_reason
"""
import logging
import re
import sqlite3
from dataclasses import dataclass
from typing import Dict, Optional

from api.audit_log import AuditEventType, AuditLogRepository
from api.database import transaction
from api.models import (
    CustomerRepository,
    CustomerVehicle,
    CustomerVehicleRepository,
    PaymentStatus,
    SalesHistoryEntry,
    SalesInfo,
    StockLocation,
    StockOrigin,
    StockStatus,
    StockUnit,
    StockUnitRepository,
    TransferType,
    utc_now,
)
from core.logging_config import LogContext, current_request_id
from services.errors import NotFoundError, RowValidationError, StateConflictError
from services.stock_service import default_location, get_stock

logger = logging.getLogger(__name__)

NUMBER_PLATE_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z]{1,2}[0-9]{4}$")
DEFAULT_STATE = "AS"


@dataclass
class AssignmentRequest:
    """Sale details for assigning a unit to a customer."""
    stock_id: str
    customer_id: int
    sale_price: float
    invoice_number: str
    payment_status: str = PaymentStatus.PENDING.value
    number_plate: Optional[str] = None
    registration_date: Optional[str] = None
    registered_owner_name: Optional[str] = None
    rto_name: Optional[str] = None
    rto_address: Optional[str] = None
    state: str = DEFAULT_STATE
    insurance: bool = False
    is_paid: bool = False
    is_finance: bool = False


@dataclass
class AssignmentResult:
    stock: StockUnit
    customer_vehicle: CustomerVehicle


def normalize_number_plate(number_plate: Optional[str]) -> Optional[str]:
    """Uppercase and strip spaces; None when blank. Raises on bad format."""
    if not number_plate:
        return None
    plate = re.sub(r"\s+", "", number_plate).upper()
    if not plate:
        return None
    if not NUMBER_PLATE_PATTERN.match(plate):
        raise RowValidationError(f"Invalid number plate format: {number_plate}")
    return plate


def derive_rto_info(number_plate: Optional[str], rto_name: Optional[str] = None,
                    rto_address: Optional[str] = None,
                    state: Optional[str] = DEFAULT_STATE) -> Optional[Dict[str, str]]:
    """RTO block derived from the plate prefix; None without a plate."""
    if not number_plate:
        return None
    state = state or DEFAULT_STATE
    rto_code = number_plate[:4].upper()
    return {
        "rto_code": rto_code,
        "rto_name": rto_name or f"RTO {rto_code}",
        "rto_address": rto_address or f"RTO Office, {state}",
        "state": state,
    }


def _validate_request(request: AssignmentRequest) -> None:
    if request.sale_price is None or request.sale_price <= 0:
        raise RowValidationError("Sale price must be greater than zero")
    if not request.invoice_number or not request.invoice_number.strip():
        raise RowValidationError("Invoice number is required")
    allowed = [p.value for p in PaymentStatus]
    if request.payment_status not in allowed:
        raise RowValidationError(
            f"Invalid payment status: {request.payment_status}. Allowed: {', '.join(allowed)}"
        )


def _vehicle_conflict_message(error: sqlite3.IntegrityError, request: AssignmentRequest,
                              plate: Optional[str]) -> str:
    if "number_plate" in str(error):
        return f"Number plate {plate} is already registered"
    return f"Customer {request.customer_id} already owns a vehicle"


def assign_stock(request: AssignmentRequest, actor_id: str) -> AssignmentResult:
    """
    Assign an Available unit to a customer.

    Raises:
        RowValidationError: Bad price, invoice, payment status or plate
        NotFoundError: Unknown stock unit or customer
        StateConflictError: Unit not Available (or lost a race), customer
            already owns a vehicle, or plate already registered
    """
    _validate_request(request)
    plate = normalize_number_plate(request.number_plate)

    unit = get_stock(request.stock_id)
    customer = CustomerRepository.get_by_id(request.customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {request.customer_id} not found")
    if not unit.is_active or unit.status != StockStatus.AVAILABLE.value:
        raise StateConflictError("Stock item is not available for sale")

    rto_info = derive_rto_info(plate, request.rto_name, request.rto_address, request.state)
    now = utc_now()

    with transaction() as conn:
        claimed = StockUnitRepository.transition_status(
            conn, unit.stock_id, StockStatus.AVAILABLE, StockStatus.SOLD,
            location=StockLocation.CUSTOMER.value,
            last_updated=now,
            updated_by=actor_id,
        )
        if not claimed:
            raise StateConflictError("Stock item is not available for sale")

        try:
            vehicle_id = CustomerVehicleRepository.create(
                conn,
                stock_id=unit.stock_id,
                customer_id=customer.id,
                model_name=unit.model_name,
                color=unit.color,
                registration_date=request.registration_date,
                purchase_date=now,
                number_plate=plate,
                registered_owner_name=request.registered_owner_name,
                is_paid=request.is_paid,
                is_finance=request.is_finance,
                insurance=request.insurance,
                rto_info=rto_info,
            )
        except sqlite3.IntegrityError as e:
            raise StateConflictError(_vehicle_conflict_message(e, request, plate))

        current = StockUnitRepository.get_by_stock_id(unit.stock_id, conn=conn)
        history = list(current.sales_history)
        if current.sales_info is not None:
            history.append(SalesHistoryEntry.from_sales_info(
                current.sales_info, TransferType.OWNERSHIP_TRANSFER,
            ))

        StockUnitRepository.update(
            unit.stock_id,
            conn=conn,
            sales_info=SalesInfo(
                sold_to=customer.id,
                sold_date=now,
                sale_price=request.sale_price,
                invoice_number=request.invoice_number.strip(),
                payment_status=request.payment_status,
                customer_vehicle_id=vehicle_id,
            ),
            sales_history=history,
        )

    with LogContext(actor_id=actor_id, stock_id=unit.stock_id):
        logger.info(
            f"Stock item {unit.stock_id} assigned to customer {customer.phone_number} by {actor_id}"
        )
    AuditLogRepository.create(
        event_type=AuditEventType.ASSIGN,
        actor_id=actor_id,
        stock_id=unit.stock_id,
        request_id=current_request_id.get() or None,
        metadata={
            "customer_id": customer.id,
            "customer_phone": customer.phone_number,
            "customer_vehicle_id": vehicle_id,
            "sale_price": request.sale_price,
            "invoice_number": request.invoice_number,
            "payment_status": request.payment_status,
        },
    )

    return AssignmentResult(
        stock=get_stock(unit.stock_id),
        customer_vehicle=CustomerVehicleRepository.get_by_id(vehicle_id),
    )


def unassign_stock(stock_id: str, actor_id: str, reason: Optional[str] = None) -> StockUnit:
    """
    Reverse the current sale of a Sold unit.

    Deletes the linked customer vehicle, appends the reversed sale to the
    history, and returns the unit to Available at its origin's default
    location.

    Raises:
        NotFoundError: Unknown stock unit
        StateConflictError: Unit is not Sold
    """
    unit = get_stock(stock_id)
    if unit.status != StockStatus.SOLD.value:
        raise StateConflictError("Stock not assigned")

    now = utc_now()
    with transaction() as conn:
        current = StockUnitRepository.get_by_stock_id(stock_id, conn=conn)
        history = list(current.sales_history)
        vehicle_id = None
        if current.sales_info is not None:
            vehicle_id = current.sales_info.customer_vehicle_id
            history.append(SalesHistoryEntry.from_sales_info(
                current.sales_info, TransferType.NEW_SALE,
                reversed_at=now, reversal_reason=reason,
            ))

        released = StockUnitRepository.transition_status(
            conn, stock_id, StockStatus.SOLD, StockStatus.AVAILABLE,
            sales_info=None,
            sales_history=history,
            location=default_location(StockOrigin(current.origin)),
            last_updated=now,
            updated_by=actor_id,
        )
        if not released:
            raise StateConflictError("Stock not assigned")

        if vehicle_id is not None:
            CustomerVehicleRepository.delete(conn, vehicle_id)

    with LogContext(actor_id=actor_id, stock_id=stock_id):
        logger.info(f"Stock item {stock_id} unassigned by {actor_id}. Reason: {reason or 'n/a'}")
    AuditLogRepository.create(
        event_type=AuditEventType.UNASSIGN,
        actor_id=actor_id,
        stock_id=stock_id,
        request_id=current_request_id.get() or None,
        metadata={"reason": reason, "customer_vehicle_id": vehicle_id},
    )

    return get_stock(stock_id)
