"""
Stock Inventory API

Stock units of both origins:
- Manual creation with price computation
- Listing with filters and search
- Administrative status/location updates and soft delete
- Assignment to a customer and its reversal
- Per-unit audit trail

JSON bodies use camelCase; Python attributes stay snake_case.
"""

from typing import Optional, List, Dict, Any
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from api.audit_log import get_stock_audit_trail
from api.auth import get_actor_id
from api.models import PaymentStatus, StockLocation, StockUnit
from services import stock_service
from services.stock_assignment import AssignmentRequest, assign_stock, unassign_stock


router = APIRouter(prefix="/api/stock", tags=["Stock"])


# =============================================================================
# MODELS
# =============================================================================

class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PriceInfo(CamelModel):
    ex_showroom_price: float
    road_tax: float = 0
    insurance: float = 0
    additional_charges: float = 0
    on_road_price: float
    discount: float = 0
    final_price: float


class SalesInfoResponse(CamelModel):
    sold_to: int
    sold_date: str
    sale_price: float
    invoice_number: str
    payment_status: str
    customer_vehicle_id: Optional[int] = None


class SalesHistoryResponse(SalesInfoResponse):
    transfer_type: str
    recorded_at: str
    reversed_at: Optional[str] = None
    reversal_reason: Optional[str] = None


class StockUnitResponse(CamelModel):
    """Stock unit response (either origin)."""
    id: int
    stock_id: str
    origin: str
    model_name: Optional[str] = None
    color: Optional[str] = None
    variant: Optional[str] = None
    year_of_manufacture: Optional[int] = None
    engine_type: Optional[str] = None
    engine_number: str
    chassis_number: str
    status: str
    location: str
    branch_id: Optional[int] = None
    last_updated: Optional[str] = None
    updated_by: Optional[str] = None
    price_info: Optional[PriceInfo] = None
    sales_info: Optional[SalesInfoResponse] = None
    sales_history: List[SalesHistoryResponse] = Field(default_factory=list)
    csv_import_batch: Optional[str] = None
    csv_import_date: Optional[str] = None
    csv_file_name: Optional[str] = None
    raw_row: Optional[Dict[str, str]] = None
    detected_columns: Optional[List[str]] = None
    schema_version: Optional[int] = None
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_unit(cls, unit: StockUnit) -> "StockUnitResponse":
        return cls.model_validate(unit.to_dict())


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class StockListResponse(CamelModel):
    """Stock list response."""
    items: List[StockUnitResponse]
    pagination: Pagination


class ManualStockCreate(CamelModel):
    """Request to create a manually entered stock unit."""
    model_name: str = Field(..., min_length=1)
    engine_number: str = Field(..., min_length=1)
    chassis_number: str = Field(..., min_length=1)
    color: str = Field(..., min_length=1)
    branch_id: int
    ex_showroom_price: float = Field(..., ge=0)
    variant: Optional[str] = None
    year_of_manufacture: Optional[int] = Field(None, ge=1900, le=2100)
    engine_type: Optional[str] = None
    road_tax: float = Field(0, ge=0)
    insurance: float = Field(0, ge=0)
    additional_charges: float = Field(0, ge=0)
    discount: float = Field(0, ge=0)
    location: StockLocation = StockLocation.WAREHOUSE


class StatusUpdateRequest(CamelModel):
    """Administrative status and/or location change."""
    status: Optional[str] = None
    location: Optional[str] = None


class AssignRequest(CamelModel):
    """Request to assign a stock unit to a customer."""
    customer_id: int
    sale_price: float = Field(..., gt=0)
    invoice_number: str = Field(..., min_length=1)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    number_plate: Optional[str] = None
    registration_date: Optional[str] = None
    registered_owner_name: Optional[str] = None
    rto_name: Optional[str] = None
    rto_address: Optional[str] = None
    state: str = "AS"
    insurance: bool = False
    is_paid: bool = False
    is_finance: bool = False


class CustomerVehicleSummary(CamelModel):
    id: int
    model_name: Optional[str] = None
    number_plate: Optional[str] = None


class AssignResponse(CamelModel):
    message: str
    stock: StockUnitResponse
    customer_vehicle: CustomerVehicleSummary


class UnassignRequest(CamelModel):
    reason: Optional[str] = None


class UnassignResponse(CamelModel):
    message: str
    stock: StockUnitResponse
    reason: Optional[str] = None


class AuditEventResponse(CamelModel):
    id: int
    event_type: str
    stock_id: Optional[str] = None
    batch_id: Optional[str] = None
    actor_id: Optional[str] = None
    request_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None


# =============================================================================
# ROUTES
# =============================================================================

@router.post("/", response_model=StockUnitResponse, status_code=201)
async def create_stock(data: ManualStockCreate, actor_id: str = Depends(get_actor_id)):
    """
    Create a manually entered stock unit.

    Engine and chassis numbers are stored uppercase and must not exist
    in either origin. onRoadPrice and finalPrice are computed.
    """
    fields = data.model_dump()
    fields["location"] = data.location.value
    unit = stock_service.create_manual_stock(stock_service.ManualStockInput(**fields), actor_id)
    return StockUnitResponse.from_unit(unit)


@router.get("/", response_model=StockListResponse)
async def list_stock(
    origin: Optional[str] = Query(None, description="manual or csv"),
    status: Optional[str] = None,
    location: Optional[str] = None,
    branch_id: Optional[int] = Query(None, alias="branchId"),
    search: Optional[str] = Query(None, description="Stock ID, model, engine or chassis"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
):
    """List active stock units, newest first."""
    units, pagination = stock_service.list_stock(
        origin=origin, status=status, location=location, branch_id=branch_id,
        search=search, page=page, limit=limit,
    )
    return StockListResponse(
        items=[StockUnitResponse.from_unit(u) for u in units],
        pagination=Pagination(**pagination),
    )


@router.get("/{stock_id}", response_model=StockUnitResponse)
async def get_stock(stock_id: str):
    """Get a stock unit by stock ID."""
    return StockUnitResponse.from_unit(stock_service.get_stock(stock_id))


@router.patch("/{stock_id}/status", response_model=StockUnitResponse)
async def update_stock_status(
    stock_id: str,
    data: StatusUpdateRequest,
    actor_id: str = Depends(get_actor_id),
):
    """
    Update status and/or location.

    Moving into or out of Sold is only possible through assign/unassign.
    """
    unit = stock_service.update_status(
        stock_id, actor_id, status=data.status, location=data.location,
    )
    return StockUnitResponse.from_unit(unit)


@router.delete("/{stock_id}", response_model=StockUnitResponse)
async def delete_stock(stock_id: str, actor_id: str = Depends(get_actor_id)):
    """Soft delete a stock unit. Sold units cannot be deleted."""
    return StockUnitResponse.from_unit(stock_service.soft_delete(stock_id, actor_id))


@router.post("/{stock_id}/assign", response_model=AssignResponse)
async def assign(stock_id: str, data: AssignRequest, actor_id: str = Depends(get_actor_id)):
    """Assign an Available stock unit to a customer."""
    fields = data.model_dump()
    fields["payment_status"] = data.payment_status.value
    result = assign_stock(AssignmentRequest(stock_id=stock_id, **fields), actor_id)
    return AssignResponse(
        message="Stock item successfully assigned to customer",
        stock=StockUnitResponse.from_unit(result.stock),
        customer_vehicle=CustomerVehicleSummary(
            id=result.customer_vehicle.id,
            model_name=result.customer_vehicle.model_name,
            number_plate=result.customer_vehicle.number_plate,
        ),
    )


@router.post("/{stock_id}/unassign", response_model=UnassignResponse)
async def unassign(
    stock_id: str,
    data: Optional[UnassignRequest] = None,
    actor_id: str = Depends(get_actor_id),
):
    """Reverse the current sale and return the unit to Available."""
    reason = data.reason if data else None
    unit = unassign_stock(stock_id, actor_id, reason=reason)
    return UnassignResponse(
        message="Stock unassigned successfully",
        stock=StockUnitResponse.from_unit(unit),
        reason=reason,
    )


@router.get("/{stock_id}/audit", response_model=List[AuditEventResponse])
async def get_stock_audit(stock_id: str):
    """Audit trail for a stock unit, oldest first."""
    stock_service.get_stock(stock_id)
    return [AuditEventResponse.model_validate(e) for e in get_stock_audit_trail(stock_id)]
