"""Customer vehicle lookups (records are created by stock assignment)."""

from typing import Optional, List, Dict, Any
from fastapi import APIRouter
from pydantic import Field

from api.models import CustomerVehicleRepository
from api.routes.stock import CamelModel
from services.errors import NotFoundError


router = APIRouter(prefix="/api/customer-vehicles", tags=["Customer Vehicles"])


class RtoInfo(CamelModel):
    rto_code: str
    rto_name: str
    rto_address: str
    state: str


class CustomerVehicleResponse(CamelModel):
    """Customer vehicle response."""
    id: int
    stock_id: str
    customer_id: int
    model_name: Optional[str] = None
    color: Optional[str] = None
    registration_date: Optional[str] = None
    purchase_date: Optional[str] = None
    number_plate: Optional[str] = None
    registered_owner_name: Optional[str] = None
    is_paid: bool = False
    is_finance: bool = False
    insurance: bool = False
    rto_info: Optional[RtoInfo] = None
    active_value_added_services: List[Dict[str, Any]] = Field(default_factory=list)
    is_active: bool = True
    created_at: Optional[str] = None


@router.get("/{vehicle_id}", response_model=CustomerVehicleResponse)
async def get_customer_vehicle(vehicle_id: int):
    """Get a customer vehicle by ID."""
    vehicle = CustomerVehicleRepository.get_by_id(vehicle_id)
    if not vehicle:
        raise NotFoundError(f"Customer vehicle {vehicle_id} not found")
    return CustomerVehicleResponse.model_validate(vehicle.__dict__)
