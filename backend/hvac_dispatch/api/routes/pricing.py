"""
Pricing API routes: service price list, price changes and fee quotes.
"""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from hvac_dispatch.api.dependencies import get_pricing_service
from hvac_dispatch.models.bookings import ServiceType
from hvac_dispatch.services.pricing_service import (
    CartItem,
    PricingService,
    calculate_pricing_impact,
    cart_total,
    resolve_pricing,
)


# Pydantic schemas
class PricingUpdateRequest(BaseModel):
    prices: Dict[ServiceType, float]
    admin_id: str = Field(..., min_length=1)
    admin_name: str = Field(..., min_length=1)


class PriceChangeResponse(BaseModel):
    id: UUID
    service_type: str
    old_price: float
    new_price: float
    change_percentage: Optional[float] = None
    message: str
    created_by: str
    created_at: datetime
    
    model_config = {"from_attributes": True}


class PricingImpactResponse(BaseModel):
    service_type: ServiceType
    old_price: float
    new_price: float
    change_amount: float
    change_percentage: Optional[float] = None
    customer_impact: str
    technician_impact: str
    
    model_config = {"from_attributes": True}


class PricingUpdateResponse(BaseModel):
    pricing: Dict[ServiceType, float]
    notifications: List[PriceChangeResponse]
    impact: List[PricingImpactResponse]


class QuoteRequest(BaseModel):
    base_price: float


class QuoteResponse(BaseModel):
    base_price: float
    service_fee: float
    maintenance_fee: float
    total_price: float
    
    model_config = {"from_attributes": True}


class CartItemRequest(BaseModel):
    base_price: float
    quantity: int = Field(1, ge=0)


class CartTotalRequest(BaseModel):
    items: List[CartItemRequest]


class CartTotalResponse(BaseModel):
    item_count: int
    total: float


# Router
router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get("", response_model=Dict[ServiceType, float])
def get_pricing(service: PricingService = Depends(get_pricing_service)) -> Dict[ServiceType, float]:
    """Current price per service type (GHS)."""
    return service.get_current_pricing()


@router.put("", response_model=PricingUpdateResponse)
def update_pricing(
    body: PricingUpdateRequest,
    service: PricingService = Depends(get_pricing_service),
) -> PricingUpdateResponse:
    """
    Update service prices.
    
    A change notice is recorded for every service whose price moved.
    Existing bookings keep the price agreed when they were made.
    """
    old_pricing = service.get_current_pricing()
    notifications = service.update_service_pricing(body.prices, body.admin_id, body.admin_name)
    new_pricing = service.get_current_pricing()
    
    return PricingUpdateResponse(
        pricing=new_pricing,
        notifications=[PriceChangeResponse.model_validate(n) for n in notifications],
        impact=[
            PricingImpactResponse.model_validate(impact)
            for impact in calculate_pricing_impact(old_pricing, new_pricing, service.rules)
        ],
    )


@router.get("/notifications", response_model=List[PriceChangeResponse])
def list_price_notifications(service: PricingService = Depends(get_pricing_service)):
    return service.get_active_price_notifications()


@router.post("/quote", response_model=QuoteResponse)
def quote(body: QuoteRequest, service: PricingService = Depends(get_pricing_service)) -> QuoteResponse:
    """Service fee, maintenance fee and total for one base price."""
    return QuoteResponse.model_validate(resolve_pricing(body.base_price, service.rules))


@router.post("/cart-total", response_model=CartTotalResponse)
def get_cart_total(
    body: CartTotalRequest,
    service: PricingService = Depends(get_pricing_service),
) -> CartTotalResponse:
    items = [CartItem(base_price=item.base_price, quantity=item.quantity) for item in body.items]
    return CartTotalResponse(
        item_count=sum(item.quantity for item in items),
        total=cart_total(items, service.rules),
    )
