"""
Booking API routes: creation, queries and lifecycle transitions.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from hvac_dispatch.api.dependencies import get_booking_service
from hvac_dispatch.models.bookings import BookingStatus, ServiceType, TimeSlot, PriorityLevel
from hvac_dispatch.services.booking_service import (
    BookingService,
    CompletionDetails,
    NewBooking,
    format_booking_number,
)


# Pydantic schemas
class BookingCreateRequest(BaseModel):
    customer_id: str = Field(..., min_length=1, max_length=128)
    customer_name: str = Field(..., min_length=1)
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    service_type: ServiceType
    service_details: Dict[str, Any] = Field(default_factory=dict)
    preferred_date: date
    preferred_time_slot: TimeSlot
    alternate_date: Optional[date] = None
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    location_notes: Optional[str] = None


class BookingResponse(BaseModel):
    id: UUID
    booking_number: str
    display_number: Optional[str] = None
    customer_id: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    service_type: ServiceType
    service_details: Dict[str, Any] = Field(default_factory=dict)
    agreed_price: float
    preferred_date: date
    preferred_time_slot: TimeSlot
    alternate_date: Optional[date] = None
    address: str
    city: str
    location_notes: Optional[str] = None
    technician_id: Optional[UUID] = None
    technician_name: Optional[str] = None
    technician_email: Optional[str] = None
    technician_phone: Optional[str] = None
    assigned_at: Optional[datetime] = None
    status: BookingStatus
    priority: PriorityLevel
    actual_start_time: Optional[datetime] = None
    final_cost: Optional[float] = None
    service_notes: Optional[str] = None
    labor_hours: Optional[float] = None
    before_photos: List[str] = Field(default_factory=list)
    after_photos: List[str] = Field(default_factory=list)
    customer_rating: Optional[int] = None
    customer_review: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    
    model_config = {"from_attributes": True}


class AssignRequest(BaseModel):
    technician_id: str


class StatusUpdateRequest(BaseModel):
    status: str


class CompletionRequest(BaseModel):
    final_cost: float
    service_notes: str = ""
    before_photos: Optional[List[str]] = None
    after_photos: Optional[List[str]] = None
    labor_hours: Optional[float] = None


class RevenueRecordResponse(BaseModel):
    id: UUID
    booking_id: UUID
    agreed_price: float
    final_cost: float
    commission_rate: float
    platform_commission: float
    technician_payout: float
    completed_at: datetime
    
    model_config = {"from_attributes": True}


class CompletionResponse(BaseModel):
    booking: BookingResponse
    revenue_record: RevenueRecordResponse


class ReviewRequest(BaseModel):
    rating: int
    review: Optional[str] = Field(None, max_length=2000)


def _to_response(booking) -> BookingResponse:
    response = BookingResponse.model_validate(booking)
    response.display_number = format_booking_number(booking.booking_number)
    return response


# Router
router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    body: BookingCreateRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Create a pending booking at the current price for its service type."""
    booking = service.create_booking(NewBooking(**body.model_dump()))
    return _to_response(booking)


@router.get("", response_model=List[BookingResponse])
def list_bookings(
    customer_id: Optional[str] = Query(None, description="Only this customer's bookings"),
    technician_id: Optional[str] = Query(None, description="Only bookings assigned to this technician"),
    status_filter: Optional[BookingStatus] = Query(None, alias="status", description="Only bookings in this status"),
    limit: int = Query(50, ge=1, le=500),
    service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    """
    List bookings.
    
    Query parameters:
    - customer_id: newest first
    - technician_id: earliest preferred date first
    - status: filter by booking status
    - limit: maximum rows (default 50)
    """
    if customer_id:
        bookings = service.list_customer_bookings(customer_id)
    elif technician_id:
        bookings = service.list_technician_bookings(technician_id)
    elif status_filter:
        bookings = service.list_bookings_by_status(status_filter)
    else:
        bookings = service.list_bookings(limit=limit)
    
    if status_filter and (customer_id or technician_id):
        bookings = [b for b in bookings if b.status == status_filter]
    return [_to_response(b) for b in bookings[:limit]]


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return _to_response(service.get_booking(booking_id))


@router.post("/{booking_id}/assign", response_model=BookingResponse)
def assign_technician(
    booking_id: str,
    body: AssignRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Assign (or reassign) a technician; the booking becomes confirmed."""
    return _to_response(service.assign_technician(booking_id, body.technician_id))


@router.patch("/{booking_id}/status", response_model=BookingResponse)
def update_status(
    booking_id: str,
    body: StatusUpdateRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Move a booking to a new status.
    
    Illegal moves answer 409; unknown statuses 422.
    """
    return _to_response(service.update_status(booking_id, body.status))


@router.post("/{booking_id}/complete", response_model=CompletionResponse)
def complete_booking(
    booking_id: str,
    body: CompletionRequest,
    service: BookingService = Depends(get_booking_service),
) -> CompletionResponse:
    """Close a job and record the commission/payout split."""
    result = service.complete_booking(booking_id, CompletionDetails(**body.model_dump()))
    return CompletionResponse(
        booking=_to_response(result.booking),
        revenue_record=RevenueRecordResponse.model_validate(result.revenue_record),
    )


@router.post("/{booking_id}/review", response_model=BookingResponse)
def add_review(
    booking_id: str,
    body: ReviewRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return _to_response(service.add_review(booking_id, body.rating, body.review))


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return _to_response(service.cancel_booking(booking_id))
