"""
Admin revenue API routes (read-only reports over the revenue ledger).
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from hvac_dispatch.api.dependencies import get_revenue_service
from hvac_dispatch.services.revenue_service import RevenueService


# Pydantic schemas
class PlatformRevenueResponse(BaseModel):
    total_bookings: int
    completed_bookings: int
    total_revenue: float
    platform_commission: float
    technician_payouts: float
    monthly_revenue: float
    daily_revenue: float
    average_booking_value: float
    
    model_config = {"from_attributes": True}


class DailyRevenueResponse(BaseModel):
    date: str
    bookings: int
    revenue: float
    commission: float
    technician_payout: float
    
    model_config = {"from_attributes": True}


class CommissionDetailsResponse(BaseModel):
    booking_id: UUID
    customer_id: str
    technician_id: Optional[UUID] = None
    service_type: str
    agreed_price: float
    final_cost: float
    platform_commission: float
    technician_payout: float
    completed_at: datetime
    
    model_config = {"from_attributes": True}


class RevenueStatsResponse(BaseModel):
    period: str
    revenue: float
    commission: float
    bookings: int
    growth: float
    
    model_config = {"from_attributes": True}


# Router
router = APIRouter(prefix="/admin/revenue", tags=["admin-revenue"])


@router.get("", response_model=PlatformRevenueResponse)
def get_platform_revenue(service: RevenueService = Depends(get_revenue_service)):
    """Platform totals: revenue, commission, payouts, this month and today."""
    return PlatformRevenueResponse.model_validate(service.get_platform_revenue())


@router.get("/daily", response_model=List[DailyRevenueResponse])
def get_daily_revenue(
    start: datetime = Query(..., description="Range start (ISO 8601)"),
    end: datetime = Query(..., description="Range end (ISO 8601), inclusive"),
    service: RevenueService = Depends(get_revenue_service),
):
    """Revenue per day within a date range, oldest first."""
    return [DailyRevenueResponse.model_validate(day) for day in service.get_revenue_by_date_range(start, end)]


@router.get("/commissions", response_model=List[CommissionDetailsResponse])
def get_commission_breakdown(service: RevenueService = Depends(get_revenue_service)):
    """Commission and payout per completed booking, newest first."""
    return [CommissionDetailsResponse.model_validate(row) for row in service.get_commission_breakdown()]


@router.get("/stats", response_model=RevenueStatsResponse)
def get_revenue_stats(
    period: str = Query("month", description="today, week, month or year"),
    service: RevenueService = Depends(get_revenue_service),
):
    """Revenue for the current period with growth versus the previous one."""
    return RevenueStatsResponse.model_validate(service.get_revenue_stats(period))
