"""
Revenue Service - read side of the revenue ledger.

All figures come from RevenueRecord rows, which are written once when a
booking completes, so reports reflect the split that was actually applied
at completion time rather than the current commission rate.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hvac_dispatch.lib.errors import DataSourceException, ValidationException
from hvac_dispatch.lib.logging import get_logger
from hvac_dispatch.models.bookings import Booking
from hvac_dispatch.models.revenue import RevenueRecord
from hvac_dispatch.services.pricing_service import round_currency

logger = get_logger(__name__)

REVENUE_PERIODS = ("today", "week", "month", "year")


@dataclass
class PlatformRevenue:
    total_bookings: int
    completed_bookings: int
    total_revenue: float
    platform_commission: float
    technician_payouts: float
    monthly_revenue: float
    daily_revenue: float
    average_booking_value: float


@dataclass
class DailyRevenue:
    date: str
    bookings: int
    revenue: float
    commission: float
    technician_payout: float


@dataclass
class CommissionDetails:
    booking_id: UUID
    customer_id: str
    technician_id: Optional[UUID]
    service_type: str
    agreed_price: float
    final_cost: float
    platform_commission: float
    technician_payout: float
    completed_at: datetime


@dataclass
class RevenueStats:
    period: str
    revenue: float
    commission: float
    bookings: int
    growth: float


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def period_bounds(period: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Start of the current period and start of the previous one.
    
    Weeks start on Sunday.
    
    Raises:
        ValidationException: If period is not one of today/week/month/year
    """
    now = as_utc(now or datetime.now(timezone.utc))
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    
    if period == "today":
        return today, today - timedelta(days=1)
    if period == "week":
        start = today - timedelta(days=(today.weekday() + 1) % 7)
        return start, start - timedelta(days=7)
    if period == "month":
        start = today.replace(day=1)
        previous = (start - timedelta(days=1)).replace(day=1)
        return start, previous
    if period == "year":
        start = today.replace(month=1, day=1)
        return start, start.replace(year=start.year - 1)
    raise ValidationException(
        f"Invalid period '{period}'",
        errors={"period": list(REVENUE_PERIODS)},
    )


class RevenueService:
    """Revenue reports over the ledger."""
    
    def __init__(self, db: Session):
        self.db = db
    
    def _records(self, operation: str, start: Optional[datetime] = None, end: Optional[datetime] = None,
                 newest_first: bool = False) -> List[RevenueRecord]:
        stmt = select(RevenueRecord)
        if start is not None:
            stmt = stmt.where(RevenueRecord.completed_at >= start)
        if end is not None:
            stmt = stmt.where(RevenueRecord.completed_at <= end)
        order = RevenueRecord.completed_at.desc() if newest_first else RevenueRecord.completed_at.asc()
        stmt = stmt.order_by(order)
        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            logger.error(f"Failed to {operation}", exc_info=True)
            raise DataSourceException(operation) from exc
    
    def get_platform_revenue(self, now: Optional[datetime] = None) -> PlatformRevenue:
        """
        Platform-wide totals.
        
        total_bookings counts bookings in every status; the money figures
        only cover completed (ledgered) bookings.
        """
        now = as_utc(now or datetime.now(timezone.utc))
        records = self._records("fetch platform revenue")
        try:
            total_bookings = self.db.execute(select(func.count()).select_from(Booking)).scalar_one()
        except SQLAlchemyError as exc:
            logger.error("Failed to count bookings", exc_info=True)
            raise DataSourceException("fetch platform revenue") from exc
        
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_month = start_of_day.replace(day=1)
        
        total_revenue = sum(r.final_cost for r in records)
        monthly = sum(r.final_cost for r in records if as_utc(r.completed_at) >= start_of_month)
        daily = sum(r.final_cost for r in records if as_utc(r.completed_at) >= start_of_day)
        
        return PlatformRevenue(
            total_bookings=total_bookings,
            completed_bookings=len(records),
            total_revenue=round_currency(total_revenue),
            platform_commission=round_currency(sum(r.platform_commission for r in records)),
            technician_payouts=round_currency(sum(r.technician_payout for r in records)),
            monthly_revenue=round_currency(monthly),
            daily_revenue=round_currency(daily),
            average_booking_value=round_currency(total_revenue / len(records)) if records else 0.0,
        )
    
    def get_revenue_by_date_range(self, start: datetime, end: datetime) -> List[DailyRevenue]:
        """
        Per-day (UTC, YYYY-MM-DD) revenue between start and end inclusive,
        oldest day first. Days without completions are omitted.
        """
        start, end = as_utc(start), as_utc(end)
        if start > end:
            raise ValidationException("Start date must not be after end date", errors={
                "start": start.isoformat(), "end": end.isoformat(),
            })
        
        buckets = {}
        for record in self._records("fetch revenue by date range", start=start, end=end):
            key = as_utc(record.completed_at).date().isoformat()
            bucket = buckets.setdefault(key, DailyRevenue(date=key, bookings=0, revenue=0.0,
                                                          commission=0.0, technician_payout=0.0))
            bucket.bookings += 1
            bucket.revenue += record.final_cost
            bucket.commission += record.platform_commission
            bucket.technician_payout += record.technician_payout
        
        days = sorted(buckets.values(), key=lambda b: b.date)
        for day in days:
            day.revenue = round_currency(day.revenue)
            day.commission = round_currency(day.commission)
            day.technician_payout = round_currency(day.technician_payout)
        return days
    
    def get_commission_breakdown(self) -> List[CommissionDetails]:
        """One entry per completed booking, newest first."""
        return [
            CommissionDetails(
                booking_id=record.booking_id,
                customer_id=record.customer_id,
                technician_id=record.technician_id,
                service_type=record.service_type,
                agreed_price=record.agreed_price,
                final_cost=record.final_cost,
                platform_commission=record.platform_commission,
                technician_payout=record.technician_payout,
                completed_at=as_utc(record.completed_at),
            )
            for record in self._records("calculate commission breakdown", newest_first=True)
        ]
    
    def get_revenue_stats(self, period: str, now: Optional[datetime] = None) -> RevenueStats:
        """
        Revenue for the current period with growth against the previous one.
        
        growth is a percentage rounded to 2 dp; 100 when the previous
        period had no revenue but this one does, 0 when neither has any.
        """
        now = as_utc(now or datetime.now(timezone.utc))
        start, previous_start = period_bounds(period, now)
        
        current = self.get_revenue_by_date_range(start, now)
        previous = self.get_revenue_by_date_range(previous_start, start - timedelta(microseconds=1))
        
        revenue = round_currency(sum(day.revenue for day in current))
        previous_revenue = round_currency(sum(day.revenue for day in previous))
        if previous_revenue > 0:
            growth = (revenue - previous_revenue) / previous_revenue * 100
        else:
            growth = 100.0 if revenue > 0 else 0.0
        
        return RevenueStats(
            period=period,
            revenue=revenue,
            commission=round_currency(sum(day.commission for day in current)),
            bookings=sum(day.bookings for day in current),
            growth=round(growth, 2),
        )
