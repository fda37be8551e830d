"""
Earnings Service - technician-side view of the revenue ledger.

Earnings are the technician_payout amounts written to RevenueRecord when
each of the technician's bookings completed. Days and periods are UTC;
weeks run Monday to Sunday.
"""
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hvac_dispatch.lib.errors import DataSourceException, ValidationException
from hvac_dispatch.lib.logging import get_logger
from hvac_dispatch.models.revenue import RevenueRecord
from hvac_dispatch.services.pricing_service import round_currency
from hvac_dispatch.services.revenue_service import as_utc
from hvac_dispatch.services.technician_service import TechnicianService

logger = get_logger(__name__)

MAX_DAILY_WINDOW = 366


@dataclass
class EarningsSummary:
    technician_id: UUID
    start: datetime
    end: datetime
    total_earnings: float
    jobs_completed: int
    average_job_value: float
    top_service_type: Optional[str]


@dataclass
class EarningsPeriods:
    today: float
    this_week: float
    this_month: float


@dataclass
class DailyEarnings:
    date: str
    earnings: float
    jobs: int


def _top_service_type(records: List[RevenueRecord]) -> Optional[str]:
    """Most frequent service type; ties go to the alphabetically first."""
    counts = Counter(record.service_type for record in records)
    if not counts:
        return None
    return min(counts, key=lambda service_type: (-counts[service_type], service_type))


class EarningsService:
    """Payout reports for a single technician."""
    
    def __init__(self, db: Session, technician_service: Optional[TechnicianService] = None):
        self.db = db
        self.technicians = technician_service or TechnicianService(db)
    
    def _payouts(self, technician_id: UUID, start: datetime, end: datetime) -> List[RevenueRecord]:
        stmt = (
            select(RevenueRecord)
            .where(
                RevenueRecord.technician_id == technician_id,
                RevenueRecord.completed_at >= start,
                RevenueRecord.completed_at <= end,
            )
            .order_by(RevenueRecord.completed_at.desc())
        )
        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Failed to calculate earnings", extra={"technician_id": str(technician_id)}, exc_info=True)
            raise DataSourceException("calculate earnings") from exc
    
    def get_technician_earnings(self, technician_id: UUID, start: datetime, end: datetime) -> EarningsSummary:
        """
        Payout total, job count, average payout per job and most common
        service type for completions between start and end (inclusive).
        
        Raises:
            NotFoundException: If the technician does not exist
            ValidationException: If start is after end
        """
        technician = self.technicians.load(technician_id)
        start, end = as_utc(start), as_utc(end)
        if start > end:
            raise ValidationException("Start date must not be after end date", errors={
                "start": start.isoformat(), "end": end.isoformat(),
            })
        
        records = self._payouts(technician.id, start, end)
        total = sum(record.technician_payout for record in records)
        return EarningsSummary(
            technician_id=technician.id,
            start=start,
            end=end,
            total_earnings=round_currency(total),
            jobs_completed=len(records),
            average_job_value=round_currency(total / len(records)) if records else 0.0,
            top_service_type=_top_service_type(records),
        )
    
    def get_technician_earnings_periods(self, technician_id: UUID, now: Optional[datetime] = None) -> EarningsPeriods:
        """Earnings so far today, this week (from Monday) and this month."""
        now = as_utc(now or datetime.now(timezone.utc))
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = today - timedelta(days=today.weekday())
        month_start = today.replace(day=1)
        
        return EarningsPeriods(
            today=self.get_technician_earnings(technician_id, today, now).total_earnings,
            this_week=self.get_technician_earnings(technician_id, week_start, now).total_earnings,
            this_month=self.get_technician_earnings(technician_id, month_start, now).total_earnings,
        )
    
    def get_daily_earnings(self, technician_id: UUID, days: int = 7, now: Optional[datetime] = None) -> List[DailyEarnings]:
        """
        One entry per day for the last `days` days including today, oldest
        first. Days without completions are reported as zero.
        
        Raises:
            ValidationException: If days is outside 1..366
        """
        if not 1 <= days <= MAX_DAILY_WINDOW:
            raise ValidationException(
                f"days must be between 1 and {MAX_DAILY_WINDOW}",
                errors={"days": days},
            )
        technician = self.technicians.load(technician_id)
        now = as_utc(now or datetime.now(timezone.utc))
        first_day = now.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=days - 1)
        
        buckets = {
            (first_day + timedelta(days=offset)).date().isoformat(): DailyEarnings(
                date=(first_day + timedelta(days=offset)).date().isoformat(), earnings=0.0, jobs=0,
            )
            for offset in range(days)
        }
        for record in self._payouts(technician.id, first_day, now):
            bucket = buckets[as_utc(record.completed_at).date().isoformat()]
            bucket.earnings += record.technician_payout
            bucket.jobs += 1
        
        result = list(buckets.values())
        for day in result:
            day.earnings = round_currency(day.earnings)
        return result
