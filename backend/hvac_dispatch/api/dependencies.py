"""
API dependencies for FastAPI dependency injection.

Each request gets its own session and services built on it; tests swap
the session by overriding get_db.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from hvac_dispatch.lib.db import get_db as get_db_session
from hvac_dispatch.services.booking_service import BookingService
from hvac_dispatch.services.earnings_service import EarningsService
from hvac_dispatch.services.matching_service import MatchingService
from hvac_dispatch.services.pricing_service import PricingService
from hvac_dispatch.services.revenue_service import RevenueService
from hvac_dispatch.services.technician_service import TechnicianService


# Re-export get_db for convenience
get_db = get_db_session


def get_technician_service(db: Session = Depends(get_db)) -> TechnicianService:
    return TechnicianService(db)


def get_matching_service(db: Session = Depends(get_db)) -> MatchingService:
    return MatchingService(db)


def get_pricing_service(db: Session = Depends(get_db)) -> PricingService:
    return PricingService(db)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


def get_revenue_service(db: Session = Depends(get_db)) -> RevenueService:
    return RevenueService(db)


def get_earnings_service(db: Session = Depends(get_db)) -> EarningsService:
    return EarningsService(db)
