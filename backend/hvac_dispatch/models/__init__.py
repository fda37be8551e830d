"""
SQLAlchemy models package.
Import all models here to ensure they're registered with Base.metadata.
"""
from hvac_dispatch.models.technicians import (
    Technician,
    TechnicianLevel,
    TechnicianSkill,
    AvailabilityStatus,
    JobComplexity,
)
from hvac_dispatch.models.bookings import (
    Booking,
    BookingStatus,
    ServiceType,
    TimeSlot,
    PriorityLevel,
)
from hvac_dispatch.models.revenue import RevenueRecord
from hvac_dispatch.models.pricing import ServicePrice, PriceChangeNotification
from hvac_dispatch.models.teams import Team

__all__ = [
    "Technician",
    "TechnicianLevel",
    "TechnicianSkill",
    "AvailabilityStatus",
    "JobComplexity",
    "Booking",
    "BookingStatus",
    "ServiceType",
    "TimeSlot",
    "PriorityLevel",
    "RevenueRecord",
    "ServicePrice",
    "PriceChangeNotification",
    "Team",
]
