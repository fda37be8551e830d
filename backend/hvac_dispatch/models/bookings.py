"""
Booking model - service jobs linking a customer to a technician.
"""
from datetime import datetime, date, timezone
from typing import Optional
from uuid import uuid4, UUID
import enum

from sqlalchemy import (
    String, Integer, Numeric, Date, DateTime, ForeignKey, JSON, Uuid,
    Enum as SQLEnum, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from hvac_dispatch.lib.db import Base


class ServiceType(str, enum.Enum):
    """Bookable HVAC services."""
    INSTALLATION = "installation"
    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    INSPECTION = "inspection"


class BookingStatus(str, enum.Enum):
    """
    Booking status state machine.
    pending → confirmed → en_route → arrived → in_progress → completed,
    any non-terminal state → cancelled.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    EN_ROUTE = "en_route"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class TimeSlot(str, enum.Enum):
    MORNING = "morning"      # 8:00 - 12:00
    AFTERNOON = "afternoon"  # 12:00 - 16:00
    EVENING = "evening"      # 16:00 - 20:00


class PriorityLevel(str, enum.Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class Booking(Base):
    """
    Booking entity - one service visit.
    
    agreed_price is captured from the pricing source when the booking is
    created and cannot change afterwards; final_cost and the completion
    fields are only filled in when the technician closes the job.
    """
    __tablename__ = "bookings"
    
    # Primary key
    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    booking_number: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    
    # Customer
    customer_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    
    # Service
    service_type: Mapped[ServiceType] = mapped_column(
        SQLEnum(ServiceType, name="service_type"),
        nullable=False,
        index=True,
    )
    service_details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    agreed_price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    
    # Scheduling
    preferred_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    preferred_time_slot: Mapped[TimeSlot] = mapped_column(
        SQLEnum(TimeSlot, name="time_slot"),
        nullable=False,
    )
    alternate_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    
    # Location
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    location_notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    
    # Assignment
    technician_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("technicians.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    technician_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    technician_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    technician_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    
    # Status
    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )
    priority: Mapped[PriorityLevel] = mapped_column(
        SQLEnum(PriorityLevel, name="priority_level"),
        nullable=False,
        default=PriorityLevel.NORMAL,
    )
    
    # Completion
    actual_start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    final_cost: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    service_notes: Mapped[Optional[str]] = mapped_column(String(4000), nullable=True)
    labor_hours: Mapped[Optional[float]] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    before_photos: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    after_photos: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    
    # Feedback
    customer_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    customer_review: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    
    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    
    __table_args__ = (
        CheckConstraint(
            "customer_rating IS NULL OR (customer_rating >= 1 AND customer_rating <= 5)",
            name="booking_rating_range",
        ),
        CheckConstraint("agreed_price >= 0", name="booking_agreed_price_non_negative"),
    )
    
    @validates("agreed_price")
    def _lock_agreed_price(self, key, value):
        if self.agreed_price is not None and value != self.agreed_price:
            raise ValueError("agreed_price is locked at booking time")
        return value
    
    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, status={self.status}, customer_id={self.customer_id})>"
