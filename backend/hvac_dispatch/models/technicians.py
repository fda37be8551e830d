"""
Technician model - field workers that bookings are dispatched to.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4, UUID
import enum

from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, JSON, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from hvac_dispatch.lib.db import Base


class TechnicianLevel(str, enum.Enum):
    """Experience ladder, lowest first."""
    TRAINEE = "trainee"          # 0-1 year, learning the trade
    JUNIOR = "junior"            # 1-3 years, basic repairs
    TECHNICIAN = "technician"    # 3-5 years, independent work
    SENIOR = "senior"            # 5-7 years, complex diagnostics
    LEAD = "lead"                # 7+ years, team leadership
    SUPERVISOR = "supervisor"    # Manages multiple teams


class TechnicianSkill(str, enum.Enum):
    """Known skill tags. Profiles and job requirements may carry others."""
    AC_INSTALLATION = "ac_installation"
    AC_REPAIR = "ac_repair"
    REFRIGERATION = "refrigeration"
    ELECTRICAL = "electrical"
    PREVENTIVE_MAINTENANCE = "preventive_maintenance"
    EMERGENCY_SERVICE = "emergency_service"
    COMMERCIAL_SYSTEMS = "commercial_systems"
    RESIDENTIAL_SYSTEMS = "residential_systems"
    DUCTWORK = "ductwork"
    HVAC_CONTROLS = "hvac_controls"
    DIAGNOSTICS = "diagnostics"
    WELDING = "welding"


class AvailabilityStatus(str, enum.Enum):
    """Dispatch availability."""
    AVAILABLE = "available"      # Ready for new jobs
    BUSY = "busy"                # At capacity or on a job
    UNAVAILABLE = "unavailable"  # Off duty, on leave
    EMERGENCY = "emergency"      # Emergencies only


class JobComplexity(str, enum.Enum):
    """Job difficulty, gates the technician level a job needs."""
    SIMPLE = "simple"      # Filter cleaning, minor repairs
    MODERATE = "moderate"  # Standard repairs, installations
    COMPLEX = "complex"    # Major repairs, ductwork
    EXPERT = "expert"      # Commercial systems, complex diagnostics


class Technician(Base):
    """
    Technician entity - profile, skills, coverage and live workload.
    
    current_job_ids holds the ids of non-terminal bookings assigned to the
    technician; its length against max_jobs_per_day drives the automatic
    available <-> busy flip.
    """
    __tablename__ = "technicians"
    
    # Primary key
    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    
    # Contact
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    
    # Account state
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    
    # Experience and skills
    level: Mapped[TechnicianLevel] = mapped_column(
        SQLEnum(TechnicianLevel, name="technician_level"),
        nullable=False,
        default=TechnicianLevel.TECHNICIAN,
    )
    years_experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    service_areas: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Cities/zones the technician covers",
    )
    
    # Availability and workload
    availability_status: Mapped[AvailabilityStatus] = mapped_column(
        SQLEnum(AvailabilityStatus, name="availability_status"),
        nullable=False,
        default=AvailabilityStatus.AVAILABLE,
        index=True,
    )
    availability_auto_set: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="True when availability_status was last set by workload bookkeeping",
    )
    current_job_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    max_jobs_per_day: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    # Performance counters
    total_jobs_assigned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_jobs_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_rating: Mapped[float] = mapped_column(
        Numeric(3, 2, asdecimal=False),
        nullable=False,
        default=0.0,
    )
    
    # Team membership (set by team creation)
    team_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    is_team_lead: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    
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
    
    def __repr__(self) -> str:
        return (
            f"<Technician(id={self.id}, level={self.level}, "
            f"status={self.availability_status}, jobs={len(self.current_job_ids or [])})>"
        )
