"""
Technician Service - technician directory and workload bookkeeping.

Reads technician profiles into the typed TechnicianProfile used by the
matching engine, and keeps each technician's active job list, counters,
availability and rating in step with the booking lifecycle.

Workload rules:
- Registering a job appends its id (once) and bumps total_jobs_assigned;
  reaching max_jobs_per_day flips availability to 'busy'.
- Releasing a job drops its id; dropping below the cap flips an
  automatically set 'busy' back to 'available'. A manually set 'busy'
  recovers too unless recover_manual_busy is off. 'emergency' and
  'unavailable' are never touched.

register_job/release_job/record_completion/refresh_rating mutate the
loaded row without committing so the booking service can run them inside
its own transaction; assign_job/remove_job/update_availability are the
standalone, committing entry points.

Teams group technicians under a lead for jobs whose complexity calls for
more than one person; creating a team stamps team_id on each member.
"""
from datetime import datetime
from typing import List, Optional, Dict, Any, Sequence
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hvac_dispatch.lib.business_rules import BusinessRules, get_business_rules
from hvac_dispatch.lib.db import transaction, parse_id
from hvac_dispatch.lib.errors import NotFoundException, DataSourceException, ValidationException
from hvac_dispatch.lib.logging import get_logger
from hvac_dispatch.lib.metrics import MetricsCollector, get_metrics_collector
from hvac_dispatch.models.bookings import Booking, BookingStatus
from hvac_dispatch.models.teams import Team
from hvac_dispatch.models.technicians import Technician, TechnicianLevel, AvailabilityStatus

logger = get_logger(__name__)


class TechnicianProfile(BaseModel):
    """
    Typed view of a technician row.
    
    Missing collections become empty lists and a missing daily cap takes
    the configured default, so scoring code never has to guess.
    """
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    display_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    level: TechnicianLevel = TechnicianLevel.TECHNICIAN
    skills: List[str] = Field(default_factory=list)
    service_areas: List[str] = Field(default_factory=list)
    availability_status: AvailabilityStatus = AvailabilityStatus.AVAILABLE
    current_job_ids: List[str] = Field(default_factory=list)
    max_jobs_per_day: int = Field(default=8, ge=1)
    total_jobs_assigned: int = Field(default=0, ge=0)
    total_jobs_completed: int = Field(default=0, ge=0)
    average_rating: float = Field(default=0.0, ge=0, le=5)
    team_id: Optional[UUID] = None
    is_team_lead: bool = False
    
    @field_validator("skills", "service_areas", "current_job_ids", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value
    
    @field_validator("level", mode="before")
    @classmethod
    def _default_level(cls, value):
        return TechnicianLevel.TECHNICIAN if value is None else value
    
    @field_validator("availability_status", mode="before")
    @classmethod
    def _default_availability(cls, value):
        return AvailabilityStatus.AVAILABLE if value is None else value
    
    @field_validator("average_rating", mode="before")
    @classmethod
    def _default_rating(cls, value):
        return 0.0 if value is None else value
    
    @property
    def current_job_count(self) -> int:
        return len(self.current_job_ids)
    
    @property
    def has_capacity(self) -> bool:
        return self.current_job_count < self.max_jobs_per_day


class TeamMember(BaseModel):
    technician_id: UUID
    display_name: str
    level: TechnicianLevel
    role: str  # "lead" or "member"


class TeamProfile(BaseModel):
    """A team with its members resolved, lead first."""
    id: UUID
    name: str
    lead_technician_id: UUID
    lead_technician_name: str
    member_ids: List[str] = Field(default_factory=list)
    members: List[TeamMember] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime


class TechnicianService:
    """Technician reads and workload updates."""
    
    def __init__(
        self,
        db: Session,
        rules: Optional[BusinessRules] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.db = db
        self.rules = rules or get_business_rules()
        self.metrics = metrics or get_metrics_collector()
    
    # ===== Reads =====
    
    def to_profile(self, technician: Technician) -> TechnicianProfile:
        """Convert a row to a profile, filling the default daily cap."""
        profile = TechnicianProfile.model_validate(
            {
                "id": technician.id,
                "display_name": technician.display_name,
                "email": technician.email,
                "phone": technician.phone,
                "level": technician.level,
                "skills": technician.skills,
                "service_areas": technician.service_areas,
                "availability_status": technician.availability_status,
                "current_job_ids": technician.current_job_ids,
                "max_jobs_per_day": technician.max_jobs_per_day or self.rules.default_max_jobs_per_day,
                "total_jobs_assigned": technician.total_jobs_assigned or 0,
                "total_jobs_completed": technician.total_jobs_completed or 0,
                "average_rating": technician.average_rating,
                "team_id": technician.team_id,
                "is_team_lead": bool(technician.is_team_lead),
            }
        )
        return profile
    
    def load(self, technician_id: UUID, lock: bool = False) -> Technician:
        """
        Load a technician row (row-locked when lock=True and the database supports it).
        
        Raises:
            NotFoundException: If no technician has this id
            DataSourceException: If the read fails
        """
        technician_id = parse_id(technician_id, "Technician")
        try:
            technician = self.db.get(Technician, technician_id, with_for_update=lock)
        except SQLAlchemyError as exc:
            logger.error("Failed to fetch technician", extra={"technician_id": str(technician_id)}, exc_info=True)
            raise DataSourceException("fetch technician") from exc
        
        if technician is None:
            logger.warning("Technician not found", extra={"technician_id": str(technician_id)})
            raise NotFoundException("Technician", str(technician_id))
        return technician
    
    def get_technician(self, technician_id: UUID) -> TechnicianProfile:
        return self.to_profile(self.load(technician_id))
    
    def list_technicians(self) -> List[TechnicianProfile]:
        """
        Active, approved technicians in creation order.
        
        Raises:
            DataSourceException: If the read fails ("Failed to fetch technicians")
        """
        stmt = (
            select(Technician)
            .where(Technician.is_active == True, Technician.is_approved == True)  # noqa: E712
            .order_by(Technician.created_at, Technician.id)
        )
        try:
            rows = self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            logger.error("Failed to fetch technicians", exc_info=True)
            raise DataSourceException("fetch technicians") from exc
        return [self.to_profile(row) for row in rows]
    
    def get_available_technicians(self) -> List[TechnicianProfile]:
        """Technicians marked available and still under their daily cap."""
        return [
            profile for profile in self.list_technicians()
            if profile.availability_status == AvailabilityStatus.AVAILABLE and profile.has_capacity
        ]
    
    def get_technicians_by_skill(self, skill: str) -> List[TechnicianProfile]:
        return [profile for profile in self.list_technicians() if skill in profile.skills]
    
    def get_technicians_by_service_area(self, area: str) -> List[TechnicianProfile]:
        return [profile for profile in self.list_technicians() if area in profile.service_areas]
    
    # ===== Workload bookkeeping (no commit) =====
    
    def _capacity(self, technician: Technician) -> int:
        return technician.max_jobs_per_day or self.rules.default_max_jobs_per_day
    
    def register_job(self, technician: Technician, job_id: str) -> bool:
        """
        Add a job to the technician's active list.
        
        Returns:
            False if the job was already registered (nothing changes)
        """
        job_id = str(job_id)
        current_jobs = list(technician.current_job_ids or [])
        if job_id in current_jobs:
            return False
        
        current_jobs.append(job_id)
        technician.current_job_ids = current_jobs
        technician.total_jobs_assigned = (technician.total_jobs_assigned or 0) + 1
        
        if len(current_jobs) >= self._capacity(technician) and technician.availability_status != AvailabilityStatus.BUSY:
            technician.availability_status = AvailabilityStatus.BUSY
            technician.availability_auto_set = True
        
        self.metrics.increment_assignments()
        logger.info(
            "Job registered on technician",
            extra={
                "technician_id": str(technician.id),
                "job_id": job_id,
                "current_jobs": len(current_jobs),
                "availability": technician.availability_status.value,
            },
        )
        return True
    
    def release_job(self, technician: Technician, job_id: str) -> bool:
        """
        Drop a job from the technician's active list.
        
        Returns:
            False if the job was not registered
        """
        job_id = str(job_id)
        before = list(technician.current_job_ids or [])
        current_jobs = [existing for existing in before if existing != job_id]
        if len(current_jobs) == len(before):
            return False
        technician.current_job_ids = current_jobs
        
        can_recover = technician.availability_auto_set or self.rules.recover_manual_busy
        if (
            len(current_jobs) < self._capacity(technician)
            and technician.availability_status == AvailabilityStatus.BUSY
            and can_recover
        ):
            technician.availability_status = AvailabilityStatus.AVAILABLE
            technician.availability_auto_set = True
        
        logger.info(
            "Job released from technician",
            extra={
                "technician_id": str(technician.id),
                "job_id": job_id,
                "current_jobs": len(current_jobs),
                "availability": technician.availability_status.value,
            },
        )
        return True
    
    def record_completion(self, technician: Technician) -> None:
        technician.total_jobs_completed = (technician.total_jobs_completed or 0) + 1
    
    def refresh_rating(self, technician: Technician) -> float:
        """
        Recompute average_rating from every rated, completed booking of the
        technician. Pending session changes are flushed first so a rating
        written in the same transaction is counted.
        """
        self.db.flush()
        stmt = select(func.avg(Booking.customer_rating)).where(
            Booking.technician_id == technician.id,
            Booking.status == BookingStatus.COMPLETED,
            Booking.customer_rating.is_not(None),
        )
        average = self.db.execute(stmt).scalar()
        technician.average_rating = round(float(average), 2) if average is not None else 0.0
        return technician.average_rating
    
    # ===== Standalone operations (commit) =====
    
    def assign_job(self, technician_id: UUID, job_id: str) -> TechnicianProfile:
        with transaction(self.db, "assign job to technician"):
            technician = self.load(technician_id, lock=True)
            self.register_job(technician, job_id)
        return self.to_profile(technician)
    
    def remove_job(self, technician_id: UUID, job_id: str) -> TechnicianProfile:
        with transaction(self.db, "remove job from technician"):
            technician = self.load(technician_id, lock=True)
            self.release_job(technician, job_id)
        return self.to_profile(technician)
    
    def update_availability(self, technician_id: UUID, status: AvailabilityStatus) -> TechnicianProfile:
        """Manually set availability. Marks the status as not automatically managed."""
        with transaction(self.db, "update technician availability"):
            technician = self.load(technician_id, lock=True)
            technician.availability_status = AvailabilityStatus(status)
            technician.availability_auto_set = False
        
        logger.info(
            "Technician availability updated",
            extra={"technician_id": str(technician_id), "availability": technician.availability_status.value},
        )
        return self.to_profile(technician)
    
    def backfill_stats(self) -> List[Dict[str, Any]]:
        """
        Recompute total_jobs_completed and average_rating for every
        technician from booking history.
        
        Returns:
            One summary dict per technician
        """
        results = []
        with transaction(self.db, "backfill technician stats"):
            technicians = self.db.execute(select(Technician).order_by(Technician.created_at)).scalars().all()
            for technician in technicians:
                completed = self.db.execute(
                    select(func.count(Booking.id)).where(
                        Booking.technician_id == technician.id,
                        Booking.status == BookingStatus.COMPLETED,
                    )
                ).scalar() or 0
                rated = self.db.execute(
                    select(func.count(Booking.id)).where(
                        Booking.technician_id == technician.id,
                        Booking.status == BookingStatus.COMPLETED,
                        Booking.customer_rating.is_not(None),
                    )
                ).scalar() or 0
                
                technician.total_jobs_completed = completed
                average = self.refresh_rating(technician)
                results.append({
                    "technician_id": technician.id,
                    "display_name": technician.display_name,
                    "total_jobs_completed": completed,
                    "average_rating": average,
                    "total_ratings": rated,
                })
        
        logger.info("Technician stats backfilled", extra={"technicians": len(results)})
        return results
    
    # ===== Teams =====
    
    def _team_profile(self, team: Team) -> TeamProfile:
        member_ids = list(team.member_ids or [])
        rows = self.db.execute(
            select(Technician).where(Technician.id.in_([UUID(member_id) for member_id in member_ids]))
        ).scalars().all()
        by_id = {str(row.id): row for row in rows}
        
        members = [
            TeamMember(
                technician_id=by_id[member_id].id,
                display_name=by_id[member_id].display_name,
                level=by_id[member_id].level,
                role="lead" if member_id == str(team.lead_technician_id) else "member",
            )
            for member_id in member_ids if member_id in by_id
        ]
        return TeamProfile(
            id=team.id,
            name=team.name,
            lead_technician_id=team.lead_technician_id,
            lead_technician_name=team.lead_technician_name,
            member_ids=member_ids,
            members=members,
            is_active=team.is_active,
            created_at=team.created_at,
        )
    
    def create_team(self, name: str, lead_technician_id: UUID, member_ids: Sequence[UUID] = ()) -> TeamProfile:
        """
        Create a team and stamp team_id / is_team_lead on every member.
        
        The lead is always a member and is listed first; duplicate ids are
        collapsed. A technician already in another team moves to this one.
        
        Raises:
            ValidationException: If the name is blank
            NotFoundException: If the lead or any member does not exist
        """
        name = (name or "").strip()
        if not name:
            raise ValidationException("Team name is required", errors={"name": "blank"})
        
        lead_id = parse_id(lead_technician_id, "Technician")
        ordered = list(dict.fromkeys([lead_id] + [parse_id(m, "Technician") for m in member_ids]))
        
        with transaction(self.db, "create team"):
            technicians = [self.load(technician_id, lock=True) for technician_id in ordered]
            lead = technicians[0]
            team = Team(
                id=uuid4(),
                name=name,
                lead_technician_id=lead.id,
                lead_technician_name=lead.display_name,
                member_ids=[str(technician.id) for technician in technicians],
                is_active=True,
            )
            self.db.add(team)
            for technician in technicians:
                technician.team_id = team.id
                technician.is_team_lead = technician.id == lead.id
        
        logger.info(
            "Team created",
            extra={"team_id": str(team.id), "lead_technician_id": str(lead.id), "members": len(technicians)},
        )
        return self._team_profile(team)
    
    def list_teams(self) -> List[TeamProfile]:
        """Active teams in creation order."""
        stmt = select(Team).where(Team.is_active == True).order_by(Team.created_at, Team.id)  # noqa: E712
        try:
            teams = self.db.execute(stmt).scalars().all()
            return [self._team_profile(team) for team in teams]
        except SQLAlchemyError as exc:
            logger.error("Failed to fetch teams", exc_info=True)
            raise DataSourceException("fetch teams") from exc
    
    def get_team(self, team_id: UUID) -> TeamProfile:
        """
        Raises:
            NotFoundException: If no team has this id
        """
        team_id = parse_id(team_id, "Team")
        try:
            team = self.db.get(Team, team_id)
            if team is None:
                logger.warning("Team not found", extra={"team_id": str(team_id)})
                raise NotFoundException("Team", str(team_id))
            return self._team_profile(team)
        except SQLAlchemyError as exc:
            logger.error("Failed to fetch team", extra={"team_id": str(team_id)}, exc_info=True)
            raise DataSourceException("fetch team") from exc
