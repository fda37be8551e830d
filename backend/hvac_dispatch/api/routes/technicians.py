"""
Technician API routes: directory, availability, assignment recommendations
and earnings.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from hvac_dispatch.api.dependencies import get_technician_service, get_matching_service, get_earnings_service
from hvac_dispatch.models.technicians import AvailabilityStatus, JobComplexity
from hvac_dispatch.services.earnings_service import EarningsService
from hvac_dispatch.services.matching_service import (
    AssignmentRecommendation,
    MatchingService,
    can_handle_job_alone,
    recommended_team_size,
)
from hvac_dispatch.services.technician_service import TechnicianProfile, TechnicianService


# Pydantic schemas
class AvailabilityUpdateRequest(BaseModel):
    availability_status: AvailabilityStatus


class RecommendationRequest(BaseModel):
    """Job requirements to rank technicians against."""
    required_skills: List[str] = Field(default_factory=list)
    service_area: str = Field(..., min_length=1)
    complexity: JobComplexity
    max_results: Optional[int] = Field(None, ge=1, le=100)


class RecommendationResponse(BaseModel):
    recommended_team_size: int
    recommendations: List[AssignmentRecommendation]


class TechnicianStatsResponse(BaseModel):
    technician_id: UUID
    display_name: str
    total_jobs_completed: int
    average_rating: float
    total_ratings: int


class EarningsSummaryResponse(BaseModel):
    technician_id: UUID
    start: datetime
    end: datetime
    total_earnings: float
    jobs_completed: int
    average_job_value: float
    top_service_type: Optional[str] = None
    
    model_config = {"from_attributes": True}


class EarningsPeriodsResponse(BaseModel):
    today: float
    this_week: float
    this_month: float
    
    model_config = {"from_attributes": True}


class DailyEarningsResponse(BaseModel):
    date: str
    earnings: float
    jobs: int
    
    model_config = {"from_attributes": True}


# Router
router = APIRouter(prefix="/technicians", tags=["technicians"])


@router.get("", response_model=List[TechnicianProfile])
def list_technicians(
    skill: Optional[str] = Query(None, description="Only technicians with this skill"),
    service_area: Optional[str] = Query(None, description="Only technicians covering this area"),
    service: TechnicianService = Depends(get_technician_service),
) -> List[TechnicianProfile]:
    """
    List active, approved technicians.
    
    Query parameters:
    - skill: Filter by skill tag
    - service_area: Filter by covered area
    """
    if skill:
        technicians = service.get_technicians_by_skill(skill)
    else:
        technicians = service.list_technicians()
    if service_area:
        technicians = [t for t in technicians if service_area in t.service_areas]
    return technicians


@router.get("/available", response_model=List[TechnicianProfile])
def list_available_technicians(
    service: TechnicianService = Depends(get_technician_service),
) -> List[TechnicianProfile]:
    """Technicians marked available with capacity left today."""
    return service.get_available_technicians()


@router.post("/recommendations", response_model=RecommendationResponse)
def get_recommendations(
    body: RecommendationRequest,
    service: MatchingService = Depends(get_matching_service),
) -> RecommendationResponse:
    """
    Rank technicians for a job.
    
    Ordered by match score (0-100) descending; ties by technician id.
    """
    recommendations = service.get_assignment_recommendations(
        required_skills=body.required_skills,
        service_area=body.service_area,
        complexity=body.complexity,
        max_results=body.max_results,
    )
    return RecommendationResponse(
        recommended_team_size=recommended_team_size(body.complexity),
        recommendations=recommendations,
    )


@router.post("/backfill-stats", response_model=List[TechnicianStatsResponse])
def backfill_stats(
    service: TechnicianService = Depends(get_technician_service),
) -> List[Dict[str, Any]]:
    """Recompute completed-job counts and ratings from booking history."""
    return service.backfill_stats()


@router.get("/{technician_id}", response_model=TechnicianProfile)
def get_technician(
    technician_id: str,
    service: TechnicianService = Depends(get_technician_service),
) -> TechnicianProfile:
    return service.get_technician(technician_id)


@router.get("/{technician_id}/can-handle")
def check_can_handle(
    technician_id: str,
    complexity: JobComplexity = Query(...),
    service: TechnicianService = Depends(get_technician_service),
) -> Dict[str, Any]:
    """Whether the technician's level is enough to take the job solo."""
    technician = service.get_technician(technician_id)
    return {
        "technician_id": str(technician.id),
        "complexity": complexity.value,
        "can_handle_alone": can_handle_job_alone(technician.level, complexity),
        "recommended_team_size": recommended_team_size(complexity),
    }


@router.patch("/{technician_id}/availability", response_model=TechnicianProfile)
def update_availability(
    technician_id: str,
    body: AvailabilityUpdateRequest,
    service: TechnicianService = Depends(get_technician_service),
) -> TechnicianProfile:
    """Manual availability override (emergency, unavailable, ...)."""
    return service.update_availability(technician_id, body.availability_status)


@router.get("/{technician_id}/earnings", response_model=EarningsSummaryResponse)
def get_technician_earnings(
    technician_id: str,
    start: datetime = Query(..., description="Range start (ISO 8601)"),
    end: datetime = Query(..., description="Range end (ISO 8601), inclusive"),
    service: EarningsService = Depends(get_earnings_service),
):
    """Payouts earned from bookings completed within the range."""
    return EarningsSummaryResponse.model_validate(service.get_technician_earnings(technician_id, start, end))


@router.get("/{technician_id}/earnings/periods", response_model=EarningsPeriodsResponse)
def get_earnings_periods(
    technician_id: str,
    service: EarningsService = Depends(get_earnings_service),
):
    """Earnings today, this week (from Monday) and this month."""
    return EarningsPeriodsResponse.model_validate(service.get_technician_earnings_periods(technician_id))


@router.get("/{technician_id}/earnings/daily", response_model=List[DailyEarningsResponse])
def get_daily_earnings(
    technician_id: str,
    days: int = Query(7, ge=1, le=366, description="Number of days ending today"),
    service: EarningsService = Depends(get_earnings_service),
):
    """Earnings per day, oldest first, zero-filled."""
    return [DailyEarningsResponse.model_validate(day) for day in service.get_daily_earnings(technician_id, days)]
