"""
Team API routes.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from hvac_dispatch.api.dependencies import get_technician_service
from hvac_dispatch.services.technician_service import TeamProfile, TechnicianService


# Pydantic schemas
class TeamCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    lead_technician_id: UUID
    member_ids: List[UUID] = Field(default_factory=list, description="Lead is added automatically")


# Router
router = APIRouter(prefix="/teams", tags=["teams"])


@router.post("", response_model=TeamProfile, status_code=status.HTTP_201_CREATED)
def create_team(
    body: TeamCreateRequest,
    service: TechnicianService = Depends(get_technician_service),
) -> TeamProfile:
    """Create a team; members are tagged with the new team and the lead flagged."""
    return service.create_team(body.name, body.lead_technician_id, body.member_ids)


@router.get("", response_model=List[TeamProfile])
def list_teams(service: TechnicianService = Depends(get_technician_service)) -> List[TeamProfile]:
    return service.list_teams()


@router.get("/{team_id}", response_model=TeamProfile)
def get_team(
    team_id: str,
    service: TechnicianService = Depends(get_technician_service),
) -> TeamProfile:
    return service.get_team(team_id)
