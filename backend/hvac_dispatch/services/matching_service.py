"""
Matching Engine - technician scoring and assignment recommendations.

SCORING (0-100, integer):
    skills        40  share of the required skills the technician has
                      (no required skills -> full 40)
    service area  20  all-or-nothing: technician covers the job's area
    level fit     20  full when the level meets the complexity requirement,
                      otherwise 20 × level_ordinal / required_ordinal
    availability  10  available 10, emergency 5, anything else 0
    workload      10  10 × max(0, 1 - current_jobs / max_jobs_per_day)

    Sub-scores are exact fractions summed unrounded; only the total is
    rounded (half-up), so 97.5 becomes 98 and 12.5 becomes 13.

RANKING:
    Every active, approved technician is scored; the list is ordered by
    score descending, ties by technician id ascending, then truncated.
"""
import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from hvac_dispatch.lib.business_rules import BusinessRules, get_business_rules
from hvac_dispatch.lib.errors import ValidationException
from hvac_dispatch.lib.logging import get_logger
from hvac_dispatch.lib.metrics import MetricsCollector, get_metrics_collector
from hvac_dispatch.models.technicians import TechnicianLevel, AvailabilityStatus, JobComplexity
from hvac_dispatch.services.technician_service import TechnicianProfile, TechnicianService

logger = get_logger(__name__)


# Optimization weights (points available per dimension)
WEIGHTS: Dict[str, int] = {
    "skills": 40,
    "service_area": 20,
    "level": 20,
    "availability": 10,
    "workload": 10,
}

LEVEL_ORDINALS: Dict[TechnicianLevel, int] = {
    TechnicianLevel.TRAINEE: 1,
    TechnicianLevel.JUNIOR: 2,
    TechnicianLevel.TECHNICIAN: 3,
    TechnicianLevel.SENIOR: 4,
    TechnicianLevel.LEAD: 5,
    TechnicianLevel.SUPERVISOR: 5,
}

COMPLEXITY_REQUIREMENTS: Dict[JobComplexity, int] = {
    JobComplexity.SIMPLE: 2,    # Junior or above
    JobComplexity.MODERATE: 3,  # Technician or above
    JobComplexity.COMPLEX: 4,   # Senior or above
    JobComplexity.EXPERT: 5,    # Lead or above
}

MIN_LEVEL_FOR_COMPLEXITY: Dict[JobComplexity, TechnicianLevel] = {
    JobComplexity.SIMPLE: TechnicianLevel.JUNIOR,
    JobComplexity.MODERATE: TechnicianLevel.TECHNICIAN,
    JobComplexity.COMPLEX: TechnicianLevel.SENIOR,
    JobComplexity.EXPERT: TechnicianLevel.LEAD,
}

TEAM_SIZE_FOR_COMPLEXITY: Dict[JobComplexity, int] = {
    JobComplexity.SIMPLE: 1,
    JobComplexity.MODERATE: 1,
    JobComplexity.COMPLEX: 2,
    JobComplexity.EXPERT: 3,
}

AVAILABILITY_POINTS: Dict[AvailabilityStatus, int] = {
    AvailabilityStatus.AVAILABLE: 10,
    AvailabilityStatus.EMERGENCY: 5,
}


@dataclass(frozen=True)
class ScoreBreakdown:
    """Exact (unrounded) contribution of each dimension."""
    skills: Fraction
    service_area: Fraction
    level: Fraction
    availability: Fraction
    workload: Fraction
    
    @property
    def total(self) -> Fraction:
        return self.skills + self.service_area + self.level + self.availability + self.workload
    
    @property
    def match_score(self) -> int:
        # half-up on the exact total
        rounded = math.floor(self.total + Fraction(1, 2))
        return max(0, min(100, rounded))


class AssignmentRecommendation(BaseModel):
    """One ranked candidate for a job. Computed per request, never stored."""
    type: str = "technician"
    technician_id: UUID
    technician_name: str
    technician_level: TechnicianLevel
    match_score: int = Field(ge=0, le=100)
    reasons: List[str] = Field(default_factory=list)
    availability: AvailabilityStatus
    current_workload: int
    max_jobs_per_day: int
    has_required_skills: bool
    matching_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)


def _parse_complexity(complexity) -> JobComplexity:
    try:
        return JobComplexity(complexity)
    except ValueError:
        raise ValidationException(
            f"Unknown job complexity '{complexity}'",
            errors={"complexity": [c.value for c in JobComplexity]},
        )


def _unique(skills: Optional[Iterable[str]]) -> List[str]:
    return list(dict.fromkeys(skills or []))


def level_fit(level: TechnicianLevel, complexity: JobComplexity) -> Fraction:
    """1.0 when the level meets the requirement, otherwise the linear shortfall ratio."""
    technician_ordinal = LEVEL_ORDINALS[TechnicianLevel(level)]
    required_ordinal = COMPLEXITY_REQUIREMENTS[_parse_complexity(complexity)]
    if technician_ordinal >= required_ordinal:
        return Fraction(1)
    return max(Fraction(0), Fraction(technician_ordinal, required_ordinal))


def can_handle_job_alone(level: TechnicianLevel, complexity: JobComplexity) -> bool:
    minimum = MIN_LEVEL_FOR_COMPLEXITY[_parse_complexity(complexity)]
    return LEVEL_ORDINALS[TechnicianLevel(level)] >= LEVEL_ORDINALS[minimum]


def recommended_team_size(complexity: JobComplexity) -> int:
    return TEAM_SIZE_FOR_COMPLEXITY[_parse_complexity(complexity)]


def score_breakdown(
    technician: TechnicianProfile,
    required_skills: Sequence[str],
    service_area: str,
    complexity: JobComplexity,
) -> ScoreBreakdown:
    required = _unique(required_skills)
    
    if required:
        matched = sum(1 for skill in required if skill in technician.skills)
        skills = WEIGHTS["skills"] * Fraction(matched, len(required))
    else:
        skills = Fraction(WEIGHTS["skills"])
    
    area = Fraction(WEIGHTS["service_area"]) if service_area in technician.service_areas else Fraction(0)
    level = WEIGHTS["level"] * level_fit(technician.level, complexity)
    availability = Fraction(AVAILABILITY_POINTS.get(technician.availability_status, 0))
    headroom = 1 - Fraction(technician.current_job_count, technician.max_jobs_per_day)
    workload = WEIGHTS["workload"] * max(Fraction(0), headroom)
    
    return ScoreBreakdown(
        skills=skills,
        service_area=area,
        level=level,
        availability=availability,
        workload=workload,
    )


def calculate_match_score(
    technician: TechnicianProfile,
    required_skills: Sequence[str],
    service_area: str,
    complexity: JobComplexity,
) -> int:
    """Match score for one technician against a job, 0-100."""
    return score_breakdown(technician, required_skills, service_area, complexity).match_score


def build_recommendation(
    technician: TechnicianProfile,
    required_skills: Sequence[str],
    service_area: str,
    complexity: JobComplexity,
) -> AssignmentRecommendation:
    required = _unique(required_skills)
    matching_skills = [skill for skill in required if skill in technician.skills]
    missing_skills = [skill for skill in required if skill not in technician.skills]
    
    reasons = []
    if matching_skills:
        reasons.append(f"Has {len(matching_skills)}/{len(required)} required skills")
    if service_area in technician.service_areas:
        reasons.append(f"Covers {service_area}")
    if technician.availability_status == AvailabilityStatus.AVAILABLE:
        reasons.append("Available now")
    if technician.has_capacity:
        reasons.append(f"Capacity: {technician.current_job_count}/{technician.max_jobs_per_day} jobs")
    
    return AssignmentRecommendation(
        technician_id=technician.id,
        technician_name=technician.display_name,
        technician_level=technician.level,
        match_score=calculate_match_score(technician, required, service_area, complexity),
        reasons=reasons,
        availability=technician.availability_status,
        current_workload=technician.current_job_count,
        max_jobs_per_day=technician.max_jobs_per_day,
        has_required_skills=not missing_skills,
        matching_skills=matching_skills,
        missing_skills=missing_skills,
    )


def rank_recommendations(
    technicians: Iterable[TechnicianProfile],
    required_skills: Sequence[str],
    service_area: str,
    complexity: JobComplexity,
    max_results: int,
) -> List[AssignmentRecommendation]:
    """Score, order (score desc, id asc) and truncate a technician pool."""
    if max_results < 1:
        raise ValidationException("max_results must be at least 1", errors={"max_results": max_results})
    complexity = _parse_complexity(complexity)
    
    recommendations = [
        build_recommendation(technician, required_skills, service_area, complexity)
        for technician in technicians
    ]
    recommendations.sort(key=lambda rec: (-rec.match_score, str(rec.technician_id)))
    return recommendations[:max_results]


class MatchingService:
    """Produces ranked technician recommendations from the technician pool."""
    
    def __init__(
        self,
        db: Session,
        technician_service: Optional[TechnicianService] = None,
        rules: Optional[BusinessRules] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.rules = rules or get_business_rules()
        self.metrics = metrics or get_metrics_collector()
        self.technicians = technician_service or TechnicianService(db, rules=self.rules, metrics=self.metrics)
    
    def get_assignment_recommendations(
        self,
        required_skills: Sequence[str],
        service_area: str,
        complexity: JobComplexity,
        max_results: Optional[int] = None,
    ) -> List[AssignmentRecommendation]:
        """
        Rank every active, approved technician for a job.
        
        Args:
            required_skills: Skill tags the job needs (may be empty)
            service_area: Area/city of the job
            complexity: Job complexity
            max_results: Maximum recommendations (default from business rules)
        
        Returns:
            Recommendations ordered by match score descending
        
        Raises:
            ValidationException: Unknown complexity or max_results < 1
            DataSourceException: Technician pool could not be read (not retried)
        """
        max_results = self.rules.default_recommendation_limit if max_results is None else max_results
        complexity = _parse_complexity(complexity)
        self.metrics.increment_recommendation_requests()
        
        pool = self.technicians.list_technicians()
        recommendations = rank_recommendations(pool, required_skills, service_area, complexity, max_results)
        
        logger.info(
            "Assignment recommendations computed",
            extra={
                "service_area": service_area,
                "complexity": complexity.value,
                "required_skills": list(required_skills or []),
                "pool_size": len(pool),
                "returned": len(recommendations),
                "top_score": recommendations[0].match_score if recommendations else None,
            },
        )
        return recommendations
