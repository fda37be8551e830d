"""
Unit tests for the matching engine: match score, reasons and ranking.
"""
from fractions import Fraction
from unittest.mock import patch
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import OperationalError

from hvac_dispatch.lib.errors import DataSourceException, ValidationException
from hvac_dispatch.lib.metrics import get_metrics_collector
from hvac_dispatch.models.technicians import TechnicianLevel, AvailabilityStatus, JobComplexity
from hvac_dispatch.services.matching_service import (
    MatchingService,
    build_recommendation,
    calculate_match_score,
    can_handle_job_alone,
    rank_recommendations,
    recommended_team_size,
    score_breakdown,
)
from hvac_dispatch.services.technician_service import TechnicianProfile


def profile(**overrides) -> TechnicianProfile:
    fields = {
        "id": uuid4(),
        "display_name": "Kofi Boateng",
        "level": TechnicianLevel.SENIOR,
        "skills": ["ac_installation", "ac_repair"],
        "service_areas": ["Accra"],
        "availability_status": AvailabilityStatus.AVAILABLE,
        "current_job_ids": ["job-1", "job-2"],
        "max_jobs_per_day": 8,
    }
    fields.update(overrides)
    return TechnicianProfile(**fields)


@pytest.mark.unit
def test_example_scenario_rounds_final_sum_half_up():
    """40 + 20 + 20 + 10 + 7.5 = 97.5 -> 98."""
    technician = profile()
    
    breakdown = score_breakdown(technician, ["ac_installation", "ac_repair"], "Accra", JobComplexity.COMPLEX)
    
    assert breakdown.skills == 40
    assert breakdown.service_area == 20
    assert breakdown.level == 20
    assert breakdown.availability == 10
    assert breakdown.workload == 7.5
    assert breakdown.total == 97.5
    assert calculate_match_score(technician, ["ac_installation", "ac_repair"], "Accra", "complex") == 98


@pytest.mark.unit
@pytest.mark.parametrize("technician", [
    profile(),
    profile(skills=[], service_areas=[], level=TechnicianLevel.TRAINEE),
    profile(availability_status=AvailabilityStatus.UNAVAILABLE, current_job_ids=["a"] * 12),
])
def test_empty_required_skills_award_full_skill_points(technician):
    assert score_breakdown(technician, [], "Kumasi", JobComplexity.SIMPLE).skills == 40


@pytest.mark.unit
def test_partial_skill_coverage_is_not_rounded_per_term():
    technician = profile(skills=["ac_repair"])
    
    breakdown = score_breakdown(technician, ["ac_repair", "ductwork", "welding"], "Accra", JobComplexity.SIMPLE)
    
    assert breakdown.skills == pytest.approx(40 / 3)


@pytest.mark.unit
def test_exact_half_total_rounds_up():
    """20 x 1/3 + 10 x (1 - 5/12) = 12.5 exactly -> 13."""
    technician = profile(
        level=TechnicianLevel.TRAINEE,
        skills=[],
        service_areas=["Tema"],
        availability_status=AvailabilityStatus.BUSY,
        current_job_ids=[f"job-{n}" for n in range(5)],
        max_jobs_per_day=12,
    )
    
    breakdown = score_breakdown(technician, ["ductwork"], "Accra", JobComplexity.MODERATE)
    
    assert breakdown.total == Fraction(25, 2)
    assert calculate_match_score(technician, ["ductwork"], "Accra", JobComplexity.MODERATE) == 13


@pytest.mark.unit
def test_unknown_required_skills_score_zero_without_error():
    technician = profile()
    
    breakdown = score_breakdown(technician, ["geothermal"], "Accra", JobComplexity.SIMPLE)
    
    assert breakdown.skills == 0


@pytest.mark.unit
def test_duplicate_required_skills_counted_once():
    technician = profile(skills=["ac_repair"])
    
    assert score_breakdown(technician, ["ac_repair", "ac_repair"], "Accra", "simple").skills == 40


@pytest.mark.unit
def test_service_area_is_all_or_nothing():
    technician = profile(service_areas=["Accra", "Tema"])
    
    assert score_breakdown(technician, [], "Tema", "simple").service_area == 20
    assert score_breakdown(technician, [], "Kumasi", "simple").service_area == 0


@pytest.mark.unit
@pytest.mark.parametrize("level", [TechnicianLevel.SENIOR, TechnicianLevel.LEAD, TechnicianLevel.SUPERVISOR])
def test_overqualified_technician_gets_full_level_points(level):
    assert score_breakdown(profile(level=level), [], "Accra", JobComplexity.COMPLEX).level == 20


@pytest.mark.unit
def test_underqualified_technician_gets_linear_partial_credit():
    trainee = profile(level=TechnicianLevel.TRAINEE)
    junior = profile(level=TechnicianLevel.JUNIOR)
    
    assert score_breakdown(trainee, [], "Accra", JobComplexity.EXPERT).level == pytest.approx(4.0)
    assert score_breakdown(junior, [], "Accra", JobComplexity.COMPLEX).level == pytest.approx(10.0)


@pytest.mark.unit
@pytest.mark.parametrize("availability,points", [
    (AvailabilityStatus.AVAILABLE, 10),
    (AvailabilityStatus.EMERGENCY, 5),
    (AvailabilityStatus.BUSY, 0),
    (AvailabilityStatus.UNAVAILABLE, 0),
])
def test_availability_points(availability, points):
    assert score_breakdown(profile(availability_status=availability), [], "Accra", "simple").availability == points


@pytest.mark.unit
def test_workload_headroom_never_negative():
    overloaded = profile(current_job_ids=[f"job-{i}" for i in range(10)], max_jobs_per_day=8)
    idle = profile(current_job_ids=[])
    
    assert score_breakdown(overloaded, [], "Accra", "simple").workload == 0
    assert score_breakdown(idle, [], "Accra", "simple").workload == 10


@pytest.mark.unit
def test_match_score_bounds():
    best = profile(level=TechnicianLevel.LEAD, current_job_ids=[])
    worst = profile(
        level=TechnicianLevel.TRAINEE,
        skills=[],
        service_areas=[],
        availability_status=AvailabilityStatus.UNAVAILABLE,
        current_job_ids=[f"job-{i}" for i in range(8)],
    )
    
    assert calculate_match_score(best, ["ac_repair"], "Accra", "expert") == 100
    assert calculate_match_score(worst, ["ac_repair"], "Accra", "expert") == 4


@pytest.mark.unit
def test_unknown_complexity_is_rejected():
    with pytest.raises(ValidationException):
        calculate_match_score(profile(), [], "Accra", "impossible")


@pytest.mark.unit
def test_reasons_in_fixed_order():
    recommendation = build_recommendation(profile(skills=["ac_repair"]), ["ac_repair", "ductwork"], "Accra", "complex")
    
    assert recommendation.reasons == [
        "Has 1/2 required skills",
        "Covers Accra",
        "Available now",
        "Capacity: 2/8 jobs",
    ]
    assert recommendation.matching_skills == ["ac_repair"]
    assert recommendation.missing_skills == ["ductwork"]
    assert recommendation.has_required_skills is False


@pytest.mark.unit
def test_reasons_only_for_conditions_that_hold():
    technician = profile(
        skills=[],
        availability_status=AvailabilityStatus.BUSY,
        current_job_ids=[f"job-{i}" for i in range(8)],
    )
    
    recommendation = build_recommendation(technician, ["ac_repair"], "Kumasi", "simple")
    
    assert recommendation.reasons == []
    assert recommendation.current_workload == 8
    assert recommendation.max_jobs_per_day == 8


@pytest.mark.unit
def test_no_required_skills_means_has_required_skills():
    recommendation = build_recommendation(profile(), [], "Accra", "simple")
    
    assert recommendation.has_required_skills is True
    assert recommendation.reasons[0] == "Covers Accra"


@pytest.mark.unit
def test_rank_sorts_by_score_then_id_and_truncates():
    low_id = UUID("00000000-0000-0000-0000-000000000001")
    high_id = UUID("00000000-0000-0000-0000-000000000002")
    strong = profile(id=uuid4(), level=TechnicianLevel.LEAD, current_job_ids=[])
    tie_b = profile(id=high_id)
    tie_a = profile(id=low_id)
    weak = profile(id=uuid4(), service_areas=["Kumasi"])
    
    ranked = rank_recommendations([weak, tie_b, strong, tie_a], ["ac_repair"], "Accra", "complex", max_results=3)
    
    assert [r.technician_id for r in ranked] == [strong.id, low_id, high_id]
    scores = [r.match_score for r in ranked]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.unit
def test_rank_rejects_non_positive_limit():
    with pytest.raises(ValidationException):
        rank_recommendations([profile()], [], "Accra", "simple", max_results=0)


@pytest.mark.unit
@pytest.mark.parametrize("level,complexity,expected", [
    (TechnicianLevel.TRAINEE, JobComplexity.SIMPLE, False),
    (TechnicianLevel.JUNIOR, JobComplexity.SIMPLE, True),
    (TechnicianLevel.TECHNICIAN, JobComplexity.COMPLEX, False),
    (TechnicianLevel.SENIOR, JobComplexity.COMPLEX, True),
    (TechnicianLevel.SENIOR, JobComplexity.EXPERT, False),
    (TechnicianLevel.SUPERVISOR, JobComplexity.EXPERT, True),
])
def test_can_handle_job_alone(level, complexity, expected):
    assert can_handle_job_alone(level, complexity) is expected


@pytest.mark.unit
def test_recommended_team_size():
    assert recommended_team_size("simple") == 1
    assert recommended_team_size("moderate") == 1
    assert recommended_team_size("complex") == 2
    assert recommended_team_size("expert") == 3


@pytest.mark.unit
def test_recommendations_from_empty_pool(db_session):
    assert MatchingService(db_session).get_assignment_recommendations([], "Accra", "simple") == []


@pytest.mark.unit
def test_recommendations_only_include_active_approved(db_session, make_technician):
    approved = make_technician()
    make_technician(is_approved=False)
    make_technician(is_active=False)
    
    recommendations = MatchingService(db_session).get_assignment_recommendations(
        ["ac_repair"], "Accra", JobComplexity.MODERATE,
    )
    
    assert [r.technician_id for r in recommendations] == [approved.id]
    assert get_metrics_collector().get_counter_value("recommendation_requests_total") == 1


@pytest.mark.unit
def test_recommendations_respect_limit_and_pool_size(db_session, make_technician):
    for _ in range(4):
        make_technician()
    service = MatchingService(db_session)
    
    assert len(service.get_assignment_recommendations([], "Accra", "simple", max_results=2)) == 2
    assert len(service.get_assignment_recommendations([], "Accra", "simple", max_results=10)) == 4


@pytest.mark.unit
def test_recommendations_fill_missing_daily_cap(db_session, make_technician):
    make_technician(max_jobs_per_day=None, current_job_ids=["job-1", "job-2"])
    
    recommendation = MatchingService(db_session).get_assignment_recommendations([], "Accra", "simple")[0]
    
    assert recommendation.max_jobs_per_day == 8
    assert "Capacity: 2/8 jobs" in recommendation.reasons


@pytest.mark.unit
def test_recommendations_pool_read_failure_is_wrapped(db_session, make_technician):
    make_technician()
    service = MatchingService(db_session)
    error = OperationalError("SELECT", {}, Exception("database is down"))
    
    with patch.object(db_session, "execute", side_effect=error):
        with pytest.raises(DataSourceException) as exc_info:
            service.get_assignment_recommendations(["ac_repair"], "Accra", "simple")
    
    assert exc_info.value.message == "Failed to fetch technicians"
    assert exc_info.value.status_code == 503
