"""
Business rules for pricing, revenue split and technician workload.

Centralises the rate constants the booking and catalog flows share:
- Revenue split between platform and technician (must add up to 1)
- Catalog service and maintenance fee rates
- Default daily job cap and busy auto-recovery policy
- Whether booking status changes are checked against the transition table
"""
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from hvac_dispatch.lib.logging import get_logger
from hvac_dispatch.lib.settings import settings


logger = get_logger(__name__)

RATE_TOLERANCE = 1e-9


class BusinessRules(BaseModel):
    """Rate constants and lifecycle policy switches."""
    
    platform_commission_rate: float = Field(
        default=0.10,
        ge=0,
        le=1,
        description="Share of final cost kept by the platform"
    )
    technician_payout_rate: float = Field(
        default=0.90,
        ge=0,
        le=1,
        description="Share of final cost paid to the technician"
    )
    service_fee_rate: float = Field(
        default=0.02,
        ge=0,
        le=1,
        description="Catalog service fee rate"
    )
    maintenance_fee_rate: float = Field(
        default=0.01,
        ge=0,
        le=1,
        description="Catalog maintenance fee rate"
    )
    default_max_jobs_per_day: int = Field(
        default=8,
        ge=1,
        le=50,
        description="Daily job cap when a technician profile has none"
    )
    recover_manual_busy: bool = Field(
        default=True,
        description="Let a manually set 'busy' recover to 'available' like an automatic one"
    )
    enforce_status_transitions: bool = Field(
        default=True,
        description="Reject booking status changes outside the transition table"
    )
    default_recommendation_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Recommendations returned when the caller gives no limit"
    )
    
    @model_validator(mode="after")
    def _split_must_cover_final_cost(self) -> "BusinessRules":
        total = self.platform_commission_rate + self.technician_payout_rate
        if abs(total - 1) > RATE_TOLERANCE:
            raise ValueError(
                "platform_commission_rate and technician_payout_rate must add up to 1 "
                f"(got {total})"
            )
        return self
    
    @property
    def total_fee_rate(self) -> float:
        return self.service_fee_rate + self.maintenance_fee_rate
    
    @classmethod
    def from_settings(cls) -> "BusinessRules":
        return cls(
            platform_commission_rate=settings.platform_commission_rate,
            technician_payout_rate=settings.technician_payout_rate,
            service_fee_rate=settings.service_fee_rate,
            maintenance_fee_rate=settings.maintenance_fee_rate,
            default_max_jobs_per_day=settings.default_max_jobs_per_day,
            recover_manual_busy=settings.recover_manual_busy,
            enforce_status_transitions=settings.enforce_status_transitions,
            default_recommendation_limit=settings.default_recommendation_limit,
        )


_business_rules: Optional[BusinessRules] = None


def get_business_rules() -> BusinessRules:
    """
    Get the active business rules.
    
    Returns:
        BusinessRules built from settings on first use, or the override
        installed with set_business_rules()
    """
    global _business_rules
    if _business_rules is None:
        _business_rules = BusinessRules.from_settings()
        logger.info("Initialized business rules from settings")
    return _business_rules


def set_business_rules(rules: BusinessRules) -> None:
    """Override the active business rules."""
    global _business_rules
    _business_rules = rules
    logger.info("Updated business rules", extra={
        "platform_commission_rate": rules.platform_commission_rate,
        "technician_payout_rate": rules.technician_payout_rate,
    })


def reset_business_rules() -> None:
    """Drop any override so the next read rebuilds from settings."""
    global _business_rules
    _business_rules = None
