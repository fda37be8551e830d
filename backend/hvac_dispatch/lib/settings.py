"""
Application settings loaded from environment variables.
Uses pydantic-settings for validation and .env file support.
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Database
    database_url: str = Field(
        default="sqlite:///./hvac_dispatch.db",
        description="SQLAlchemy connection string (PostgreSQL in production)"
    )
    
    # Application
    app_name: str = Field(default="HVAC Dispatch Backend", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    log_json: bool = Field(default=True, description="Emit JSON log lines")
    
    # Revenue split for completed bookings
    platform_commission_rate: float = Field(
        default=0.10,
        description="Share of a completed booking's final cost kept by the platform"
    )
    technician_payout_rate: float = Field(
        default=0.90,
        description="Share of a completed booking's final cost paid to the technician"
    )
    
    # Catalog fees (applied on top of supplier base prices)
    service_fee_rate: float = Field(default=0.02, description="Platform service fee rate")
    maintenance_fee_rate: float = Field(default=0.01, description="Platform maintenance fee rate")
    
    # Technician workload
    default_max_jobs_per_day: int = Field(
        default=8,
        description="Daily job cap used when a technician profile has none"
    )
    recover_manual_busy: bool = Field(
        default=True,
        description="Auto-recover technicians manually set to busy once under capacity"
    )
    
    # Booking lifecycle
    enforce_status_transitions: bool = Field(
        default=True,
        description="Reject status changes that are not in the transition table"
    )
    
    # Matching
    default_recommendation_limit: int = Field(
        default=10,
        description="Default number of technician recommendations returned"
    )


# Global settings instance
settings = Settings()
