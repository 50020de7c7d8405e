"""
Configuration module for the Visit Pipeline service.
Manages environment variables and application settings.
"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API Configuration
    app_name: str = "Visit Pipeline Conversion Engine"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False, description="Enable auto-reload and verbose logs")
    api_secret: str = Field(..., description="Shared secret expected in the X-Api-Key header")

    # MongoDB Configuration
    mongo_url: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URL")
    mongo_db_name: str = Field(default="visit_pipeline", description="Database name")
    mongo_site_visits_collection: str = "siteVisits"
    mongo_follow_ups_collection: str = "followUpVisits"
    mongo_customers_collection: str = "customers"
    mongo_quotations_collection: str = "quotations"
    mongo_users_collection: str = "users"

    # Business rule overrides
    gst_percentage: float = Field(default=8.9, ge=0, description="GST included in project values")
    advance_payment_percentage: int = Field(default=90, ge=0, le=100)
    default_system_kw: float = Field(default=3, gt=0, description="Capacity used when none can be derived")
    phase_threshold_kw: float = Field(default=6, gt=0, description="Capacity at which three-phase is selected")
    default_panel_watts: int = Field(default=530, gt=0)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
