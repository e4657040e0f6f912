"""Shared configuration management for the extraction and reconciliation core.

Settings are read from APP_-prefixed environment variables or a .env file:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_MATCH_SUGGEST_THRESHOLD=80
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="fiscal-reconciler",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Extraction
    default_profile: Literal["digital", "scanned"] = Field(
        default="digital",
        description="Extraction profile used when the caller does not pick one",
    )
    min_text_length: int = Field(
        default=50,
        ge=0,
        description="Minimum non-blank characters required to attempt extraction",
    )
    success_threshold: int = Field(
        default=50,
        ge=0,
        le=100,
        description="Confidence must exceed this value for a result to count as successful",
    )
    review_threshold: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Results below this confidence are routed to manual review",
    )
    doctype_table_path: Path | None = Field(
        default=None,
        description="Alternate JSON document-type code table (defaults to the shipped table)",
    )

    # Reconciliation
    match_suggest_threshold: int = Field(
        default=75,
        ge=0,
        le=100,
        description="Minimum partial-match score offered as a suggestion",
    )
    match_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="Issue-date tolerance (days) when comparing against expected invoices",
    )
    match_total_tolerance_ratio: float = Field(
        default=0.10,
        ge=0,
        description="Relative total-amount tolerance when comparing against expected invoices",
    )
    match_total_tolerance_abs: float = Field(
        default=0.01,
        ge=0,
        description="Absolute total-amount tolerance (currency units)",
    )
    match_candidate_limit: int = Field(
        default=20,
        ge=1,
        description="Maximum pending records ranked per reconciliation query",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
