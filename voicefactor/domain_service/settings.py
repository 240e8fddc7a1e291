"""Domain service settings."""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DomainServiceSettings(BaseSettings):
    """Enrollment, matching and lockout configuration."""

    model_config = SettingsConfigDict(
        env_prefix="VOICEFACTOR_SERVICE_",
        env_file=".env",
        extra="ignore",
    )

    # Enrollment settings
    min_successful_samples: int = 3
    max_enrollment_attempts: int = 5
    consistency_threshold: float = 0.75
    reference_snr_db: float = 30.0

    # Verification settings
    similarity_threshold: float = 0.80

    # Lockout settings
    max_failed_attempts: int = 5
    lockout_window_seconds: int = 900

    @field_validator("similarity_threshold", "consistency_threshold")
    @classmethod
    def validate_similarity(cls, v: float) -> float:
        if not -1.0 <= v <= 1.0:
            raise ValueError("similarity thresholds must be between -1.0 and 1.0")
        return v

    @model_validator(mode="after")
    def validate_attempt_bounds(self) -> "DomainServiceSettings":
        if self.min_successful_samples < 2:
            raise ValueError("min_successful_samples must be at least 2")
        if self.max_enrollment_attempts < self.min_successful_samples:
            raise ValueError(
                "max_enrollment_attempts must be >= min_successful_samples"
            )
        return self


settings = DomainServiceSettings()
