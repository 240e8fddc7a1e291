"""Audio capture settings."""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AudioSettings(BaseSettings):
    """Capture and decoding configuration."""

    model_config = SettingsConfigDict(
        env_prefix="VOICEFACTOR_AUDIO_",
        env_file=".env",
        extra="ignore",
    )

    # Decoded audio is normalized to this rate, mono
    target_sample_rate: int = 16000

    # Eligibility bounds for extraction
    min_duration: float = 2.0  # seconds
    max_duration: float = 15.0  # seconds

    # Fixed recording window of a capture session
    capture_window: float = 5.0  # seconds

    @model_validator(mode="after")
    def check_duration_bounds(self) -> "AudioSettings":
        if self.min_duration <= 0 or self.min_duration > self.max_duration:
            raise ValueError("min_duration must be positive and <= max_duration")
        return self


settings = AudioSettings()
