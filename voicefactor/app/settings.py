"""API settings configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class APISettings(BaseSettings):
    """Settings for the voicefactor API server."""

    model_config = SettingsConfigDict(
        env_prefix="VOICEFACTOR_API_",
        env_file=".env",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = Field(default=8000, validation_alias="PORT")
    log_level: str = "info"

    # Set by the upstream auth gateway after the password step succeeded
    identity_header: str = "X-Authenticated-User"
    session_header: str = "X-Session-Id"


settings = APISettings()
