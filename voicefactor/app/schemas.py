"""Request and response schemas.

Request bodies forbid unknown fields, so a client cannot pass a user id
alongside the audio. The user always comes from the authenticated session.
"""

from pydantic import BaseModel, ConfigDict, Field


class AudioPayload(BaseModel):
    """One base64-encoded audio capture."""

    model_config = ConfigDict(extra="forbid")

    audio_data: str = Field(min_length=1)
    audio_format: str | None = None  # container hint, e.g. "wav" or "webm"


class EnrollRequest(BaseModel):
    """Enrollment request: several captures of the same user."""

    model_config = ConfigDict(extra="forbid")

    captures: list[AudioPayload] = Field(min_length=1)


class CaptureReportResponse(BaseModel):
    index: int
    accepted: bool
    reason: str | None = None
    snr_db: float | None = None


class EnrollResponse(BaseModel):
    status: str
    reason: str
    version: int | None = None
    quality: float | None = None
    captures: list[CaptureReportResponse] = Field(default_factory=list)


class VerifyResponse(BaseModel):
    """Verification result. The similarity score is never returned."""

    decision: str
    reason: str
    retry_after_seconds: int | None = None


class RevokeResponse(BaseModel):
    status: str


class ErrorResponse(BaseModel):
    status: str = "error"
    reason: str
    detail: str
