"""Voice factor routes: enroll, verify and revoke."""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from voicefactor.audio.converter import decode_base64_audio

from ..dependencies import EnrollmentDep, IdentityDep, VerificationDep
from ..schemas import (
    AudioPayload,
    CaptureReportResponse,
    EnrollRequest,
    EnrollResponse,
    RevokeResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["voice"])


@router.post(
    "/enroll",
    response_model=EnrollResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": EnrollResponse}},
)
def enroll(
    body: EnrollRequest,
    identity: IdentityDep,
    orchestrator: EnrollmentDep,
) -> JSONResponse:
    """Enroll the authenticated user from several captures."""
    samples = [
        decode_base64_audio(c.audio_data, container_format=c.audio_format)
        for c in body.captures
    ]
    result = orchestrator.enroll(identity, samples)

    response = EnrollResponse(
        status=result.status.value,
        reason=result.reason.value,
        version=result.version,
        quality=result.quality,
        captures=[
            CaptureReportResponse(
                index=r.index,
                accepted=r.accepted,
                reason=r.reason.value if r.reason else None,
                snr_db=r.snr_db,
            )
            for r in result.captures
        ],
    )
    content = response.model_dump(mode="json")
    if not result.enrolled:
        return JSONResponse(
            content=content, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY
        )
    return JSONResponse(content=content, status_code=status.HTTP_201_CREATED)


@router.post("/verify", response_model=VerifyResponse)
def verify(
    body: AudioPayload,
    identity: IdentityDep,
    orchestrator: VerificationDep,
) -> VerifyResponse:
    """Check a live capture against the authenticated user's voice template."""
    sample = decode_base64_audio(body.audio_data, container_format=body.audio_format)
    outcome = orchestrator.verify(identity, sample)
    return VerifyResponse(**outcome.to_public())


@router.delete("/enroll", response_model=RevokeResponse)
def revoke(identity: IdentityDep, orchestrator: EnrollmentDep) -> RevokeResponse:
    """Revoke the authenticated user's voice templates."""
    orchestrator.revoke(identity)
    return RevokeResponse(status="revoked")
