"""Dependency injection for FastAPI."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from voicefactor.domain.identity import AuthenticatedIdentity
from voicefactor.domain_service import EnrollmentOrchestrator, VerificationOrchestrator

from .service_loader import get_enrollment, get_verification
from .settings import settings


def get_identity(request: Request) -> AuthenticatedIdentity:
    """Build the caller identity from the trusted gateway header.

    Raises:
        HTTPException: 401 if the request carries no authenticated user.
    """
    user_id = request.headers.get(settings.identity_header, "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authenticated session required",
        )
    return AuthenticatedIdentity(
        user_id=user_id,
        session_id=request.headers.get(settings.session_header),
    )


def get_enrollment_orchestrator() -> EnrollmentOrchestrator:
    """Get enrollment orchestrator instance."""
    return get_enrollment()


def get_verification_orchestrator() -> VerificationOrchestrator:
    """Get verification orchestrator instance."""
    return get_verification()


# Type aliases for dependency injection
IdentityDep = Annotated[AuthenticatedIdentity, Depends(get_identity)]
EnrollmentDep = Annotated[EnrollmentOrchestrator, Depends(get_enrollment_orchestrator)]
VerificationDep = Annotated[
    VerificationOrchestrator, Depends(get_verification_orchestrator)
]
