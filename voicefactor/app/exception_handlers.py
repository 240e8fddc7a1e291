"""Translate engine errors into HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from voicefactor.database.exceptions import TemplateConflictError
from voicefactor.domain.exceptions import InputError

from .schemas import ErrorResponse

logger = logging.getLogger(__name__)


async def input_error_handler(request: Request, exc: InputError) -> JSONResponse:
    """Malformed audio or identity: 400."""
    logger.info(f"Rejected request to {request.url.path}: {exc.reason.value} ({exc})")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(reason=exc.reason.value, detail=str(exc)).model_dump(),
    )


async def template_conflict_handler(request: Request, exc: Exception) -> JSONResponse:
    """Concurrent enrollment for the same user: 409."""
    logger.warning(f"Template conflict on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=ErrorResponse(reason="template_conflict", detail=str(exc)).model_dump(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the handlers to ``app``."""
    app.add_exception_handler(InputError, input_error_handler)
    app.add_exception_handler(TemplateConflictError, template_conflict_handler)
