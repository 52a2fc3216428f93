from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from salesflow.context import get_correlation_id
from salesflow.core.errors import PipelineError

logger = logging.getLogger("salesflow.errors")


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    logger.info("request.rejected", extra={"status_code": exc.status_code, "error": exc.message})
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("request.integrity_error", extra={"error": str(exc.orig)})
    return error_response(
        request,
        status_code=status.HTTP_409_CONFLICT,
        code="duplicate_constraint",
        message="request conflicts with an existing record",
    )
