"""
FastAPI glue shared by the HTTP services: caller identity and the error
envelope. Kept out of common/__init__ so the rest of common stays
framework-agnostic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.errors import PipelineError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Identity forwarded by the authenticating gateway."""

    user_id: str
    role: str


def get_caller(
    x_user_id: str = Header(..., min_length=1),
    x_user_role: str = Header("user"),
) -> Caller:
    return Caller(user_id=x_user_id, role=x_user_role)


def _error_response(request: Request, exc: PipelineError) -> JSONResponse:
    logger.error(
        "%s - %s - %s - %s",
        exc.status_code,
        exc.message,
        request.url.path,
        request.method,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()},
    )


def install_error_handlers(app: FastAPI) -> None:
    """Render PipelineError as {"success": false, "error": {...}} with its status code."""

    @app.exception_handler(PipelineError)
    async def _pipeline_error(request: Request, exc: PipelineError) -> JSONResponse:
        return _error_response(request, exc)

    # Request body/header validation uses the same 400 envelope as service-level checks.
    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        ]
        return _error_response(request, ValidationError("Validation Error", details))
