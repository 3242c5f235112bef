# backend/studio_booking/errors.py
"""
Unified error envelope.

Every error response is a problem document:
``{"type", "title", "status", "detail", "instance", "code"?, "errors"?}``.
Domain exceptions that escape a route are converted here as well, so a
route never has to catch them just to produce the right status code.
"""

import logging
from typing import Any, Dict, NamedTuple, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException
from .monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    404: "Not Found",
    409: "Conflict",
    410: "Gone",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


class _ParsedDetail(NamedTuple):
    text: Optional[str]
    code: Optional[str]
    errors: Optional[Any]


def _problem(
    *,
    status: int,
    detail: Optional[str] = None,
    instance: Optional[str] = None,
    code: Optional[str] = None,
    errors: Optional[Any] = None,
) -> Dict[str, Any]:
    problem: Dict[str, Any] = {
        "type": "about:blank",
        "title": _TITLES.get(status, "Error"),
        "status": status,
        "detail": detail or "",
        "instance": instance or "",
    }
    if code:
        problem["code"] = code
    if errors:
        problem["errors"] = errors
    return problem


def _parse_detail(detail: Any) -> _ParsedDetail:
    """Split an HTTPException detail into message, machine code and field errors."""
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("detail")
        code = detail.get("code")
        return _ParsedDetail(
            message if isinstance(message, str) else None,
            code if isinstance(code, str) else None,
            detail.get("details") or detail.get("errors"),
        )
    if detail is None:
        return _ParsedDetail(None, None, None)
    return _ParsedDetail(str(detail), None, None)


def _http_problem_response(
    request: Request, status_code: int, detail: Any, headers: Optional[Dict[str, str]]
) -> JSONResponse:
    parsed = _parse_detail(detail)
    problem = _problem(
        status=status_code,
        detail=parsed.text,
        instance=request.url.path,
        code=parsed.code,
        errors=jsonable_encoder(parsed.errors) if parsed.errors is not None else None,
    )
    return JSONResponse(problem, status_code=status_code, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        http_exc = exc.to_http_exception()
        route = request.scope.get("route")
        prometheus_metrics.record_error(exc.code, getattr(route, "path", request.url.path))
        if http_exc.status_code >= 500:
            logger.error(
                "domain_error",
                extra={"code": exc.code, "path": request.url.path, "error": exc.message},
            )
        return _http_problem_response(
            request, http_exc.status_code, http_exc.detail, http_exc.headers
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _http_problem_response(request, exc.status_code, exc.detail, exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _http_problem_response(
            request, exc.status_code, exc.detail, getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        problem = _problem(
            status=422,
            detail="Request validation failed",
            instance=request.url.path,
            code="VALIDATION_ERROR",
            errors=jsonable_encoder(exc.errors()),
        )
        return JSONResponse(problem, status_code=422)
