"""
Error handlers - map actionflow errors to RFC 7807 responses.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from actionflow.api.schemas.common import ErrorDetail, ProblemDetail
from actionflow.core.errors import ActionFlowError, ErrorCategory
from actionflow.core.logging import get_logger

logger = get_logger(__name__)

# ── Error category → HTTP status mapping ─────────────────────────────────

CATEGORY_TO_STATUS: dict[ErrorCategory, int] = {
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.CONFIG: 400,
    ErrorCategory.ACTION: 500,
    ErrorCategory.STORAGE: 500,
    ErrorCategory.INTERNAL: 500,
    ErrorCategory.UNKNOWN: 500,
}

_TITLES: dict[int, str] = {
    400: "Invalid request",
    404: "Not found",
    500: "Internal Server Error",
}


def status_for_category(category: ErrorCategory) -> int:
    return CATEGORY_TO_STATUS.get(category, 500)


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    errors: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance,
        errors=[ErrorDetail(**e) for e in errors or []],
    )
    return JSONResponse(status_code=status, content=body.model_dump())


async def actionflow_error_handler(request: Request, exc: ActionFlowError) -> JSONResponse:
    status = status_for_category(exc.category)
    errors = None
    field = getattr(exc, "field", None) or getattr(exc, "key", None)
    if field:
        errors = [{"code": exc.category.value, "message": exc.message, "field": field}]
    if status >= 500:
        logger.error("api.error", path=request.url.path, **exc.to_dict())
    return problem_response(
        status=status,
        title=_TITLES.get(status, exc.__class__.__name__),
        detail=exc.message,
        instance=str(request.url.path),
        errors=errors,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions - returns 500 with ProblemDetail."""
    logger.exception("api.unhandled_error", path=request.url.path)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred.",
        instance=str(request.url.path),
    )


__all__ = [
    "CATEGORY_TO_STATUS",
    "actionflow_error_handler",
    "problem_response",
    "status_for_category",
    "unhandled_exception_handler",
]
