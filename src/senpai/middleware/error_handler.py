"""Global error handlers — consistent JSON error responses.

Body shape: ``{"detail": <message>, "kind": <ErrorKind>}``. Domain errors keep
their kind; transient database failures become ``unavailable``; anything else
is logged and returned as a plain 500.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from senpai.errors import HTTP_STATUS, DomainError, ErrorKind

logger = structlog.get_logger()


def domain_error_response(exc: DomainError) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_STATUS[exc.kind],
        content={"detail": exc.message, "kind": exc.kind.value},
        headers={"Retry-After": "1"} if exc.retryable else None,
    )


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
        """Map typed business errors to their HTTP status."""
        logger.info(
            "domain_error",
            path=request.url.path,
            kind=exc.kind.value,
            error=exc.message,
        )
        return domain_error_response(exc)

    @app.exception_handler(OperationalError)
    @app.exception_handler(InterfaceError)
    async def persistence_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Transient database failures are reported as retryable."""
        logger.warning(
            "persistence_unavailable",
            path=request.url.path,
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=HTTP_STATUS[ErrorKind.UNAVAILABLE],
            content={"detail": "Service temporarily unavailable", "kind": ErrorKind.UNAVAILABLE.value},
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle request validation errors with consistent JSON format."""
        return JSONResponse(
            status_code=422,
            content={
                "detail": "Validation error",
                "kind": ErrorKind.VALIDATION_ERROR.value,
                "errors": jsonable_errors(exc),
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions — always return JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Pydantic error dicts may hold exception objects in ``ctx``."""
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors
