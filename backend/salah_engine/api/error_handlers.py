"""Error Handlers — global exception handlers for the Salah Engine API.

Invariants:
    - SalahError → structured JSON with error code, message, severity
    - RequestValidationError → field-level error details, except malformed or missing
      lat/lng query values, which get the same INVALID_COORDINATE envelope as out-of-range ones
    - Exception (catch-all) → never leaks internal details

Design Decisions:
    - Three-layer handler: domain (SalahError), validation (Pydantic), catch-all (Exception)
    - Contract violations (4xx) log at WARNING; only 5xx logs at ERROR
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from salah_engine.core.errors import InvalidCoordinateError, SalahError, ErrorSeverity

logger = logging.getLogger(__name__)

_COORDINATE_PARAMS = {"lat": "latitude", "lng": "longitude"}


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_salah_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_salah_error_handler(app: FastAPI) -> None:

    @app.exception_handler(SalahError)
    async def salah_error_handler(request: Request, exc: SalahError):
        """Handle all engine domain/infrastructure errors."""
        level = logging.WARNING if exc.http_status < 500 else logging.ERROR
        logger.log(
            level,
            f"SalahError: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
        )


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        coordinate_error = _coordinate_error(exc)
        if coordinate_error is not None:
            return JSONResponse(
                status_code=coordinate_error.http_status,
                content=coordinate_error.to_response(),
            )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all — never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": "validation",
            "severity": ErrorSeverity.ERROR.value,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }


def _coordinate_error(exc: RequestValidationError) -> InvalidCoordinateError | None:
    """First lat/lng query error as a coordinate contract violation, if any."""
    for e in exc.errors():
        loc = tuple(e["loc"])
        if len(loc) == 2 and loc[0] == "query" and loc[1] in _COORDINATE_PARAMS:
            return InvalidCoordinateError(_COORDINATE_PARAMS[loc[1]], e.get("input"))
    return None
