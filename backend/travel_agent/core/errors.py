"""
Error taxonomy shared by the store, the generation session and the routes.
Each error carries the HTTP status it maps to when it escapes a route.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class ItineraryError(Exception):
    status_code: int = 500

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class SchemaValidationError(ItineraryError):
    """Data does not match the itinerary schema; `path` names the offending field."""

    status_code = 400

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}" if path else message, details={"path": path})
        self.path = path


class RequestValidationFailed(ItineraryError):
    status_code = 400


class NotFoundError(ItineraryError):
    status_code = 404


class ConflictError(ItineraryError):
    status_code = 409


class InvariantViolation(ItineraryError):
    status_code = 400


class ProviderError(ItineraryError):
    status_code = 500


class PersistenceError(ItineraryError):
    status_code = 500


NotPersistable = PersistenceError


def _format_location(loc: tuple | list) -> str:
    parts = [str(p) for p in loc if p != "body"]
    return ".".join(parts)


def register_exception_handlers(app: FastAPI) -> None:
    """Render domain errors and request-body errors as {error, details} JSON."""

    @app.exception_handler(ItineraryError)
    async def _itinerary_error_handler(request: Request, exc: ItineraryError):
        print(f"[{request.method} {request.url.path}] {type(exc).__name__}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "details": None},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {"path": _format_location(err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        error = RequestValidationFailed("Invalid request", details=details)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())
