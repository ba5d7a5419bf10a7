"""Exception handlers that render every failure in the response envelope."""
import logging
from typing import Dict, Type

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import BookingEngineError, NotFoundError

logger = logging.getLogger(__name__)

# Missing records are 404. Anything not listed is a rejected request and maps to 400.
ENGINE_ERROR_STATUS: Dict[Type[BookingEngineError], int] = {
    NotFoundError: 404,
}


def _status_for(exc: BookingEngineError) -> int:
    for error_type, status_code in ENGINE_ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 400


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingEngineError)
    async def engine_exception_handler(request: Request, exc: BookingEngineError):
        return error_response(_status_for(exc), exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(422, "Invalid request data", errors=jsonable_encoder(exc.errors()))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        response = error_response(exc.status_code, str(exc.detail))
        if getattr(exc, "headers", None):
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "An unexpected error occurred")
