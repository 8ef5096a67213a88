import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("wa_assistant.api")


def _get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _envelope(request: Request, status_code: int, detail, headers: dict | None = None) -> JSONResponse:
    request_id = _get_request_id(request)
    response = JSONResponse(
        status_code=status_code,
        content={"detail": detail, "request_id": request_id},
        headers=headers,
    )
    # Handlers for unhandled errors run outside the request-id middleware.
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


def register_exception_handlers(app: FastAPI) -> None:
    # Starlette's class (not FastAPI's subclass) so routing 404/405 are covered too.
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _envelope(request, exc.status_code, exc.detail, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _envelope(request, 422, jsonable_encoder(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_exception request_id=%s", _get_request_id(request), exc_info=exc)
        return _envelope(request, 500, "Internal Server Error")

