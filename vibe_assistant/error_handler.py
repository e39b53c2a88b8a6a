# vibe_assistant/error_handler.py
"""Maps exceptions to the JSON error bodies the web and bot clients expect."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vibe_assistant.errors import NotFoundError, ValidationError, VibeAssistantError

logger = logging.getLogger("vibe_assistant")

# routes kept for the bot and older clients; they answer {success, data|error}
LEGACY_PREFIXES = ("/api/analyze-idea", "/api/generate-plan", "/api/steps")

INTERNAL_ERROR = "Произошла ошибка"
INVALID_BODY = "Некорректное тело запроса"


def is_legacy_path(path: str) -> bool:
    return any(path == p or path.startswith(p + "/") for p in LEGACY_PREFIXES)


class ErrorHandler:
    """Format error responses for wizard and legacy routes."""

    def error_response(self, request: Request, status_code: int, message: str) -> JSONResponse:
        if is_legacy_path(request.url.path):
            content = {"success": False, "error": message}
        else:
            content = {"error": message, "userFriendly": True}
        return JSONResponse(status_code=status_code, content=content)

    def status_for(self, exc: Exception) -> int:
        if isinstance(exc, NotFoundError):
            return 404
        if isinstance(exc, ValidationError):
            return 400
        return 500

    def format_app_error(self, request: Request, exc: VibeAssistantError) -> JSONResponse:
        status_code = self.status_for(exc)
        if status_code >= 500:
            kind = getattr(exc, "kind", None)
            logger.error("%s %s failed (%s): %s", request.method, request.url.path, kind, exc)
        else:
            logger.warning("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
        return self.error_response(request, status_code, str(exc))

    def format_validation_error(self, request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Request validation error on %s: %s", request.url.path, exc.errors())
        return self.error_response(request, 400, INVALID_BODY)

    def format_http_exception(self, request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404 and exc.detail == "Not Found":
            # no route matched
            return JSONResponse(
                status_code=404,
                content={"success": False, "error": "Endpoint not found", "path": request.url.path},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    def format_generic_error(self, request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return self.error_response(request, 500, str(exc) or INTERNAL_ERROR)

    def register_exception_handlers(self, app: FastAPI) -> None:
        """Register global exception handlers on a FastAPI app."""

        @app.exception_handler(VibeAssistantError)
        def _app_error_handler(request: Request, exc: VibeAssistantError):
            return self.format_app_error(request, exc)

        @app.exception_handler(RequestValidationError)
        def _validation_error_handler(request: Request, exc: RequestValidationError):
            return self.format_validation_error(request, exc)

        @app.exception_handler(StarletteHTTPException)
        def _http_exception_handler(request: Request, exc: StarletteHTTPException):
            return self.format_http_exception(request, exc)

        @app.exception_handler(OSError)
        def _os_error_handler(request: Request, exc: OSError):
            return self.format_generic_error(request, exc)

        @app.exception_handler(Exception)
        def _generic_exception_handler(request: Request, exc: Exception):
            return self.format_generic_error(request, exc)
