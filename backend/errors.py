"""
Error taxonomy for the chat API and the FastAPI handlers that render it.

Every error is rendered as ``{"message": ...}`` plus, when present, a
field-level ``errors`` list (validation) or an ``error`` detail string
(upstream failures).
"""
import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ChatApiError(Exception):
    status_code = 500

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors
        self.error = error

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(ChatApiError):
    status_code = 400


class NotFoundError(ChatApiError):
    status_code = 404


class UpstreamError(ChatApiError):
    """The Ollama server was unreachable or answered with an error."""
    status_code = 500


class PersistenceError(ChatApiError):
    """The store was unreachable or rejected a write."""
    status_code = 500

    def to_dict(self) -> dict:
        return {"message": INTERNAL_ERROR_MESSAGE}


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "path", "query")]
    return ".".join(parts) or "body"


def validation_error_from_request(exc: RequestValidationError) -> ValidationError:
    errors = []
    for err in exc.errors():
        message = err.get("msg", "Invalid value")
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": _field_name(err.get("loc", ())), "message": message})

    fields = {e["field"] for e in errors}
    if fields == {"conversationId"}:
        summary = "Invalid conversation id"
    elif "prompt" in fields:
        summary = "Prompt is required and must be between 1 and 5000 characters"
    else:
        summary = "Validation error"
    return ValidationError(summary, errors=errors)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ChatApiError)
    async def chat_api_error_handler(request: Request, exc: ChatApiError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.error or exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = validation_error_from_request(exc)
        logger.info("Rejected %s %s: %s", request.method, request.url.path, error.errors)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception in %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"message": INTERNAL_ERROR_MESSAGE})
