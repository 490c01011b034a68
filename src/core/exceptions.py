"""Domain exceptions and their HTTP rendering."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException


logger = logging.getLogger(__name__)


class TokenShareError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind: str = "error"
    default_message: str = "Unexpected error"

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationFailed(TokenShareError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "validation"
    default_message = "Invalid request"


class NotAuthenticated(TokenShareError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "not_authenticated"
    default_message = "Not connected to X. Please connect your account first."


class ReconnectRequired(TokenShareError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "reconnect_required"
    default_message = "X session expired. Please reconnect."


class UpstreamAuthError(TokenShareError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "upstream_unauthorized"
    default_message = "Authentication with the upstream service failed"


class UpstreamForbiddenError(TokenShareError):
    status_code = status.HTTP_403_FORBIDDEN
    kind = "upstream_forbidden"
    default_message = "Access denied by the upstream service"


class UpstreamRateLimited(TokenShareError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    kind = "rate_limited"
    default_message = "Rate limit exceeded. Please try again later."


class DuplicateContentError(TokenShareError):
    status_code = status.HTTP_409_CONFLICT
    kind = "duplicate"
    default_message = "Duplicate tweet. You cannot post the same content twice."


class UpstreamError(TokenShareError):
    status_code = status.HTTP_502_BAD_GATEWAY
    kind = "upstream_error"
    default_message = "Upstream service error"


class SelectionCancelled(TokenShareError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "selection_cancelled"
    default_message = "Directory selection was cancelled"


class NoUsableFiles(TokenShareError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    kind = "no_usable_files"
    default_message = (
        "No conversation files found. Make sure you selected the correct Claude "
        "data directory (~/.claude or a project's .claude folder)."
    )


class NoUsageData(TokenShareError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "no_usage_data"
    default_message = "No token usage found for the selected year"


class NotOnLeaderboard(TokenShareError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"
    default_message = "User not found on leaderboard"


class LeaderboardWriteError(TokenShareError):
    kind = "leaderboard_write_failed"
    default_message = "Failed to join leaderboard"


def error_response(exc: TokenShareError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "kind": exc.kind},
    )


async def token_share_error_handler(request: Request, exc: TokenShareError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    else:
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return error_response(exc)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    logger.warning("Validation error on %s: %s", request.url.path, errors)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": "Request validation failed",
            "kind": "validation",
            "errors": errors,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TokenShareError, token_share_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
