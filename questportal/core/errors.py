"""Domain errors and their HTTP mapping."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"detail": self.message}


class NotFoundError(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class ConflictError(PortalError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "User already exists"


class InvalidInputError(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class InsufficientTokensError(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, needed: int, required: int) -> None:
        self.needed = needed
        self.required = required
        super().__init__(f"You need {needed} more token(s) to redeem a code")

    def to_body(self) -> dict:
        return {"detail": self.message, "tokensNeeded": self.needed, "tokensRequired": self.required}


class ForbiddenError(PortalError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class UnauthorizedError(PortalError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class UpstreamUnavailableError(PortalError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Upstream service unavailable"


async def _portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PortalError, _portal_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
