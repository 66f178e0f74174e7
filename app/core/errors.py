"""Error taxonomy shared by the domain, repositories and route handlers."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors raised by CarePulse code."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    kind: str = "DomainError"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FormatError(DomainError, ValueError):
    """Input did not match the required pattern."""

    kind = "FormatError"


class RangeError(DomainError, ValueError):
    """Numeric value outside allowed bounds or with the wrong increment."""

    kind = "RangeError"


class DurationTooShortError(RangeError):
    pass


class DurationTooLongError(RangeError):
    pass


class DurationIncrementError(RangeError):
    pass


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "NotFound"


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    kind = "ConflictError"


class InvalidTransitionError(ConflictError):
    kind = "InvalidTransition"


class UploadExpiredError(ConflictError):
    kind = "UploadExpired"


class AccessDeniedError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    kind = "AccessDenied"


class NotificationError(DomainError):
    """The SMS provider rejected or failed a delivery."""

    status_code = status.HTTP_502_BAD_GATEWAY
    kind = "NotificationError"


async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(
            "domain error",
            extra={"kind": exc.kind, "path": request.url.path, "detail": exc.message},
        )
    else:
        logger.info(
            "request rejected",
            extra={"kind": exc.kind, "path": request.url.path, "detail": exc.message},
        )

    content: dict[str, Any] = {"error": exc.kind, "detail": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain errors into JSON responses."""

    app.add_exception_handler(DomainError, _domain_error_handler)


__all__ = [
    "AccessDeniedError",
    "ConflictError",
    "DomainError",
    "DurationIncrementError",
    "DurationTooLongError",
    "DurationTooShortError",
    "FormatError",
    "InvalidTransitionError",
    "NotFoundError",
    "NotificationError",
    "RangeError",
    "UploadExpiredError",
    "register_exception_handlers",
]
