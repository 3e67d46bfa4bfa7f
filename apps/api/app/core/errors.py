"""
errors.py

Domain exceptions raised by services and dependencies, plus the handlers that
turn them into JSON responses shaped like ActionResult.

Soft failures (AI output that cannot be parsed, a car that does not exist) are
not exceptions: services return them as ActionResult(success=False).
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CarMarketError(RuntimeError):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def headers(self) -> Optional[Dict[str, str]]:
        return None

    def body(self) -> dict:
        return {"success": False, "error": self.message, "code": self.code}


class Unauthorized(CarMarketError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)

    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class UserNotFound(CarMarketError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "USER_NOT_FOUND"

    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message)


class Misconfigured(CarMarketError):
    code = "MISCONFIGURED"


class ExtractionProviderError(CarMarketError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "AI_PROVIDER_ERROR"


class InvalidImage(CarMarketError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_IMAGE"


class UploadTooLarge(CarMarketError):
    status_code = 413
    code = "UPLOAD_TOO_LARGE"


class NoValidImages(CarMarketError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "NO_VALID_IMAGES"

    def __init__(self, message: str = "No valid images were uploaded") -> None:
        super().__init__(message)


class StorageWriteFailure(CarMarketError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "STORAGE_WRITE_FAILED"


class StorageDeleteFailure(CarMarketError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "STORAGE_DELETE_FAILED"


class Blocked(CarMarketError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "BLOCKED"

    def __init__(self, message: str = "Request blocked") -> None:
        super().__init__(message)


class RateLimited(CarMarketError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"

    def __init__(
        self,
        remaining: int,
        reset_in_seconds: int,
        message: str = "Too many requests. Please try again later.",
    ) -> None:
        super().__init__(message)
        self.remaining = remaining
        self.reset_in_seconds = reset_in_seconds

    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(max(0, self.reset_in_seconds))}

    def body(self) -> dict:
        body = super().body()
        body["remaining"] = self.remaining
        body["resetInSeconds"] = self.reset_in_seconds
        return body


async def _handle_car_market_error(request: Request, exc: CarMarketError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.body(), headers=exc.headers())


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": f"{field}: {message}" if field else message,
            "code": "VALIDATION_ERROR",
            "details": jsonable_encoder(errors),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error handlers so domain and validation errors become ActionResult-shaped bodies."""
    app.add_exception_handler(CarMarketError, _handle_car_market_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
