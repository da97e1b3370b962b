"""
API error types and the handlers that render them.

Every failure the auth flow can produce is an ``ApiError`` subclass carrying a
stable machine-readable ``code``. Handlers registered by
``register_exception_handlers`` turn them into the response envelope:

    {"success": false, "error": {"code": "...", "message": "...", "details": ...}}

Anything that is not an ``ApiError`` (storage outage, signing library bug, ...)
is logged with its traceback and surfaced as a generic 500.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTP exception with a stable error code."""

    status_code_default: int = status.HTTP_400_BAD_REQUEST
    code: str = "BAD_REQUEST"
    message_default: str = "Bad request"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.message = message or self.message_default
        self.details = details
        super().__init__(
            status_code=self.status_code_default,
            detail={"code": self.code, "message": self.message},
            headers=headers,
        )


class InvalidNonce(ApiError):
    code = "INVALID_NONCE"
    message_default = "Invalid or expired nonce"


class NonceExpired(ApiError):
    code = "NONCE_EXPIRED"
    message_default = "Nonce expired"


class InvalidSignature(ApiError):
    code = "INVALID_SIGNATURE"
    message_default = "Invalid signature"


class SignatureVerificationFailed(ApiError):
    code = "SIGNATURE_VERIFICATION_FAILED"
    message_default = "Signature verification failed"


class Unauthorized(ApiError):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    message_default = "Access token required"

    def __init__(self, message: Optional[str] = None, **kwargs: Any) -> None:
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kwargs)


class InvalidRefreshToken(Unauthorized):
    code = "INVALID_REFRESH_TOKEN"
    message_default = "Invalid refresh token"


class Forbidden(ApiError):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    message_default = "Admin access required"


class NotFound(ApiError):
    status_code_default = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message_default = "Resource not found"


class Conflict(ApiError):
    status_code_default = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    message_default = "Resource already exists"


class TooManyRequests(ApiError):
    status_code_default = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"
    message_default = "Too many requests, please try again later"

    def __init__(self, message: Optional[str] = None, *, retry_after: int = 60, **kwargs: Any) -> None:
        kwargs.setdefault("headers", {"Retry-After": str(retry_after)})
        super().__init__(message, **kwargs)


def error_body(code: str, message: str, details: Any = None) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
    }


def register_exception_handlers(app: FastAPI) -> None:
    """Attach handlers that render every error in the common envelope."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        logger.info(
            "%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.code, exc.message, exc.details),
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(f"HTTP_{exc.status_code}", str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=error_body("VALIDATION_ERROR", "Invalid request", details),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("INTERNAL_ERROR", "Internal server error"),
        )
