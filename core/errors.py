"""Error hierarchy for the auth and verification flows.

Every error carries a human-readable message and the HTTP status the API
layer answers with. Messages never include internal details.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DuplicateIdentity(AppError):
    status_code = 400


class NotFound(AppError):
    status_code = 404


class InvalidCredential(AppError):
    status_code = 401


class DisabledAccount(AppError):
    status_code = 403


class InvalidOrExpiredCode(AppError):
    status_code = 400


class DispatchFailure(AppError):
    status_code = 503


class TokenError(AppError):
    status_code = 401


class InvalidToken(TokenError):
    pass


class ExpiredToken(TokenError):
    pass


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path,
        exc_info=exc, extra={"path": request.url.path},
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
