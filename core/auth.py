import logging
from typing import Optional

from fastapi import HTTPException, Request, status
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.orm import sessionmaker

from core.errors import TokenError
from crud.user_crud import get_user_by_username
from services.token_service import TokenService

logger = logging.getLogger(__name__)

PUBLIC_AUTH_PATHS = frozenset({
    "/auth/register",
    "/auth/login",
    "/auth/verify-email",
    "/auth/resend-verification",
    "/auth/forgot-password",
    "/auth/reset-password",
})


def _extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


class RequestAuthenticator(BaseHTTPMiddleware):
    """Attach the caller's user to ``request.state.user`` when a valid bearer token is sent.

    Fails open: a missing, invalid or expired token, or any error while
    resolving it, leaves ``request.state.user`` as None and the request
    continues. Routes that need an identity depend on ``get_current_user``.
    """

    def __init__(self, app, token_service: TokenService, session_factory: sessionmaker):
        super().__init__(app)
        self._token_service = token_service
        self._session_factory = session_factory

    async def dispatch(self, request: Request, call_next):
        request.state.user = None
        path = request.url.path.rstrip("/") or "/"
        token = _extract_bearer_token(request.headers.get("authorization"))

        if token and path not in PUBLIC_AUTH_PATHS:
            try:
                request.state.user = await run_in_threadpool(self._resolve_user, token)
            except TokenError as e:
                logger.info("Bearer token rejected: %s", e.message, extra={"path": path})
            except Exception:
                logger.exception("Error authenticating request", extra={"path": path})

        return await call_next(request)

    def _resolve_user(self, token: str):
        username = self._token_service.validate(token)
        with self._session_factory() as db:
            user = get_user_by_username(db, username)
        if user is None:
            logger.info("Token subject has no user", extra={"username": username})
        return user


def get_current_user(request: Request):
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user
