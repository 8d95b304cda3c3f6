"""Stateless session tokens (HS256 JWT) carrying a username and an expiry."""

import base64
import binascii
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from core.errors import ExpiredToken, InvalidToken

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_canonical_segment(segment: str) -> bool:
    # base64url tolerates junk in the unused low bits of the last character,
    # so an altered token could otherwise decode to the same bytes.
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError):
        return False
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") == segment


class TokenService:
    def __init__(
        self,
        secret: str,
        lifetime: timedelta = timedelta(hours=24),
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self._lifetime = lifetime
        self._algorithm = algorithm
        self._clock = clock

    def issue(self, subject: str) -> str:
        now = self._clock()
        payload = {
            "sub": subject,
            "iat": int(now.timestamp()),
            "exp": int((now + self._lifetime).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def validate(self, token: str) -> str:
        """Return the token's subject or raise InvalidToken / ExpiredToken."""
        if not token or not isinstance(token, str):
            raise InvalidToken("Invalid token")
        segments = token.split(".")
        if len(segments) != 3 or not all(_is_canonical_segment(s) for s in segments):
            raise InvalidToken("Invalid token")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredToken("Token expired")
        except (jwt.InvalidTokenError, ValueError) as e:
            logger.debug("Token rejected: %s", e)
            raise InvalidToken("Invalid token")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidToken("Invalid token")
        return subject
