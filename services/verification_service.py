"""Single-use, time-bounded email codes.

A code is valid while it is unused and ``now < expires_at``. Issuing a new
code leaves earlier ones for the same email and type untouched, so a resend
does not break a code the user is already typing in.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from crud.verification_crud import (
    create_verification_code,
    consume_code,
    delete_expired_codes,
    find_unused_code,
    mark_codes_used,
)
from models.verification import CodeType

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
_CODE_MIN = 10 ** (CODE_LENGTH - 1)
_CODE_SPAN = 9 * _CODE_MIN


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code() -> str:
    """Uniform draw over 100000..999999."""
    return str(_CODE_MIN + secrets.randbelow(_CODE_SPAN))


class VerificationService:
    def __init__(
        self,
        session_factory: sessionmaker,
        code_expiry: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._session_factory = session_factory
        self._code_expiry = code_expiry
        self._clock = clock

    def generate(self, email: str, code_type: CodeType) -> str:
        code = generate_code()
        expires_at = self._clock() + self._code_expiry
        with self._session_factory() as db:
            create_verification_code(db, email=email, code=code, code_type=code_type, expires_at=expires_at)
        logger.info("Generated %s code", code_type.value, extra={"email": email, "code_type": code_type.value})
        return code

    def verify(
        self,
        email: str,
        code: str,
        code_type: CodeType,
        on_consumed: Callable[[Session], object] | None = None,
    ) -> bool:
        """Consume a valid code.

        ``on_consumed`` runs in the consuming transaction; if it raises, the
        code stays unused.
        """
        now = self._clock()
        with self._session_factory() as db:
            record = find_unused_code(db, email, code, code_type)
            if record is None:
                logger.warning("Invalid verification code", extra={"email": email, "code_type": code_type.value})
                return False

            if now >= record.expires_at:
                logger.warning("Expired verification code", extra={"email": email, "code_type": code_type.value})
                return False

            if not consume_code(db, record.id, now):
                # Lost a race with another verify of the same code
                logger.warning("Verification code already consumed", extra={"email": email, "code_type": code_type.value})
                return False

            if on_consumed is not None:
                on_consumed(db)
            db.commit()

        logger.info("Verified %s code", code_type.value, extra={"email": email, "code_type": code_type.value})
        return True

    def mark_all_used(self, email: str, code_type: CodeType) -> int:
        with self._session_factory() as db:
            count = mark_codes_used(db, email, code_type)
        logger.debug("Marked %d %s codes used", count, code_type.value, extra={"email": email})
        return count

    def cleanup_expired(self, now: datetime | None = None) -> int:
        now = now or self._clock()
        with self._session_factory() as db:
            deleted = delete_expired_codes(db, now)
        logger.info("Cleaned up %d expired verification codes", deleted)
        return deleted
