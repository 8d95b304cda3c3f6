import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from core.errors import DisabledAccount, DuplicateIdentity, InvalidCredential, NotFound
from core.security import hash_password, verify_password
from crud.user_crud import (
    create_user,
    email_exists,
    get_user_by_email,
    get_user_by_username_or_email,
    save_user,
    username_exists,
)
from models.user import User
from schemas.auth_schema import RegisterRequest
from services.token_service import TokenService

logger = logging.getLogger(__name__)


class AuthService:
    """Registration, login, activation and password reset.

    Registration creates a disabled account; it only becomes usable after
    ``activate`` is called for a consumed EMAIL_VERIFICATION code. Sending the
    code is left to the caller.
    """

    def __init__(self, session_factory: sessionmaker, token_service: TokenService, bcrypt_rounds: int = 12):
        self._session_factory = session_factory
        self._token_service = token_service
        self._bcrypt_rounds = bcrypt_rounds

    def register(self, payload: RegisterRequest) -> User:
        with self._session_factory() as db:
            if username_exists(db, payload.username):
                logger.info("Registration rejected, username taken", extra={"username": payload.username})
                raise DuplicateIdentity("Username is already taken")
            if email_exists(db, payload.email):
                logger.info("Registration rejected, email in use", extra={"email": payload.email})
                raise DuplicateIdentity("Email is already in use")

            try:
                user = create_user(
                    db,
                    username=payload.username,
                    email=payload.email,
                    password_hash=hash_password(payload.password, rounds=self._bcrypt_rounds),
                    first_name=payload.first_name,
                    last_name=payload.last_name,
                    enabled=False,
                )
            except IntegrityError:
                # A concurrent registration took the username or email first
                db.rollback()
                logger.info("Registration rejected, identity taken concurrently", extra={"username": payload.username})
                raise DuplicateIdentity("Username or email is already in use")
        logger.info("Registered user pending verification", extra={"username": user.username, "user_id": user.id})
        return user

    def login(self, username_or_email: str, password: str) -> tuple[str, User]:
        with self._session_factory() as db:
            user = get_user_by_username_or_email(db, username_or_email)
        if user is None:
            raise NotFound("User not found")
        if not verify_password(password, user.password_hash):
            logger.info("Login rejected, bad password", extra={"username": user.username})
            raise InvalidCredential("Invalid password")
        if not user.enabled:
            logger.info("Login rejected, account disabled", extra={"username": user.username})
            raise DisabledAccount("User account is disabled")

        token = self._token_service.issue(user.username)
        logger.info("User logged in", extra={"username": user.username})
        return token, user

    def reset_password(self, email: str, new_password: str) -> User:
        with self._session_factory() as db:
            user = get_user_by_email(db, email)
            if user is None:
                raise NotFound("User not found")
            user.password_hash = hash_password(new_password, rounds=self._bcrypt_rounds)
            user = save_user(db, user)
        logger.info("Password reset", extra={"username": user.username})
        return user

    def activate(self, email: str, db: Session | None = None) -> User:
        """Enable the account for ``email``.

        Given a session, the change joins its transaction and the caller commits.
        """
        if db is not None:
            return self._enable(db, email)
        with self._session_factory() as db:
            user = self._enable(db, email)
            db.commit()
        return user

    def _enable(self, db: Session, email: str) -> User:
        user = get_user_by_email(db, email)
        if user is None:
            raise NotFound("User not found")
        user.enabled = True
        db.flush()
        logger.info("User activated", extra={"username": user.username})
        return user

    def find_by_email(self, email: str) -> User | None:
        with self._session_factory() as db:
            return get_user_by_email(db, email)
