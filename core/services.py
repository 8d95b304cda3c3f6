from dataclasses import dataclass
from datetime import timedelta

from fastapi import Request
from sqlalchemy.orm import sessionmaker

from core.config import Settings
from services.auth_service import AuthService
from services.email_service import EmailSender, EmailService, LoggingEmailSender, ResendEmailSender
from services.scheduled_tasks import CleanupScheduler, ReminderScheduler
from services.token_service import TokenService
from services.verification_service import VerificationService


@dataclass
class ServiceContainer:
    token_service: TokenService
    verification_service: VerificationService
    auth_service: AuthService
    email_service: EmailService
    cleanup_scheduler: CleanupScheduler
    reminder_scheduler: ReminderScheduler


def build_email_sender(settings: Settings) -> EmailSender:
    if settings.RESEND_API_KEY:
        return ResendEmailSender(
            api_key=settings.RESEND_API_KEY,
            sender=settings.EMAIL_FROM,
            url=settings.RESEND_API_URL,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        )
    return LoggingEmailSender()


def build_services(
    settings: Settings,
    session_factory: sessionmaker,
    email_sender: EmailSender | None = None,
) -> ServiceContainer:
    token_service = TokenService(
        secret=settings.JWT_SECRET,
        lifetime=timedelta(hours=settings.TOKEN_LIFETIME_HOURS),
        algorithm=settings.JWT_ALGORITHM,
    )
    verification_service = VerificationService(
        session_factory,
        code_expiry=timedelta(minutes=settings.CODE_EXPIRY_MINUTES),
    )
    auth_service = AuthService(session_factory, token_service, bcrypt_rounds=settings.BCRYPT_ROUNDS)
    email_service = EmailService(
        email_sender or build_email_sender(settings),
        app_name=settings.APP_NAME,
        code_expiry_minutes=settings.CODE_EXPIRY_MINUTES,
        max_workers=settings.EMAIL_WORKERS,
    )
    return ServiceContainer(
        token_service=token_service,
        verification_service=verification_service,
        auth_service=auth_service,
        email_service=email_service,
        cleanup_scheduler=CleanupScheduler(verification_service),
        reminder_scheduler=ReminderScheduler(
            session_factory,
            email_service,
            hours_before=settings.REMINDER_HOURS_BEFORE,
            window=timedelta(minutes=settings.REMINDER_WINDOW_MINUTES),
        ),
    )


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.services.auth_service


def get_verification_service(request: Request) -> VerificationService:
    return request.app.state.services.verification_service


def get_email_service(request: Request) -> EmailService:
    return request.app.state.services.email_service
