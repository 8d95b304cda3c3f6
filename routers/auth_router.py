import logging

from fastapi import APIRouter, Depends, status

from core.auth import get_current_user
from core.errors import DispatchFailure, InvalidOrExpiredCode
from core.services import get_auth_service, get_email_service, get_verification_service
from models.verification import CodeType
from schemas.auth_schema import (
    AuthTokenResponse,
    LoginRequest,
    MessageResponse,
    PendingVerificationResponse,
    RegisterRequest,
)
from schemas.user_schema import UserResponse
from schemas.verification_schema import EmailVerificationRequest, ResetPasswordRequest, VerificationCodeRequest
from services.auth_service import AuthService
from services.email_service import EmailService
from services.verification_service import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

RESET_CODE_SENT = "Password reset code sent to your email"


@router.post("/register", response_model=PendingVerificationResponse, status_code=201)
def register(
    body: RegisterRequest,
    auth: AuthService = Depends(get_auth_service),
    verification: VerificationService = Depends(get_verification_service),
    email: EmailService = Depends(get_email_service),
):
    """
    Create a disabled account and email it an EMAIL_VERIFICATION code.
    The code is stored even if delivery later fails; /auth/resend-verification issues another.
    """
    user = auth.register(body)
    code = verification.generate(user.email, CodeType.EMAIL_VERIFICATION)
    email.send_verification_email(user.email, user.username, code)
    return PendingVerificationResponse(
        message="Verification email sent. Enter the code to complete registration.",
        email=user.email,
    )


@router.post("/login", response_model=AuthTokenResponse)
def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    token, user = auth.login(body.username_or_email, body.password)
    return AuthTokenResponse(access_token=token, user=user)


@router.post("/verify-email", response_model=MessageResponse)
def verify_email(
    body: EmailVerificationRequest,
    auth: AuthService = Depends(get_auth_service),
    verification: VerificationService = Depends(get_verification_service),
):
    # Activation commits together with the code, or neither happens
    def activate(db):
        auth.activate(body.email, db=db)

    if not verification.verify(body.email, body.code, CodeType.EMAIL_VERIFICATION, on_consumed=activate):
        raise InvalidOrExpiredCode("Invalid or expired verification code")
    verification.mark_all_used(body.email, CodeType.EMAIL_VERIFICATION)
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
def resend_verification(
    body: VerificationCodeRequest,
    verification: VerificationService = Depends(get_verification_service),
    email: EmailService = Depends(get_email_service),
):
    code = verification.generate(body.email, CodeType.EMAIL_VERIFICATION)
    email.send_verification_email(body.email, body.username or body.email, code)
    return MessageResponse(message="Verification code sent")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    body: VerificationCodeRequest,
    auth: AuthService = Depends(get_auth_service),
    verification: VerificationService = Depends(get_verification_service),
    email: EmailService = Depends(get_email_service),
):
    user = auth.find_by_email(body.email)
    if user is None:
        # Unknown addresses get the same answer and no code
        logger.info("Password reset requested for unknown email", extra={"email": body.email})
        return MessageResponse(message=RESET_CODE_SENT)
    code = verification.generate(user.email, CodeType.PASSWORD_RESET)
    # Sent inline so the caller learns about a delivery failure
    if not email.send_password_reset_email(user.email, user.username, code):
        raise DispatchFailure("Failed to send password reset code")
    return MessageResponse(message=RESET_CODE_SENT)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    body: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
    verification: VerificationService = Depends(get_verification_service),
):
    if not verification.verify(body.email, body.code, CodeType.PASSWORD_RESET):
        raise InvalidOrExpiredCode("Invalid or expired reset code")
    auth.reset_password(body.email, body.new_password)
    verification.mark_all_used(body.email, CodeType.PASSWORD_RESET)
    return MessageResponse(message="Password reset successfully")


@router.get("/me", response_model=UserResponse)
def get_me(current_user = Depends(get_current_user)):
    return current_user
