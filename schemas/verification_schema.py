from pydantic import BaseModel, EmailStr, Field


class EmailVerificationRequest(BaseModel):
    email: EmailStr
    code: str = Field(min_length=1, max_length=16)


class VerificationCodeRequest(BaseModel):
    """Ask for a (new) code to be generated and emailed."""
    email: EmailStr
    username: str | None = None


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    code: str = Field(min_length=1, max_length=16)
    new_password: str = Field(min_length=6, max_length=72)
