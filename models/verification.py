import enum
import uuid
from sqlalchemy import Column, String, Boolean, Enum, Index
from sqlalchemy.sql import func
from models.base import Base, UTCDateTime


class CodeType(str, enum.Enum):
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"


class VerificationCode(Base):
    __tablename__ = "verification_code"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), nullable=False)
    code = Column(String(6), nullable=False)
    type = Column(Enum(CodeType, name="code_type"), nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)

Index("idx_verification_code_lookup", VerificationCode.email, VerificationCode.type, VerificationCode.code)
Index("idx_verification_code_expires_at", VerificationCode.expires_at)
