from datetime import datetime
from sqlalchemy import desc, update, delete
from sqlalchemy.orm import Session
from models.verification import CodeType, VerificationCode


def create_verification_code(db: Session, email: str, code: str, code_type: CodeType, expires_at: datetime):
    ver = VerificationCode(email=email, code=code, type=code_type, expires_at=expires_at, used=False)
    db.add(ver)
    db.commit()
    db.refresh(ver)
    return ver


def list_codes(db: Session, email: str, code_type: CodeType | None = None):
    q = db.query(VerificationCode).filter(VerificationCode.email == email)
    if code_type is not None:
        q = q.filter(VerificationCode.type == code_type)
    return q.order_by(desc(VerificationCode.created_at)).all()


def find_unused_code(db: Session, email: str, code: str, code_type: CodeType):
    return (
        db.query(VerificationCode)
        .filter(
            VerificationCode.email == email,
            VerificationCode.code == code,
            VerificationCode.type == code_type,
            VerificationCode.used.is_(False),
        )
        .order_by(desc(VerificationCode.expires_at))
        .first()
    )


def consume_code(db: Session, code_id: str, now: datetime) -> bool:
    """Mark a code used only if it is still unused and unexpired.

    Single conditional UPDATE: of two racing callers at most one sees a row
    change. The caller commits, so follow-up writes can share the transaction.
    """
    result = db.execute(
        update(VerificationCode)
        .where(
            VerificationCode.id == code_id,
            VerificationCode.used.is_(False),
            VerificationCode.expires_at > now,
        )
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def mark_codes_used(db: Session, email: str, code_type: CodeType) -> int:
    result = db.execute(
        update(VerificationCode)
        .where(VerificationCode.email == email, VerificationCode.type == code_type)
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def delete_expired_codes(db: Session, now: datetime) -> int:
    result = db.execute(
        delete(VerificationCode)
        .where(VerificationCode.expires_at < now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount
