"""VerificationService: code shape, single use, expiry boundary, bulk operations."""

from datetime import timedelta

import pytest

import services.verification_service as verification_module
from crud.user_crud import create_user, get_user_by_email
from crud.verification_crud import consume_code, create_verification_code, find_unused_code, list_codes
from models.verification import CodeType
from services.verification_service import generate_code

EMAIL = "alice@x.com"


def test_generated_codes_are_six_ascii_digits():
    for _ in range(500):
        code = generate_code()
        assert len(code) == 6
        assert code.isascii() and code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_generate_persists_unused_code_with_expiry(verification_service, session_factory, clock):
    code = verification_service.generate(EMAIL, CodeType.EMAIL_VERIFICATION)

    with session_factory() as db:
        (record,) = list_codes(db, EMAIL, CodeType.EMAIL_VERIFICATION)
    assert record.code == code
    assert record.used is False
    assert record.expires_at == clock.now + timedelta(minutes=15)


def test_code_verifies_only_once(verification_service):
    code = verification_service.generate(EMAIL, CodeType.EMAIL_VERIFICATION)

    assert verification_service.verify(EMAIL, code, CodeType.EMAIL_VERIFICATION) is True
    assert verification_service.verify(EMAIL, code, CodeType.EMAIL_VERIFICATION) is False
    assert verification_service.verify(EMAIL, code, CodeType.EMAIL_VERIFICATION) is False


def test_wrong_code_email_or_type_fails(verification_service):
    code = verification_service.generate(EMAIL, CodeType.EMAIL_VERIFICATION)
    wrong = "000000" if code != "000000" else "111111"

    assert verification_service.verify(EMAIL, wrong, CodeType.EMAIL_VERIFICATION) is False
    assert verification_service.verify("bob@x.com", code, CodeType.EMAIL_VERIFICATION) is False
    assert verification_service.verify(EMAIL, code, CodeType.PASSWORD_RESET) is False
    # Failed attempts do not burn the real code
    assert verification_service.verify(EMAIL, code, CodeType.EMAIL_VERIFICATION) is True


def test_code_valid_just_before_expiry(verification_service, clock):
    code = verification_service.generate(EMAIL, CodeType.EMAIL_VERIFICATION)
    clock.advance(minutes=15, seconds=-1)
    assert verification_service.verify(EMAIL, code, CodeType.EMAIL_VERIFICATION) is True


def test_code_invalid_at_expiry_without_mutation(verification_service, session_factory, clock):
    code = verification_service.generate(EMAIL, CodeType.EMAIL_VERIFICATION)
    clock.advance(minutes=15)

    assert verification_service.verify(EMAIL, code, CodeType.EMAIL_VERIFICATION) is False
    with session_factory() as db:
        (record,) = list_codes(db, EMAIL, CodeType.EMAIL_VERIFICATION)
    assert record.used is False


def test_new_code_does_not_invalidate_earlier_ones(verification_service):
    first = verification_service.generate(EMAIL, CodeType.EMAIL_VERIFICATION)
    second = verification_service.generate(EMAIL, CodeType.EMAIL_VERIFICATION)

    assert verification_service.verify(EMAIL, first, CodeType.EMAIL_VERIFICATION) is True
    if second != first:
        assert verification_service.verify(EMAIL, second, CodeType.EMAIL_VERIFICATION) is True


def test_mark_all_used_only_touches_matching_type(verification_service):
    verify_code = verification_service.generate(EMAIL, CodeType.EMAIL_VERIFICATION)
    reset_code = verification_service.generate(EMAIL, CodeType.PASSWORD_RESET)

    assert verification_service.mark_all_used(EMAIL, CodeType.EMAIL_VERIFICATION) == 1

    assert verification_service.verify(EMAIL, verify_code, CodeType.EMAIL_VERIFICATION) is False
    assert verification_service.verify(EMAIL, reset_code, CodeType.PASSWORD_RESET) is True


def test_losing_a_consume_race_returns_false(verification_service, session_factory, monkeypatch):
    code = verification_service.generate(EMAIL, CodeType.PASSWORD_RESET)
    with session_factory() as db:
        stale = find_unused_code(db, EMAIL, code, CodeType.PASSWORD_RESET)

    assert verification_service.verify(EMAIL, code, CodeType.PASSWORD_RESET) is True

    # Second caller read the row before the first one consumed it
    monkeypatch.setattr(verification_module, "find_unused_code", lambda db, *args: stale)
    assert verification_service.verify(EMAIL, code, CodeType.PASSWORD_RESET) is False


def test_code_stays_unused_when_follow_up_write_fails(verification_service):
    code = verification_service.generate(EMAIL, CodeType.EMAIL_VERIFICATION)

    def fail(db):
        raise RuntimeError("activation failed")

    with pytest.raises(RuntimeError):
        verification_service.verify(EMAIL, code, CodeType.EMAIL_VERIFICATION, on_consumed=fail)
    assert verification_service.verify(EMAIL, code, CodeType.EMAIL_VERIFICATION) is True


def test_follow_up_write_commits_with_the_code(verification_service, session_factory):
    with session_factory() as db:
        create_user(db, username="alice", email=EMAIL, password_hash="x")
    code = verification_service.generate(EMAIL, CodeType.EMAIL_VERIFICATION)

    def enable(db):
        get_user_by_email(db, EMAIL).enabled = True

    assert verification_service.verify(EMAIL, code, CodeType.EMAIL_VERIFICATION, on_consumed=enable) is True
    with session_factory() as db:
        assert get_user_by_email(db, EMAIL).enabled is True
        assert list_codes(db, EMAIL)[0].used is True


def test_consume_code_succeeds_once(session_factory, clock):
    with session_factory() as db:
        record = create_verification_code(
            db, EMAIL, "123456", CodeType.EMAIL_VERIFICATION, clock.now + timedelta(minutes=5),
        )
        assert consume_code(db, record.id, clock.now) is True
        assert consume_code(db, record.id, clock.now) is False


def test_cleanup_removes_only_expired_codes_regardless_of_used(verification_service, session_factory, clock):
    past = clock.now - timedelta(minutes=1)
    future = clock.now + timedelta(minutes=10)
    with session_factory() as db:
        create_verification_code(db, EMAIL, "111111", CodeType.EMAIL_VERIFICATION, past)
        used_past = create_verification_code(db, EMAIL, "222222", CodeType.PASSWORD_RESET, past)
        create_verification_code(db, EMAIL, "333333", CodeType.EMAIL_VERIFICATION, future)
        used_future = create_verification_code(db, EMAIL, "444444", CodeType.PASSWORD_RESET, future)
        consume_code(db, used_future.id, clock.now)
        used_past.used = True
        db.commit()

    assert verification_service.cleanup_expired(clock.now) == 2

    with session_factory() as db:
        remaining = sorted(c.code for c in list_codes(db, EMAIL))
    assert remaining == ["333333", "444444"]


def test_cleanup_is_idempotent(verification_service, clock):
    assert verification_service.cleanup_expired(clock.now) == 0
    assert verification_service.cleanup_expired(clock.now) == 0
