import threading

import pytest

from app.services.otp_service import CodeVerificationReason, OTPService


@pytest.fixture
def otp(clock):
    return OTPService(clock=clock)


def test_generated_code_is_six_digits(otp):
    for _ in range(50):
        code = otp.generate_otp()
        assert len(code) == 6
        assert code.isdigit()
        assert code[0] != "0"


def test_correct_code_verifies_once(otp):
    code = otp.issue("a@example.com")

    first = otp.verify_otp("a@example.com", code)
    assert first.success
    assert first.reason == CodeVerificationReason.OK

    second = otp.verify_otp("a@example.com", code)
    assert not second.success
    assert second.reason == CodeVerificationReason.NOT_FOUND


def test_address_is_case_insensitive(otp):
    code = otp.issue("  A@Example.com ")
    assert otp.verify_otp("a@example.com", code).success


def test_unknown_address(otp):
    result = otp.verify_otp("nobody@example.com", "123456")
    assert result.reason == CodeVerificationReason.NOT_FOUND
    assert result.message == "OTP not found or expired"


def test_expired_code_is_rejected_and_removed(otp, clock):
    code = otp.issue("a@example.com")
    clock.advance(minutes=5)

    assert otp.verify_otp("a@example.com", code).reason == CodeVerificationReason.EXPIRED
    assert otp.store.get("a@example.com") is None


def test_code_valid_just_before_expiry(otp, clock):
    code = otp.issue("a@example.com")
    clock.advance(minutes=4, seconds=59)
    assert otp.verify_otp("a@example.com", code).success


def test_three_wrong_guesses_discard_the_code(otp):
    code = otp.issue("a@example.com")
    wrong = "000000" if code != "000000" else "111111"

    reasons = [otp.verify_otp("a@example.com", wrong).reason for _ in range(3)]
    assert reasons == [CodeVerificationReason.MISMATCH] * 3

    fourth = otp.verify_otp("a@example.com", code)
    assert not fourth.success
    assert fourth.reason == CodeVerificationReason.NOT_FOUND


def test_wrong_guess_then_correct(otp):
    code = otp.issue("a@example.com")
    otp.verify_otp("a@example.com", "999999" if code != "999999" else "888888")
    assert otp.verify_otp("a@example.com", code).success


def test_reissue_replaces_previous_code(otp):
    old = otp.issue("a@example.com")
    new = otp.issue("a@example.com")
    if old != new:
        assert otp.verify_otp("a@example.com", old).reason == CodeVerificationReason.MISMATCH
    assert otp.verify_otp("a@example.com", new).success


def test_attempt_ceiling_recorded_in_store(otp):
    otp.store_otp("a@example.com", "123456")
    record = otp.store.get("a@example.com")
    record["attempts"] = 3
    otp.store.put("a@example.com", record)

    assert otp.verify_otp("a@example.com", "123456").reason == CodeVerificationReason.ATTEMPTS_EXHAUSTED


def test_sweep_expired(otp, clock):
    otp.issue("old@example.com")
    clock.advance(minutes=3)
    otp.issue("new@example.com")
    clock.advance(minutes=3)

    assert otp.sweep_expired() == 1
    assert otp.store.get("old@example.com") is None
    assert otp.store.get("new@example.com") is not None


def test_concurrent_wrong_guesses_each_charged(otp):
    otp.store_otp("a@example.com", "123456")
    barrier = threading.Barrier(3)

    def guess():
        barrier.wait()
        otp.verify_otp("a@example.com", "654321")

    threads = [threading.Thread(target=guess) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert otp.store.get("a@example.com") is None


def test_second_verification_fails_after_mismatch_then_success(otp):
    code = otp.issue("a@example.com")
    otp.verify_otp("a@example.com", "000000" if code != "000000" else "111111")
    assert otp.verify_otp("a@example.com", code).success
    assert not otp.verify_otp("a@example.com", code).success


def test_non_ascii_guess_is_a_charged_mismatch(otp):
    otp.store_otp("a@example.com", "123456")

    result = otp.verify_otp("a@example.com", "１２３４５６")
    assert result.reason == CodeVerificationReason.MISMATCH
    assert otp.store.get("a@example.com")["attempts"] == 1
