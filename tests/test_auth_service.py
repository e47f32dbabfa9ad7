import pytest

from app.core.errors import AuthenticationRequired, InvalidCode, PolicyViolation, RateLimited, ValidationError
from app.models.user import Role
from app.services.user_service import USERS_COLLECTION
from app.utils.security import decode_token


def issued_code(services, email):
    return services.otp.store.get(email)["otp"]


def test_request_code_queues_email(services, sender):
    services.auth.request_code("New.User@Example.com")
    services.dispatcher.flush()

    emails = sender.of_type("OTP")
    assert len(emails) == 1
    assert emails[0].target.id == "new.user@example.com"
    assert issued_code(services, "new.user@example.com") in emails[0].body


@pytest.mark.parametrize("email", ["", "   ", "not-an-email", "a@b"])
def test_request_code_rejects_bad_address(services, email):
    with pytest.raises(ValidationError):
        services.auth.request_code(email)


def test_request_code_is_rate_limited(services, clock):
    for _ in range(5):
        services.auth.request_code("a@example.com")
    with pytest.raises(RateLimited):
        services.auth.request_code("a@example.com")

    clock.advance(hours=1)
    services.auth.request_code("a@example.com")


def test_first_login_creates_citizen(services, store, sender):
    services.auth.request_code("a@example.com")
    session = services.auth.verify_code("a@example.com", issued_code(services, "a@example.com"), "Asha Rao")
    services.dispatcher.flush()

    user = session["user"]
    assert session["is_new_user"]
    assert user["role"] == Role.CITIZEN.value
    assert user["trust_score"] == 50
    assert user["last_login_at"] is not None
    assert decode_token(session["access_token"])["sub"] == user["id"]
    assert decode_token(session["refresh_token"], expected_type="refresh")["sub"] == user["id"]
    assert len(sender.of_type("WELCOME")) == 1


def test_new_account_requires_name(services):
    services.auth.request_code("a@example.com")
    with pytest.raises(ValidationError):
        services.auth.verify_code("a@example.com", issued_code(services, "a@example.com"))


def test_existing_user_logs_in_without_name(services, make_user):
    make_user("existing", email="existing@example.com")
    services.auth.request_code("existing@example.com")
    session = services.auth.verify_code("existing@example.com", issued_code(services, "existing@example.com"))
    assert not session["is_new_user"]
    assert session["user"]["id"] == "existing"


def test_suspended_user_is_refused(services, make_user):
    make_user("suspended", email="suspended@example.com", is_active=False)
    services.auth.request_code("suspended@example.com")
    with pytest.raises(PolicyViolation):
        services.auth.verify_code("suspended@example.com", issued_code(services, "suspended@example.com"))


def test_wrong_code(services):
    services.auth.request_code("a@example.com")
    code = issued_code(services, "a@example.com")
    with pytest.raises(InvalidCode) as exc_info:
        services.auth.verify_code("a@example.com", "000000" if code != "000000" else "111111", "Asha")
    assert exc_info.value.reason == "MISMATCH"


def test_refresh_issues_new_pair(services, make_user):
    make_user("existing", email="existing@example.com")
    services.auth.request_code("existing@example.com")
    session = services.auth.verify_code("existing@example.com", issued_code(services, "existing@example.com"))

    refreshed = services.auth.refresh(session["refresh_token"])
    assert decode_token(refreshed["access_token"])["sub"] == "existing"


def test_refresh_rejects_access_token(services, make_user):
    make_user("existing", email="existing@example.com")
    services.auth.request_code("existing@example.com")
    session = services.auth.verify_code("existing@example.com", issued_code(services, "existing@example.com"))

    with pytest.raises(AuthenticationRequired):
        services.auth.refresh(session["access_token"])


def test_refresh_for_deactivated_user(services, store, make_user):
    make_user("existing", email="existing@example.com")
    services.auth.request_code("existing@example.com")
    session = services.auth.verify_code("existing@example.com", issued_code(services, "existing@example.com"))
    store.update(USERS_COLLECTION, "existing", {"is_active": False})

    with pytest.raises(PolicyViolation):
        services.auth.refresh(session["refresh_token"])
