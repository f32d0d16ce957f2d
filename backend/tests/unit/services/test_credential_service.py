"""Unit tests for CredentialService: registration, verification, password and TOTP lifecycle."""

from __future__ import annotations

import pyotp
import pytest
from beacon_auth.services._shared.errors import (
    AlreadyExistsError,
    ConflictError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from beacon_auth.services._shared.settings import AuthSettings
from beacon_auth.services.credentials.dto import PasswordChangeIn, PrincipalOut, RegisterIn
from beacon_auth.services.credentials.service import CredentialService

from tests.factories.principal import DEFAULT_PASSWORD, PrincipalFactory


@pytest.fixture()
def service(clock) -> CredentialService:
    return CredentialService(settings=AuthSettings(), clock=clock)


def _register_in(email="new@example.com", password="longenough", age=25) -> RegisterIn:
    return RegisterIn(email=email, password=password, display_name="New Person", age=age)


# ------------------------------ Registration ------------------------------ #
def test_register_returns_sanitized_principal(service, session):
    out = service.register(_register_in(email="  New@Example.com "))

    assert isinstance(out, PrincipalOut)
    assert out.email == "new@example.com"
    assert out.two_factor_enabled is False
    assert not hasattr(out, "password_hash")
    assert not hasattr(out, "totp_secret")


@pytest.mark.parametrize("second_password", ["longenough", "totally-different-pw"])
def test_register_same_casefolded_email_twice_fails(service, session, second_password):
    """A second registration collides regardless of password or case."""
    service.register(_register_in(email="dup@example.com"))

    with pytest.raises(AlreadyExistsError):
        service.register(_register_in(email="DUP@example.COM", password=second_password))


def test_register_rejects_short_password(service, session):
    with pytest.raises(ValidationError) as exc:
        service.register(_register_in(password="short"))
    assert exc.value.field == "password"


def test_register_rejects_underage(service, session):
    with pytest.raises(ValidationError) as exc:
        service.register(_register_in(age=17))
    assert exc.value.field == "age"


def test_register_rejects_malformed_email(service, session):
    with pytest.raises(ValidationError):
        service.register(_register_in(email="not-an-email"))


def test_policy_follows_settings(clock, session):
    strict = CredentialService(settings=AuthSettings(password_min_length=20, minimum_age=21), clock=clock)
    with pytest.raises(ValidationError):
        strict.register(_register_in(password="only-sixteen-chr"))
    with pytest.raises(ValidationError):
        strict.register(_register_in(password="x" * 20, age=20))


# ------------------------------ Verification ------------------------------ #
def test_verify_accepts_correct_pair(service, session):
    p = PrincipalFactory(email="v@example.com")
    out = service.verify("V@example.com", DEFAULT_PASSWORD)
    assert out.id == p.id


def test_unknown_email_and_wrong_password_fail_identically(service, session):
    PrincipalFactory(email="known@example.com")

    with pytest.raises(InvalidCredentialsError) as unknown:
        service.verify("ghost@example.com", DEFAULT_PASSWORD)
    with pytest.raises(InvalidCredentialsError) as wrong:
        service.verify("known@example.com", "wrong-password")

    assert type(unknown.value) is type(wrong.value)
    assert str(unknown.value) == str(wrong.value)
    assert unknown.value.reason == wrong.value.reason == "invalid_credentials"


def test_unknown_email_still_hashes_once(service, session, monkeypatch):
    """Both failure paths run one password-hash comparison."""
    import beacon_auth.services.credentials.service as module

    calls: list[str] = []
    original = module.check_password_hash

    def spy(pwhash, password):
        calls.append(password)
        return original(pwhash, password)

    monkeypatch.setattr(module, "check_password_hash", spy)
    with pytest.raises(InvalidCredentialsError):
        service.verify("ghost@example.com", "whatever")
    assert calls == ["whatever"]


def test_get_unknown_principal(service, session):
    with pytest.raises(NotFoundError):
        service.get(424242)


# ---------------------------- Password change ----------------------------- #
def test_change_password(service, session):
    p = PrincipalFactory()
    service.change_password(p.id, PasswordChangeIn(DEFAULT_PASSWORD, "brand-new-password"))

    assert service.verify(p.email, "brand-new-password").id == p.id
    with pytest.raises(InvalidCredentialsError):
        service.verify(p.email, DEFAULT_PASSWORD)


def test_change_password_requires_current_password(service, session):
    p = PrincipalFactory()
    with pytest.raises(InvalidCredentialsError):
        service.change_password(p.id, PasswordChangeIn("not-it", "brand-new-password"))
    assert service.verify(p.email, DEFAULT_PASSWORD).id == p.id


def test_change_password_enforces_length(service, session):
    p = PrincipalFactory()
    with pytest.raises(ValidationError):
        service.change_password(p.id, PasswordChangeIn(DEFAULT_PASSWORD, "tiny"))


# ------------------------------ Second factor ----------------------------- #
def test_enrollment_then_confirmation(service, clock, session):
    p = PrincipalFactory(email="totp@example.com")

    enrollment = service.begin_enrollment(p.id)
    assert enrollment.provisioning_uri.startswith("otpauth://totp/")
    assert "issuer=Beacon" in enrollment.provisioning_uri
    assert service.get(p.id).two_factor_enabled is False  # pending until confirmed

    code = pyotp.TOTP(enrollment.secret).at(clock())
    out = service.confirm_enrollment(p.id, code)
    assert out.two_factor_enabled is True


def test_confirmation_with_wrong_code_keeps_2fa_disabled(service, clock, session):
    p = PrincipalFactory()
    enrollment = service.begin_enrollment(p.id)
    wrong = pyotp.TOTP(enrollment.secret).at(clock().timestamp() + 3600)

    with pytest.raises(InvalidCodeError):
        service.confirm_enrollment(p.id, wrong)
    assert service.get(p.id).two_factor_enabled is False


def test_confirmation_without_enrollment_fails(service, session):
    p = PrincipalFactory()
    with pytest.raises(InvalidCodeError):
        service.confirm_enrollment(p.id, "123456")


def test_enrollment_refused_when_already_enabled(service, session):
    p = PrincipalFactory(with_totp=True)
    with pytest.raises(ConflictError):
        service.begin_enrollment(p.id)


def test_check_code_accepts_adjacent_step_only(service, clock):
    secret = pyotp.random_base32()
    totp = pyotp.TOTP(secret)
    now = clock().timestamp()

    assert service.check_code(secret, totp.at(now))
    assert service.check_code(secret, totp.at(now - 30))  # one step back
    assert not service.check_code(secret, totp.at(now - 120))
    assert not service.check_code(secret, "")
