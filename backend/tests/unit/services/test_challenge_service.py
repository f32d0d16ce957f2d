"""ChallengeService: the stateless bridge between password and one-time code."""

from __future__ import annotations

from datetime import timedelta

import pyotp
import pytest
from beacon_auth.services._shared.errors import (
    ExpiredOrInvalidChallengeError,
    InvalidCodeError,
    InvalidSecondFactorError,
)
from beacon_auth.services._shared.settings import AuthSettings
from beacon_auth.services.challenges.service import ChallengeService
from beacon_auth.services.credentials.service import CredentialService

from tests.factories.principal import PrincipalFactory


@pytest.fixture()
def service(stub_tokens, clock) -> ChallengeService:
    settings = AuthSettings()
    return ChallengeService(
        token_provider=stub_tokens,
        credentials=CredentialService(settings=settings, clock=clock),
        settings=settings,
        clock=clock,
    )


@pytest.fixture()
def enrolled(session):
    return PrincipalFactory(with_totp=True)


def test_valid_code_resolves_principal(service, enrolled, clock):
    challenge = service.issue(enrolled.id)
    code = pyotp.TOTP(enrolled.totp_secret).at(clock())

    out = service.verify_and_consume(challenge, code)
    assert out.id == enrolled.id


def test_wrong_code_does_not_burn_the_challenge(service, enrolled, clock):
    challenge = service.issue(enrolled.id)
    totp = pyotp.TOTP(enrolled.totp_secret)

    with pytest.raises(InvalidCodeError):
        service.verify_and_consume(challenge, totp.at(clock().timestamp() + 600))

    # Same challenge, right code, still inside its lifetime.
    clock.advance(minutes=2)
    assert service.verify_and_consume(challenge, totp.at(clock())).id == enrolled.id


def test_challenge_is_reusable_within_its_ttl(service, enrolled, clock):
    challenge = service.issue(enrolled.id)
    code = pyotp.TOTP(enrolled.totp_secret).at(clock())

    service.verify_and_consume(challenge, code)
    assert service.verify_and_consume(challenge, code).id == enrolled.id


def test_expired_challenge_rejected(service, enrolled, clock):
    challenge = service.issue(enrolled.id)
    clock.advance(minutes=6)
    code = pyotp.TOTP(enrolled.totp_secret).at(clock())

    with pytest.raises(ExpiredOrInvalidChallengeError):
        service.verify_and_consume(challenge, code)


@pytest.mark.parametrize("kind", ["access", "refresh"])
def test_other_token_types_are_not_challenges(service, stub_tokens, enrolled, clock, kind):
    if kind == "access":
        token = stub_tokens.create_access_token(identity=enrolled.id, expires_delta=timedelta(minutes=5))
    else:
        token = stub_tokens.create_refresh_token(
            identity=enrolled.id, jti="j", device_id="d", expires_delta=timedelta(days=1)
        )
    code = pyotp.TOTP(enrolled.totp_secret).at(clock())

    with pytest.raises(ExpiredOrInvalidChallengeError):
        service.verify_and_consume(token, code)


def test_principal_without_second_factor_cannot_use_a_challenge(service, session, clock):
    plain = PrincipalFactory()
    challenge = service.issue(plain.id)

    with pytest.raises(InvalidSecondFactorError):
        service.verify_and_consume(challenge, "000000")


def test_unknown_token_rejected(service):
    with pytest.raises(ExpiredOrInvalidChallengeError):
        service.verify_and_consume("challenge.1.-.999", "123456")
