# beacon_auth/services/challenges/service.py
from __future__ import annotations

from beacon_auth.services._shared.base import BaseService, Clock
from beacon_auth.services._shared.errors import (
    ExpiredOrInvalidChallengeError,
    InvalidCodeError,
    TokenDecodeError,
)
from beacon_auth.services._shared.ports import CHALLENGE, TokenProvider
from beacon_auth.services._shared.settings import AuthSettings
from beacon_auth.services.credentials.dto import PrincipalOut
from beacon_auth.services.credentials.service import CredentialService, to_principal_out


class ChallengeService(BaseService):
    """
    Issues and checks the short-lived token bridging password and one-time code.

    Challenges are not persisted: validity is signature plus expiry only, so a
    challenge stays usable for its whole lifetime and a wrong code does not
    burn it.
    """

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        credentials: CredentialService,
        settings: AuthSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(clock=clock)
        self.tokens = token_provider
        self.credentials = credentials
        self.settings = settings or AuthSettings()

    def issue(self, principal_id: int) -> str:
        """Sign a challenge carrying only the principal id and the ``challenge`` type."""
        return self.tokens.create_challenge_token(
            identity=principal_id, expires_delta=self.settings.challenge_ttl
        )

    def verify_and_consume(self, challenge_token: str, code: str) -> PrincipalOut:
        """
        Resolve a challenge plus one-time code to the principal.

        :raises ExpiredOrInvalidChallengeError: Bad signature, expiry, type or principal.
        :raises InvalidCodeError: The code does not match any accepted time step.
        """
        try:
            claims = self.tokens.decode(challenge_token)
        except TokenDecodeError as exc:
            raise ExpiredOrInvalidChallengeError(reason="challenge_invalid") from exc

        if claims.get("type") != CHALLENGE:
            raise ExpiredOrInvalidChallengeError(reason="challenge_wrong_type")

        try:
            principal_id = int(claims["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ExpiredOrInvalidChallengeError(reason="challenge_invalid") from exc

        with self.ro_uow() as uow:
            principal = uow.principals.get(principal_id)
            if principal is None or not principal.requires_second_factor:
                raise ExpiredOrInvalidChallengeError(reason="second_factor_not_enabled")
            secret = principal.totp_secret or ""
            out = to_principal_out(principal)

        if not self.credentials.check_code(secret, code):
            raise InvalidCodeError(reason="invalid_code")
        return out
