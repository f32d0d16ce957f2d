"""Principal repository for persistence and credential lookups."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from beacon_auth.models.principal import Principal, normalize_email
from beacon_auth.repositories.base import BaseRepository


class PrincipalRepository(BaseRepository[Principal]):
    """Persistence-only repository for :class:`Principal`.

    It NEVER handles tokens or sessions, only principal rows.
    """

    model = Principal

    def get_by_email(self, email: str) -> Principal | None:
        """Fetch a principal by case-folded email.

        :param email: Email address to normalise and search.
        :returns: Principal or ``None`` when not found.
        """
        stmt = select(Principal).where(Principal.email == normalize_email(email))
        result = self.session.execute(stmt).scalars().first()
        return cast(Principal | None, result)

    def exists_by_email(self, email: str) -> bool:
        """Return ``True`` when a principal with the provided email exists."""
        stmt = select(Principal.id).where(Principal.email == normalize_email(email))
        return bool(self.session.execute(stmt).first())

    def update_password(self, principal_id: int, new_password: str) -> None:
        """Rehash a principal's password and flush the session.

        :raises ValueError: If the principal does not exist.
        """
        principal = self.get(principal_id)
        if not principal:
            raise ValueError(f"Principal {principal_id} not found.")
        principal.password = new_password  # invokes setter -> hash
        self.flush()

    def set_second_factor(self, principal_id: int, *, secret: str | None, enabled: bool) -> None:
        """Store the TOTP secret and enabled flag."""
        principal = self.get(principal_id)
        if not principal:
            raise ValueError(f"Principal {principal_id} not found.")
        principal.totp_secret = secret
        principal.two_factor_enabled = enabled
        self.flush()
