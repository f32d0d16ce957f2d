"""SessionNode repository.

Every state change is a single conditional statement so concurrent writers
are arbitrated by the database, not by Python code. The affected-row count is
returned so callers can tell winners from losers.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import cast

from sqlalchemy import CursorResult, delete, select, update

from beacon_auth.models.session_node import SessionNode
from beacon_auth.repositories.base import BaseRepository


def _rowcount(result: object) -> int:
    return int(cast(CursorResult, result).rowcount or 0)


class SessionNodeRepository(BaseRepository[SessionNode]):
    """Persistence-only repository for :class:`SessionNode`."""

    model = SessionNode

    def create(
        self,
        *,
        jti: str,
        principal_id: int,
        device_id: str,
        expires_at: datetime,
    ) -> SessionNode:
        return self.add(
            SessionNode(
                jti=jti,
                principal_id=principal_id,
                device_id=device_id,
                expires_at=expires_at,
                revoked=False,
                successor_jti=None,
            )
        )

    def get_by_jti(self, jti: str) -> SessionNode | None:
        stmt = select(SessionNode).where(SessionNode.jti == jti).execution_options(
            populate_existing=True
        )
        return cast(SessionNode | None, self.session.execute(stmt).scalars().first())

    def mark_rotated(self, jti: str, successor_jti: str) -> int:
        """Retire ``jti`` in favour of ``successor_jti``.

        ``UPDATE ... SET revoked = true, successor_jti = :new
        WHERE jti = :old AND revoked = false AND successor_jti IS NULL``

        :returns: ``1`` for the single winner, ``0`` for everybody else.
        """
        stmt = (
            update(SessionNode)
            .where(
                SessionNode.jti == jti,
                SessionNode.revoked.is_(False),
                SessionNode.successor_jti.is_(None),
            )
            .values(revoked=True, successor_jti=successor_jti)
        )
        return _rowcount(self.session.execute(stmt))

    def mark_revoked(self, jti: str) -> int:
        stmt = (
            update(SessionNode)
            .where(SessionNode.jti == jti, SessionNode.revoked.is_(False))
            .values(revoked=True)
        )
        return _rowcount(self.session.execute(stmt))

    def revoke_many(self, jtis: Iterable[str]) -> int:
        """Revoke the listed nodes that are still active; successors are left untouched."""
        keys = list(jtis)
        if not keys:
            return 0
        stmt = (
            update(SessionNode)
            .where(SessionNode.jti.in_(keys), SessionNode.revoked.is_(False))
            .values(revoked=True)
        )
        return _rowcount(self.session.execute(stmt))

    def revoke_all_for_principal(self, principal_id: int) -> int:
        stmt = (
            update(SessionNode)
            .where(SessionNode.principal_id == principal_id, SessionNode.revoked.is_(False))
            .values(revoked=True)
        )
        return _rowcount(self.session.execute(stmt))

    def revoke_for_device(self, principal_id: int, device_id: str) -> int:
        stmt = (
            update(SessionNode)
            .where(
                SessionNode.principal_id == principal_id,
                SessionNode.device_id == device_id,
                SessionNode.revoked.is_(False),
            )
            .values(revoked=True)
        )
        return _rowcount(self.session.execute(stmt))

    def list_active(self, principal_id: int, now: datetime) -> Sequence[SessionNode]:
        """Active, unexpired nodes of a principal, newest first."""
        stmt = (
            select(SessionNode)
            .where(
                SessionNode.principal_id == principal_id,
                SessionNode.revoked.is_(False),
                SessionNode.expires_at > now,
            )
            .order_by(SessionNode.created_at.desc(), SessionNode.id.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def expired_jtis(self, now: datetime) -> list[str]:
        stmt = select(SessionNode.jti).where(SessionNode.expires_at <= now).order_by(SessionNode.id)
        return [str(jti) for jti in self.session.execute(stmt).scalars()]

    def delete_by_jti(self, jti: str) -> int:
        return _rowcount(self.session.execute(delete(SessionNode).where(SessionNode.jti == jti)))
