# comments in English; reST docstrings
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from beacon_auth.models.base import as_utc
from beacon_auth.models.session_node import SessionNode
from beacon_auth.services._shared.errors import AlreadyRotatedError
from beacon_auth.services._shared.ports import SessionNodeView, SessionRegistry, follow_chain
from beacon_auth.services._shared.ports.session_registry import DEFAULT_MAX_HOPS
from beacon_auth.uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)


def to_view(row: SessionNode) -> SessionNodeView:
    """Project an ORM row onto the registry read-model."""
    return SessionNodeView(
        jti=row.jti,
        principal_id=row.principal_id,
        device_id=row.device_id,
        revoked=bool(row.revoked),
        successor_jti=row.successor_jti,
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at),
    )


class SQLSessionRegistry(SessionRegistry):
    """
    Relational session registry.

    Every method runs in its own unit of work; multi-row operations
    (``revoke_all``, ``revoke_device``) commit as one transaction and
    ``revoke_chain`` commits one transaction per pass. Rotation
    atomicity comes from the conditional ``UPDATE`` in
    :meth:`SessionNodeRepository.mark_rotated`.

    :param max_hops: Upper bound when walking a rotation chain.
    :param uow_factory: Read-write unit of work factory (tests may inject one).
    """

    def __init__(
        self,
        *,
        max_hops: int = DEFAULT_MAX_HOPS,
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] = SQLAlchemyUnitOfWork,
        ro_uow_factory: Callable[[], SQLAlchemyReadOnlyUnitOfWork] = SQLAlchemyReadOnlyUnitOfWork,
    ) -> None:
        self._max_hops = max_hops
        self._uow = uow_factory
        self._ro_uow = ro_uow_factory

    # -------------------------- API ----------------------------

    def create(
        self,
        *,
        principal_id: int,
        device_id: str,
        jti: str,
        expires_at: datetime,
    ) -> SessionNodeView:
        with self._uow() as uow:
            row = uow.session_nodes.create(
                jti=jti,
                principal_id=principal_id,
                device_id=device_id,
                expires_at=expires_at,
            )
            return to_view(row)

    def find(self, jti: str) -> SessionNodeView | None:
        with self._ro_uow() as uow:
            row = uow.session_nodes.get_by_jti(jti)
            return to_view(row) if row is not None else None

    def mark_rotated(self, jti: str, successor_jti: str) -> None:
        with self._uow() as uow:
            if uow.session_nodes.mark_rotated(jti, successor_jti) != 1:
                raise AlreadyRotatedError(jti)

    def mark_revoked(self, jti: str) -> bool:
        with self._uow() as uow:
            return uow.session_nodes.mark_revoked(jti) == 1

    def revoke_all(self, principal_id: int) -> int:
        with self._uow() as uow:
            return uow.session_nodes.revoke_all_for_principal(principal_id)

    def revoke_device(self, principal_id: int, device_id: str) -> int:
        with self._uow() as uow:
            return uow.session_nodes.revoke_for_device(principal_id, device_id)

    def walk_successors(self, jti: str) -> list[SessionNodeView]:
        with self._ro_uow() as uow:
            return self._walk(uow, jti)

    def revoke_chain(self, jti: str) -> int:
        """
        Revoke ``jti`` and every descendant that is still active.

        Each pass walks and revokes in one transaction, then re-reads the tip.
        A rotation of the tip that committed between the walk and the
        ``UPDATE`` leaves the tip with a successor the pass never saw, so the
        walk resumes from that successor. Once the tip is revoked with no
        successor, :meth:`mark_rotated` can no longer attach a child to it.
        """
        revoked = 0
        seen: set[str] = set()
        start: str | None = jti
        while start is not None and start not in seen:
            with self._uow() as uow:
                chain = self._walk(uow, start)
                revoked += uow.session_nodes.revoke_many(node.jti for node in chain)
            if not chain:
                break
            seen.update(node.jti for node in chain)
            if len(seen) > self._max_hops:
                break
            tip = self.find(chain[-1].jti)
            start = tip.successor_jti if tip is not None else None
        return revoked

    def discard(self, jti: str) -> None:
        with self._uow() as uow:
            uow.session_nodes.delete_by_jti(jti)

    def list_active(self, principal_id: int, now: datetime) -> list[SessionNodeView]:
        with self._ro_uow() as uow:
            return [to_view(row) for row in uow.session_nodes.list_active(principal_id, now)]

    def delete_expired(self, now: datetime) -> int:
        """
        Delete expired nodes one row per transaction.

        A row that fails to delete is logged and skipped; the sweep never raises
        for per-row failures.
        """
        with self._ro_uow() as uow:
            jtis = uow.session_nodes.expired_jtis(now)

        deleted = 0
        for jti in jtis:
            try:
                with self._uow() as uow:
                    deleted += uow.session_nodes.delete_by_jti(jti)
            except SQLAlchemyError:
                log.warning(
                    "Failed to delete expired session node",
                    extra={"event": "session_sweep_skip", "jti": jti},
                    exc_info=True,
                )
        return deleted

    # ------------------------- helpers -------------------------

    def _walk(self, uow: SQLAlchemyReadOnlyUnitOfWork | SQLAlchemyUnitOfWork, jti: str):
        def lookup(key: str) -> SessionNodeView | None:
            row = uow.session_nodes.get_by_jti(key)
            return to_view(row) if row is not None else None

        return follow_chain(lookup(jti), lookup, max_hops=self._max_hops)
