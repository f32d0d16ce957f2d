from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol

from beacon_auth.models.base import as_utc, utcnow
from beacon_auth.services._shared.errors import AlreadyRotatedError

log = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 1000


@dataclass(frozen=True)
class SessionNodeView:
    """
    Read-model for one node of a refresh-token family.

    :ivar jti: Token identifier embedded in the refresh token.
    :ivar principal_id: Owner principal id.
    :ivar device_id: Device the session was issued to.
    :ivar revoked: Terminal flag; never cleared once set.
    :ivar successor_jti: Node that replaced this one through rotation.
    :ivar expires_at: Absolute expiration (UTC).
    :ivar created_at: Issuance instant (UTC).
    """

    jti: str
    principal_id: int
    device_id: str
    revoked: bool
    successor_jti: str | None
    expires_at: datetime
    created_at: datetime

    @property
    def is_active(self) -> bool:
        return not self.revoked

    @property
    def was_rotated(self) -> bool:
        """Revoked by a rotation (as opposed to a logout)."""
        return self.revoked and self.successor_jti is not None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class SessionRegistry(Protocol):
    """
    Persisted record of every refresh-token node.

    ``mark_rotated`` MUST be a single atomic conditional write. ``revoke_all``
    and ``revoke_chain`` touch several nodes and MUST apply all-or-nothing.
    """

    def create(
        self,
        *,
        principal_id: int,
        device_id: str,
        jti: str,
        expires_at: datetime,
    ) -> SessionNodeView:
        """Persist a new active node."""

    def find(self, jti: str) -> SessionNodeView | None:
        """Fetch a node snapshot (if present)."""

    def mark_rotated(self, jti: str, successor_jti: str) -> None:
        """
        Retire ``jti`` in favour of ``successor_jti``.

        :raises AlreadyRotatedError: If the node is gone, revoked or already has a successor.
        """

    def mark_revoked(self, jti: str) -> bool:
        """Revoke a node without a successor. :returns: True if it was active."""

    def revoke_all(self, principal_id: int) -> int:
        """Revoke every active node of a principal. :returns: Number of nodes affected."""

    def revoke_device(self, principal_id: int, device_id: str) -> int:
        """Revoke every active node bound to one device of a principal."""

    def walk_successors(self, jti: str) -> list[SessionNodeView]:
        """Return the chain from ``jti`` (inclusive) forward to its newest descendant."""

    def revoke_chain(self, jti: str) -> int:
        """Revoke every still-active node of the chain starting at ``jti``."""

    def discard(self, jti: str) -> None:
        """Delete a node that was created but never handed out."""

    def list_active(self, principal_id: int, now: datetime) -> list[SessionNodeView]:
        """List active, unexpired nodes of a principal, newest first."""

    def delete_expired(self, now: datetime) -> int:
        """Delete nodes past their expiry; failures are logged and skipped."""


def follow_chain(
    start: SessionNodeView | None,
    lookup: Callable[[str], SessionNodeView | None],
    *,
    max_hops: int = DEFAULT_MAX_HOPS,
) -> list[SessionNodeView]:
    """
    Walk ``successor_jti`` links iteratively from ``start``.

    Stops at the chain tip, at a missing successor, on a repeated jti, or after
    ``max_hops`` links; the latter two are logged as anomalies.
    """
    chain: list[SessionNodeView] = []
    seen: set[str] = set()
    node = start
    while node is not None:
        if node.jti in seen:
            log.warning(
                "Session chain cycle detected",
                extra={"event": "session_chain_cycle", "jti": node.jti},
            )
            break
        if len(chain) > max_hops:
            log.warning(
                "Session chain exceeded hop bound",
                extra={"event": "session_chain_truncated", "jti": node.jti, "count": max_hops},
            )
            break
        seen.add(node.jti)
        chain.append(node)
        if node.successor_jti is None:
            break
        node = lookup(node.successor_jti)
    return chain


class InMemorySessionRegistry(SessionRegistry):
    """
    In-memory session registry with atomic conditional writes.

    .. note::
       Uses a re-entrant lock to simulate row atomicity in unit tests.
    """

    def __init__(
        self,
        *,
        max_hops: int = DEFAULT_MAX_HOPS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._by_jti: dict[str, SessionNodeView] = {}
        self._lock = threading.RLock()
        self._max_hops = max_hops
        self._clock = clock or utcnow

    # -------------------------- API ----------------------------

    def create(
        self,
        *,
        principal_id: int,
        device_id: str,
        jti: str,
        expires_at: datetime,
    ) -> SessionNodeView:
        node = SessionNodeView(
            jti=jti,
            principal_id=principal_id,
            device_id=device_id,
            revoked=False,
            successor_jti=None,
            expires_at=as_utc(expires_at),
            created_at=self._clock(),
        )
        with self._lock:
            if jti in self._by_jti:
                raise ValueError(f"Duplicate session jti: {jti}")
            self._by_jti[jti] = node
        return node

    def find(self, jti: str) -> SessionNodeView | None:
        with self._lock:
            return self._by_jti.get(jti)

    def mark_rotated(self, jti: str, successor_jti: str) -> None:
        with self._lock:
            node = self._by_jti.get(jti)
            if node is None or node.revoked or node.successor_jti is not None:
                raise AlreadyRotatedError(jti)
            self._by_jti[jti] = replace(node, revoked=True, successor_jti=successor_jti)

    def mark_revoked(self, jti: str) -> bool:
        with self._lock:
            node = self._by_jti.get(jti)
            if node is None or node.revoked:
                return False
            self._by_jti[jti] = replace(node, revoked=True)
            return True

    def _revoke_where(self, predicate: Callable[[SessionNodeView], bool]) -> int:
        with self._lock:
            targets = [n for n in self._by_jti.values() if not n.revoked and predicate(n)]
            for node in targets:
                self._by_jti[node.jti] = replace(node, revoked=True)
            return len(targets)

    def revoke_all(self, principal_id: int) -> int:
        return self._revoke_where(lambda n: n.principal_id == principal_id)

    def revoke_device(self, principal_id: int, device_id: str) -> int:
        return self._revoke_where(
            lambda n: n.principal_id == principal_id and n.device_id == device_id
        )

    def walk_successors(self, jti: str) -> list[SessionNodeView]:
        with self._lock:
            return follow_chain(self._by_jti.get(jti), self._by_jti.get, max_hops=self._max_hops)

    def revoke_chain(self, jti: str) -> int:
        with self._lock:
            chain = {n.jti for n in self.walk_successors(jti)}
            return self._revoke_where(lambda n: n.jti in chain)

    def discard(self, jti: str) -> None:
        with self._lock:
            self._by_jti.pop(jti, None)

    def list_active(self, principal_id: int, now: datetime) -> list[SessionNodeView]:
        with self._lock:
            nodes = [
                n
                for n in self._by_jti.values()
                if n.principal_id == principal_id and n.is_active and not n.is_expired(now)
            ]
        return sorted(nodes, key=lambda n: n.created_at, reverse=True)

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [jti for jti, n in self._by_jti.items() if n.is_expired(now)]
            for jti in expired:
                del self._by_jti[jti]
            return len(expired)
