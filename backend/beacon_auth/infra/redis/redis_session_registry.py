# comments in English; reST docstrings
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, cast

import redis  # type: ignore[import-untyped]

from beacon_auth.models.base import utcnow
from beacon_auth.services._shared.errors import AlreadyRotatedError
from beacon_auth.services._shared.ports import SessionNodeView, SessionRegistry, follow_chain
from beacon_auth.services._shared.ports.session_registry import DEFAULT_MAX_HOPS

log = logging.getLogger(__name__)


def _s(value: Any, default: str = "") -> str:
    """Normalize a Redis reply (bytes or str) to ``str``."""
    if value is None:
        return default
    if isinstance(value, bytes | bytearray):
        return value.decode()
    return str(value)


class RedisSessionRegistry(SessionRegistry):
    """
    Redis-backed session registry.

    Layout
    ------
    - ``sn:{jti}``: hash with ``principal_id``, ``device_id``, ``revoked``
      (``"0"``/``"1"``), ``successor`` (empty until rotated), ``expires_at``
      and ``created_at`` (epoch seconds). The key TTL matches the node expiry.
    - ``sn:p:{principal_id}``: set of the principal's jtis.

    Conditional writes use WATCH/MULTI/EXEC (optimistic locking) and retry on
    :class:`redis.WatchError`.

    :param r: A Redis client (already connected).
    :param max_hops: Upper bound when walking a rotation chain.
    :param clock: Callable returning the current aware UTC datetime.
    """

    def __init__(
        self,
        r: redis.Redis,
        *,
        max_hops: int = DEFAULT_MAX_HOPS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.r = r
        self._max_hops = max_hops
        self._clock = clock or utcnow

    # -------------------- helpers --------------------

    @staticmethod
    def _k(jti: str) -> str:
        return f"sn:{jti}"

    @staticmethod
    def _kp(principal_id: int) -> str:
        return f"sn:p:{principal_id}"

    @staticmethod
    def _view(jti: str, h: dict[Any, Any]) -> SessionNodeView:
        def field(name: str, default: str = "") -> str:
            return _s(h.get(name.encode(), h.get(name)), default)

        successor = field("successor")
        return SessionNodeView(
            jti=jti,
            principal_id=int(field("principal_id", "0")),
            device_id=field("device_id"),
            revoked=field("revoked", "0") == "1",
            successor_jti=successor or None,
            expires_at=datetime.fromtimestamp(float(field("expires_at", "0")), tz=UTC),
            created_at=datetime.fromtimestamp(float(field("created_at", "0")), tz=UTC),
        )

    def _members(self, principal_id: int) -> list[str]:
        return sorted(_s(m) for m in self.r.smembers(self._kp(principal_id)))

    # -------------------- API ------------------------

    def create(
        self,
        *,
        principal_id: int,
        device_id: str,
        jti: str,
        expires_at: datetime,
    ) -> SessionNodeView:
        """Insert the node *before* the refresh token is handed to the client."""
        now = self._clock()
        ttl = max(1, int(expires_at.timestamp() - now.timestamp()))
        mapping = {
            "principal_id": str(principal_id),
            "device_id": device_id,
            "revoked": "0",
            "successor": "",
            "expires_at": repr(expires_at.timestamp()),
            "created_at": repr(now.timestamp()),
        }
        key = self._k(jti)
        pipe = self.r.pipeline(transaction=True)
        pipe.hset(key, mapping=mapping)
        pipe.expire(key, ttl)
        pipe.sadd(self._kp(principal_id), jti)
        pipe.execute()
        return self._view(jti, mapping)

    def find(self, jti: str) -> SessionNodeView | None:
        h = self.r.hgetall(self._k(jti))
        if not h:
            return None
        return self._view(jti, h)

    def mark_rotated(self, jti: str, successor_jti: str) -> None:
        key = self._k(jti)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    h = p.hgetall(key)
                    if not h:
                        p.unwatch()
                        raise AlreadyRotatedError(jti)
                    node = self._view(jti, h)
                    if node.revoked or node.successor_jti is not None:
                        p.unwatch()
                        raise AlreadyRotatedError(jti)
                    p.multi()
                    p.hset(key, mapping={"revoked": "1", "successor": successor_jti})
                    p.execute()
                    return
            except redis.WatchError:
                # Concurrent modification detected; re-read and decide again
                continue

    def mark_revoked(self, jti: str) -> bool:
        return self._revoke_keys([jti]) == 1

    def revoke_all(self, principal_id: int) -> int:
        return self._revoke_keys(self._members(principal_id))

    def revoke_device(self, principal_id: int, device_id: str) -> int:
        jtis = [
            jti
            for jti in self._members(principal_id)
            if (node := self.find(jti)) is not None and node.device_id == device_id
        ]
        return self._revoke_keys(jtis)

    def walk_successors(self, jti: str) -> list[SessionNodeView]:
        return follow_chain(self.find(jti), self.find, max_hops=self._max_hops)

    def revoke_chain(self, jti: str) -> int:
        """
        Revoke the whole chain in one MULTI block.

        Every node is WATCHed before it is read, so a rotation of the tip
        between the walk and EXEC aborts the transaction and the chain is
        walked again, this time including the new child.
        """
        while True:
            try:
                with self.r.pipeline() as p:
                    chain = self._walk_watched(p, jti)
                    active = [node.jti for node in chain if node.is_active]
                    if not active:
                        return 0
                    p.multi()
                    for j in active:
                        p.hset(self._k(j), "revoked", "1")
                    p.execute()
                    return len(active)
            except redis.WatchError:
                continue

    def discard(self, jti: str) -> None:
        key = self._k(jti)
        principal_id = self.r.hget(key, "principal_id")
        pipe = self.r.pipeline(transaction=True)
        pipe.delete(key)
        if principal_id is not None:
            pipe.srem(self._kp(int(_s(principal_id))), jti)
        pipe.execute()

    def list_active(self, principal_id: int, now: datetime) -> list[SessionNodeView]:
        nodes: list[SessionNodeView] = []
        stale: list[str] = []
        for jti in self._members(principal_id):
            node = self.find(jti)
            if node is None:
                # Hash expired through its TTL; drop it from the index
                stale.append(jti)
            elif node.is_active and not node.is_expired(now):
                nodes.append(node)
        if stale:
            self.r.srem(self._kp(principal_id), *stale)
        return sorted(nodes, key=lambda n: n.created_at, reverse=True)

    def delete_expired(self, now: datetime) -> int:
        """
        Remove nodes whose ``expires_at`` has passed and prune index entries
        whose hash already expired through its TTL.
        """
        deleted = 0
        for index_key in self.r.scan_iter(match="sn:p:*"):
            index_key = _s(index_key)
            for member in list(self.r.smembers(index_key)):
                jti = _s(member)
                try:
                    node = self.find(jti)
                    if node is None:
                        self.r.srem(index_key, jti)
                    elif node.is_expired(now):
                        pipe = self.r.pipeline(transaction=True)
                        pipe.delete(self._k(jti))
                        pipe.srem(index_key, jti)
                        pipe.execute()
                        deleted += 1
                except redis.RedisError:
                    log.warning(
                        "Failed to delete expired session node",
                        extra={"event": "session_sweep_skip", "jti": jti},
                        exc_info=True,
                    )
        return deleted

    # ------------------------- internals -------------------------

    def _revoke_keys(self, jtis: Iterable[str]) -> int:
        """Flip ``revoked`` to ``"1"`` on every listed node that is still active."""
        keys = [self._k(j) for j in jtis]
        if not keys:
            return 0
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(*keys)
                    active = [k for k in keys if _s(p.hget(k, "revoked"), "1") == "0"]
                    p.multi()
                    for k in active:
                        p.hset(k, "revoked", "1")
                    p.execute()
                    return len(cast(list[str], active))
            except redis.WatchError:
                continue

    def _walk_watched(self, p: Any, jti: str) -> list[SessionNodeView]:
        """Walk the chain through ``p``, WATCHing each key before reading it."""

        def lookup(key: str) -> SessionNodeView | None:
            p.watch(self._k(key))
            h = p.hgetall(self._k(key))
            return self._view(key, h) if h else None

        return follow_chain(lookup(jti), lookup, max_hops=self._max_hops)
