"""
Behavioural contract shared by every SessionRegistry backend.

The same cases run against the in-memory registry, the SQL registry (inside
the per-test SAVEPOINT) and the Redis registry (on fakeredis).
"""

from __future__ import annotations

import threading
from datetime import timedelta

import fakeredis
import pytest
from beacon_auth.infra.redis.redis_session_registry import RedisSessionRegistry
from beacon_auth.infra.sql.sql_session_registry import SQLSessionRegistry
from beacon_auth.services._shared.errors import AlreadyRotatedError
from beacon_auth.services._shared.ports import InMemorySessionRegistry

from tests.factories.principal import PrincipalFactory


@pytest.fixture(params=["memory", "sql", "redis"])
def registry(request, clock, session):
    """Yield one registry per backend, all driven by the shared fake clock."""
    if request.param == "memory":
        return InMemorySessionRegistry(clock=clock)
    if request.param == "sql":
        return SQLSessionRegistry()
    r = fakeredis.FakeRedis()
    r.flushall()
    return RedisSessionRegistry(r, clock=clock)


@pytest.fixture()
def owners(session):
    """Two real principals (the SQL backend references them by foreign key)."""
    return PrincipalFactory().id, PrincipalFactory().id


def _create(registry, clock, principal_id, jti, *, device_id="phone", days=30):
    return registry.create(
        principal_id=principal_id,
        device_id=device_id,
        jti=jti,
        expires_at=clock() + timedelta(days=days),
    )


def _chain(registry, clock, principal_id, *jtis):
    """Create ``jtis`` and link each one to the next through rotation."""
    for jti in jtis:
        _create(registry, clock, principal_id, jti)
    for parent, child in zip(jtis, jtis[1:], strict=False):
        registry.mark_rotated(parent, child)


def test_create_and_find(registry, clock, owners):
    pid, _ = owners
    created = _create(registry, clock, pid, "n1", device_id="tablet")

    found = registry.find("n1")
    assert found is not None
    assert found.jti == created.jti == "n1"
    assert found.principal_id == pid
    assert found.device_id == "tablet"
    assert found.is_active and not found.was_rotated
    assert found.successor_jti is None
    assert abs(found.expires_at - (clock() + timedelta(days=30))) < timedelta(seconds=1)
    assert registry.find("nope") is None


def test_mark_rotated_succeeds_exactly_once(registry, clock, owners):
    pid, _ = owners
    _create(registry, clock, pid, "parent")
    _create(registry, clock, pid, "child-1")
    _create(registry, clock, pid, "child-2")

    registry.mark_rotated("parent", "child-1")
    with pytest.raises(AlreadyRotatedError):
        registry.mark_rotated("parent", "child-2")

    parent = registry.find("parent")
    assert parent.revoked is True
    assert parent.successor_jti == "child-1"
    assert parent.was_rotated


def test_mark_rotated_rejects_logged_out_and_unknown_nodes(registry, clock, owners):
    pid, _ = owners
    _create(registry, clock, pid, "out")
    assert registry.mark_revoked("out") is True

    with pytest.raises(AlreadyRotatedError):
        registry.mark_rotated("out", "child")
    with pytest.raises(AlreadyRotatedError):
        registry.mark_rotated("ghost", "child")
    assert registry.find("out").successor_jti is None


def test_mark_revoked_is_idempotent(registry, clock, owners):
    pid, _ = owners
    _create(registry, clock, pid, "n")

    assert registry.mark_revoked("n") is True
    assert registry.mark_revoked("n") is False
    assert registry.mark_revoked("unknown") is False
    node = registry.find("n")
    assert node.revoked and not node.was_rotated


def test_revoke_all_touches_only_that_principal(registry, clock, owners):
    pid, other = owners
    _create(registry, clock, pid, "a1")
    _create(registry, clock, pid, "a2", device_id="laptop")
    _create(registry, clock, pid, "a3")
    registry.mark_revoked("a3")
    _create(registry, clock, other, "b1")

    assert registry.revoke_all(pid) == 2
    assert registry.revoke_all(pid) == 0
    assert registry.find("b1").is_active


def test_revoke_device(registry, clock, owners):
    pid, other = owners
    _create(registry, clock, pid, "phone-1", device_id="phone")
    _create(registry, clock, pid, "laptop-1", device_id="laptop")
    _create(registry, clock, other, "phone-x", device_id="phone")

    assert registry.revoke_device(pid, "phone") == 1
    assert registry.find("phone-1").revoked
    assert registry.find("laptop-1").is_active
    assert registry.find("phone-x").is_active


def test_walk_successors_follows_rotation_links(registry, clock, owners):
    pid, _ = owners
    _chain(registry, clock, pid, "r0", "r1", "r2", "r3")

    assert [n.jti for n in registry.walk_successors("r0")] == ["r0", "r1", "r2", "r3"]
    assert [n.jti for n in registry.walk_successors("r2")] == ["r2", "r3"]
    assert registry.walk_successors("missing") == []


def test_revoke_chain_revokes_descendants_only(registry, clock, owners):
    """The cascade runs forward from the replayed node; sibling logins survive."""
    pid, _ = owners
    _chain(registry, clock, pid, "c0", "c1", "c2")
    _create(registry, clock, pid, "other-device", device_id="laptop")

    assert registry.revoke_chain("c1") == 1  # c2 is the only active node left
    assert registry.find("c2").revoked
    assert registry.find("c2").successor_jti is None
    assert registry.find("other-device").is_active
    assert registry.revoke_chain("c0") == 0


def _rotate_tip_after_first_walk(registry, monkeypatch, tip, child):
    """
    Have a rival caller rotate ``tip`` to ``child`` right after the cascade
    first walks the chain, before it revokes anything.

    :returns: A callable that waits for the rival to finish.
    """
    done: list[bool] = []

    def rival():
        try:
            registry.mark_rotated(tip, child)
        except AlreadyRotatedError:
            pass

    if isinstance(registry, InMemorySessionRegistry):
        # The registry lock holds the rival back until the cascade returns.
        thread = threading.Thread(target=rival)
        original = registry.walk_successors

        def walk(jti):
            chain = original(jti)
            if not done:
                done.append(True)
                thread.start()
                thread.join(timeout=0.05)
            return chain

        monkeypatch.setattr(registry, "walk_successors", walk)
        return thread.join

    name = "_walk" if isinstance(registry, SQLSessionRegistry) else "_walk_watched"
    original = getattr(registry, name)

    def walk(*args):
        chain = original(*args)
        if not done:
            done.append(True)
            rival()
        return chain

    monkeypatch.setattr(registry, name, walk)
    return lambda: None


def test_revoke_chain_reaches_a_child_rotated_during_the_walk(registry, clock, owners, monkeypatch):
    """A tip rotated between the cascade's walk and its revoke is still cut off."""
    pid, _ = owners
    _chain(registry, clock, pid, "c0", "c1")
    _create(registry, clock, pid, "c2")
    settle = _rotate_tip_after_first_walk(registry, monkeypatch, "c1", "c2")

    registry.revoke_chain("c0")
    settle()

    chain = registry.walk_successors("c0")
    assert chain
    assert all(not node.is_active for node in chain)
    if not isinstance(registry, InMemorySessionRegistry):
        # Rival won the row before the revoke; its child joins the chain.
        assert [node.jti for node in chain] == ["c0", "c1", "c2"]
    with pytest.raises(AlreadyRotatedError):
        registry.mark_rotated(chain[-1].jti, "c3")


def test_discard_removes_the_node(registry, clock, owners):
    pid, _ = owners
    _create(registry, clock, pid, "tmp")

    registry.discard("tmp")
    assert registry.find("tmp") is None
    registry.discard("tmp")  # no error on a second call


def test_list_active_newest_first(registry, clock, owners):
    pid, other = owners
    _create(registry, clock, pid, "first")
    clock.advance(minutes=1)
    _create(registry, clock, pid, "second")
    clock.advance(minutes=1)
    _create(registry, clock, pid, "revoked")
    registry.mark_revoked("revoked")
    _create(registry, clock, pid, "short", days=1)
    _create(registry, clock, other, "not-mine")

    later = clock.advance(days=2)
    assert [n.jti for n in registry.list_active(pid, later)] == ["second", "first"]


def test_delete_expired(registry, clock, owners):
    pid, _ = owners
    _create(registry, clock, pid, "week", days=7)
    _create(registry, clock, pid, "month", days=30)

    assert registry.delete_expired(clock() + timedelta(days=10)) == 1
    assert registry.find("week") is None
    assert registry.find("month") is not None
    assert registry.delete_expired(clock() + timedelta(days=10)) == 0
