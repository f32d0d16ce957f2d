"""Integration tests for the ``flask sessions`` maintenance commands."""

from __future__ import annotations

from datetime import timedelta

from beacon_auth.models.base import utcnow
from beacon_auth.models.session_node import SessionNode
from sqlalchemy import select

from tests.factories.principal import PrincipalFactory
from tests.factories.session_node import SessionNodeFactory


def _jtis(session) -> set[str]:
    return set(session.execute(select(SessionNode.jti)).scalars())


def test_sweep_deletes_only_expired_nodes(app, session) -> None:
    owner = PrincipalFactory()
    SessionNodeFactory(principal_id=owner.id, jti="stale", expires_at=utcnow() - timedelta(days=1))
    SessionNodeFactory(principal_id=owner.id, jti="fresh")

    result = app.test_cli_runner().invoke(args=["sessions", "sweep"])

    assert result.exit_code == 0, result.output
    assert "Deleted 1 expired session node(s)." in result.output
    assert _jtis(session) == {"fresh"}


def test_sweep_accepts_a_reference_instant(app, session) -> None:
    owner = PrincipalFactory()
    SessionNodeFactory(principal_id=owner.id, jti="fresh")

    result = app.test_cli_runner().invoke(args=["sessions", "sweep", "--before", "2999-01-01"])

    assert result.exit_code == 0, result.output
    assert "Deleted 1" in result.output
    assert _jtis(session) == set()


def test_revoke_all(app, session) -> None:
    owner, bystander = PrincipalFactory(), PrincipalFactory()
    for jti in ("a", "b"):
        SessionNodeFactory(principal_id=owner.id, jti=jti)
    SessionNodeFactory(principal_id=bystander.id, jti="c")

    result = app.test_cli_runner().invoke(args=["sessions", "revoke-all", str(owner.id)])

    assert result.exit_code == 0, result.output
    assert f"Revoked 2 session node(s) for principal {owner.id}." in result.output
    revoked = dict(session.execute(select(SessionNode.jti, SessionNode.revoked)).all())
    assert revoked == {"a": True, "b": True, "c": False}
