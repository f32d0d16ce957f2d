"""
beacon_auth.services._shared.ports
==================================

Collection of *ports* (hexagonal interfaces) that define the contracts for
token signing and session persistence.

These ports decouple the service layer from concrete implementations of
token issuing and session-node storage.

Modules
-------
- :mod:`token_provider`:
    Defines :class:`~.TokenProvider`, the abstraction for signing and
    decoding compact tokens, plus a deterministic test double.

- :mod:`session_registry`:
    Defines :class:`~.SessionRegistry` and :class:`~.SessionNodeView`, the
    abstraction for refresh-token nodes, rotation links and revocation,
    plus a lock-protected in-memory implementation.

Design Notes
------------
Concrete adapters (SQL, Redis, flask-jwt-extended) implement these
interfaces under ``beacon_auth.infra``.
"""

from __future__ import annotations

from .session_registry import (
    InMemorySessionRegistry,
    SessionNodeView,
    SessionRegistry,
    follow_chain,
)
from .token_provider import ACCESS, CHALLENGE, REFRESH, StubTokenProvider, TokenProvider

__all__ = [
    "ACCESS",
    "CHALLENGE",
    "REFRESH",
    "TokenProvider",
    "StubTokenProvider",
    "SessionRegistry",
    "SessionNodeView",
    "InMemorySessionRegistry",
    "follow_chain",
]
