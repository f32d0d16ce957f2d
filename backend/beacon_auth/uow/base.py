"""
Abstract Unit of Work contracts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from beacon_auth.repositories import (
        DeviceRepository,
        PrincipalRepository,
        SessionNodeRepository,
    )


class UnitOfWork(ABC):
    """
    Transaction boundary for one auth use-case.

    Exposes the principal, device and session-node repositories over a single
    session. Rotating a node, revoking a chain or signing a principal out
    everywhere happens inside one unit: all rows change or none do.
    """

    principals: PrincipalRepository
    devices: DeviceRepository
    session_nodes: SessionNodeRepository

    @abstractmethod
    def __enter__(self) -> UnitOfWork: ...

    @abstractmethod
    def __exit__(self, exc_type, exc, tb) -> None:
        """Commit when the block succeeded, roll back otherwise."""

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...
