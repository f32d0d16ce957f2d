"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.orm import Session, scoped_session

from beacon_auth.core.extensions import db
from beacon_auth.repositories import (
    DeviceRepository,
    PrincipalRepository,
    SessionNodeRepository,
)
from beacon_auth.uow.base import UnitOfWork


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.principals = PrincipalRepository(session=self.session)
        self.devices = DeviceRepository(session=self.session)
        self.session_nodes = SessionNodeRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    SQLAlchemy-backed UoW using the Flask-scoped session.

    Everything done inside one ``with`` block commits together or not at all;
    cascade revocation and ``revoke_all`` rely on this.
    """

    def __init__(self) -> None:
        super().__init__(session=db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-only Unit of Work backed by the Flask-scoped SQLAlchemy session.

    Tries to own a fresh transaction and rolls it back on exit. If the session
    already has a transaction running (``InvalidRequestError`` from
    ``begin()``), the scope attaches to it and leaves it alone on exit.
    Either way a ``before_flush`` guard rejects pending ORM writes while the
    scope is open, and ``commit()`` is disallowed.
    """

    def __init__(self) -> None:
        super().__init__(session=db.session)
        self._owns_transaction = False
        self._guarded: Session | None = None

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        try:
            self.session.begin()
        except InvalidRequestError:
            # Autobegun or outer transaction: attach without owning it.
            self._owns_transaction = False
        else:
            self._owns_transaction = True
        self._install_guard()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._owns_transaction:
                self.rollback()
        finally:
            self._remove_guard()
            self._owns_transaction = False

    def commit(self) -> None:
        """
        :raises RuntimeError: always, to prevent accidental writes.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    # ----------------------------- Guards --------------------------------------

    @staticmethod
    def _block_flush(session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise RuntimeError(
                "Read-only UnitOfWork: ORM flush blocked (new/dirty/deleted objects present)."
            )

    def _install_guard(self) -> None:
        # Instance-level listener; a scoped_session target resolves to its factory.
        target = self.session() if isinstance(self.session, scoped_session) else self.session
        event.listen(target, "before_flush", self._block_flush)
        self._guarded = target

    def _remove_guard(self) -> None:
        if self._guarded is None:
            return
        if event.contains(self._guarded, "before_flush", self._block_flush):
            event.remove(self._guarded, "before_flush", self._block_flush)
        self._guarded = None
