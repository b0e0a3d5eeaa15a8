# Overview: Explicit transaction boundary shared by every business operation.

from __future__ import annotations

from sqlalchemy import text

from ..extensions import db


class UnitOfWork:
    """
    One database transaction around one business operation.

    Usage:
        uow = UnitOfWork()
        with uow:
            _create_sale_inner(uow.session, ...)

    Leaving the block normally commits; leaving it with an exception rolls
    back everything written inside it, then re-raises.

    Nesting is allowed: only the outermost ``with`` commits or rolls back,
    so a caller can compose several operations into one transaction by
    passing the same UnitOfWork down.

    SQLITE: the transaction is opened with BEGIN IMMEDIATE so writers take
    the database write lock up front and serialize, instead of failing
    late with "database is locked" on upgrade from a read lock.
    """

    def __init__(self, session=None):
        self._session = session
        self._depth = 0

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    @property
    def active(self) -> bool:
        return self._depth > 0

    def begin(self) -> None:
        self._depth += 1
        if self._depth > 1:
            return
        session = self.session
        if session.get_bind().dialect.name == "sqlite":
            raw = session.connection().connection.dbapi_connection
            if not raw.in_transaction:
                session.execute(text("BEGIN IMMEDIATE"))

    def commit(self) -> None:
        self._depth = max(self._depth - 1, 0)
        if self._depth == 0:
            self.session.commit()

    def rollback(self) -> None:
        self._depth = max(self._depth - 1, 0)
        if self._depth == 0:
            self.session.rollback()

    def __enter__(self) -> "UnitOfWork":
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self.session.rollback()
                raise
        else:
            self.rollback()
        return False
