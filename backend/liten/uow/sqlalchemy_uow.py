"""
SQLAlchemy implementation of UnitOfWork for Flask.

Units of work opened while another one is active on the same session *join*
it: only the outermost scope commits or rolls back. This lets a service wrap
several collaborators (the user directory and the SQL refresh-token ledger)
in one transaction while each collaborator still declares its own boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import suppress

from sqlalchemy import event, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session

from liten.core.extensions import db
from liten.repositories import RefreshTokenRepository, UserRepository
from liten.uow.base import UnitOfWork

logger = logging.getLogger(__name__)

_DEPTH_KEY = "liten.uow_depth"
_HOOKS_KEY = "liten.uow_after_commit"


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session | scoped_session[Session]) -> None:
        # Listeners and transaction state belong to the concrete session.
        if isinstance(session, scoped_session):
            session = session()
        self.session: Session = session
        self.users = UserRepository(session=self.session)
        self.refresh_tokens = RefreshTokenRepository(session=self.session)

    @property
    def depth(self) -> int:
        """Number of read-write scopes currently open on the session."""
        return int(self.session.info.get(_DEPTH_KEY, 0))


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    SQLAlchemy-backed UoW using the Flask-scoped session.

    The same session is shared across all repositories for a consistent
    transaction. Nested scopes are transparent: ``commit`` and ``rollback``
    only act on the outermost one, and callbacks registered through
    :meth:`after_commit` run once that outermost commit succeeded.
    """

    def __init__(self, session: Session | None = None) -> None:
        super().__init__(session=session if session is not None else db.session)
        self._outermost = False

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        depth = self.depth
        self._outermost = depth == 0
        if self._outermost:
            self.session.info[_HOOKS_KEY] = []
        self.session.info[_DEPTH_KEY] = depth + 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.session.info[_DEPTH_KEY] = self.depth - 1
        if not self._outermost:
            # The enclosing scope decides; an exception keeps propagating to it.
            return

        if exc_type is not None:
            self.rollback()
            return

        try:
            self.commit()
        except Exception:
            self.rollback()
            raise
        self._run_hooks()

    def commit(self) -> None:
        if self._outermost:
            self.session.commit()

    def rollback(self) -> None:
        if self._outermost:
            self.session.info.pop(_HOOKS_KEY, None)
            self.session.rollback()

    def after_commit(self, callback: Callable[[], None]) -> None:
        """
        Run ``callback`` after the outermost scope commits.

        Outside any open scope the callback runs immediately. Callbacks are
        dropped when the transaction rolls back.

        :param callback: Zero-argument callable.
        """
        if self.depth == 0:
            callback()
            return
        self.session.info.setdefault(_HOOKS_KEY, []).append(callback)

    def _run_hooks(self) -> None:
        hooks: list[Callable[[], None]] = self.session.info.pop(_HOOKS_KEY, None) or []
        for hook in hooks:
            hook()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-only Unit of Work backed by the Flask-scoped SQLAlchemy session.

    This UoW:
    - Applies ``SET TRANSACTION ISOLATION LEVEL`` and ``READ ONLY`` when it
      starts the transaction on a dialect that supports them.
    - Installs write-guards (ORM flush and raw DML) for its whole scope.
    - Rolls back on exit unless it runs inside a read-write scope.
    - Disallows ``commit()``.

    Parameters
    ----------
    isolation_level:
        Optional isolation hint, ``"READ COMMITTED"`` by default.
    enforce_db_readonly:
        If ``True`` (default), applies ``SET TRANSACTION READ ONLY`` when supported.

    Notes
    -----
    *SQLite* supports neither directive; the guards still prevent writes.
    """

    _WRITE_PREFIXES = (
        "insert",
        "update",
        "delete",
        "merge",
        "alter",
        "drop",
        "truncate",
        "create",
        "replace",
        "grant",
        "revoke",
    )
    _DIRECTIVE_DIALECTS = ("postgresql", "mysql", "mariadb")

    def __init__(
        self,
        *,
        isolation_level: str | None = "READ COMMITTED",
        enforce_db_readonly: bool = True,
        session: Session | None = None,
    ) -> None:
        super().__init__(session=session if session is not None else db.session)
        self.isolation_level = isolation_level
        self.enforce_db_readonly = enforce_db_readonly
        self._conn: Connection | None = None
        self._owns_rollback = False
        self._listeners_installed = False

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        fresh_txn = not self.session.in_transaction()
        self._owns_rollback = self.depth == 0
        self._conn = self.session.connection()

        if fresh_txn and self._conn.dialect.name in self._DIRECTIVE_DIALECTS:
            self._apply_directives()

        self._install_listeners()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._owns_rollback:
                self.rollback()
        finally:
            self._remove_listeners()
            self._conn = None

    def commit(self) -> None:
        """
        Disallow commit in read-only Unit of Work.

        :raises RuntimeError: always, to prevent accidental writes.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    def after_commit(self, callback: Callable[[], None]) -> None:
        raise RuntimeError("Read-only UnitOfWork never commits.")

    # ----------------------------- Guards & directives -------------------------

    def _apply_directives(self) -> None:
        try:
            if self.isolation_level:
                iso = self.isolation_level.upper().strip()
                self.session.execute(text(f"SET TRANSACTION ISOLATION LEVEL {iso}"))
            if self.enforce_db_readonly:
                self.session.execute(text("SET TRANSACTION READ ONLY"))
        except SQLAlchemyError as exc:
            logger.warning(
                "SET TRANSACTION directives failed (%s); falling back to guards only.", exc
            )

    def _install_listeners(self) -> None:
        if self._listeners_installed:
            return

        def _before_flush(session, flush_context, instances):
            if session.new or session.dirty or session.deleted:
                raise RuntimeError("Read-only UnitOfWork: ORM flush blocked.")

        def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            first_token = statement.lstrip().split(None, 1)[0].lower() if statement else ""
            if first_token.startswith(self._WRITE_PREFIXES):
                raise RuntimeError(
                    f"Read-only UnitOfWork: SQL statement blocked: {first_token.upper()}"
                )

        event.listen(self.session, "before_flush", _before_flush)
        event.listen(self._conn, "before_cursor_execute", _before_cursor_execute)
        self._ro_before_flush = _before_flush
        self._ro_before_cursor_execute = _before_cursor_execute
        self._listeners_installed = True

    def _remove_listeners(self) -> None:
        if not self._listeners_installed:
            return
        with suppress(SQLAlchemyError):
            event.remove(self.session, "before_flush", self._ro_before_flush)
        with suppress(SQLAlchemyError):
            event.remove(self._conn, "before_cursor_execute", self._ro_before_cursor_execute)
        self._listeners_installed = False
