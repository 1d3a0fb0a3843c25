"""Core database handle with statement caching and scoped transactions."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Generator, Mapping, Optional, TypeVar

from dbkit.db.binding import PreparedStatement, compile_statement
from dbkit.db.drivers import Driver, get_driver
from dbkit.db.statement_cache import DEFAULT_MAX_STATEMENTS, StatementCache
from dbkit.errors import ConnectionError, ExecuteError, QueryError, TransactionError
from dbkit.models.query import PING_QUERY, Query, Statement
from dbkit.models.result import (
    Either,
    Failure,
    Left,
    Right,
    Success,
    Validation,
    validation_from_either,
)
from dbkit.redact import redact_options

logger = logging.getLogger(__name__)

A = TypeVar("A")


class Transaction:
    """
    Handle on the Database's connection while a transaction is open.

    Exposes the same ``query`` / ``execute`` surface as ``Database``.  Only
    valid inside the call that created it; any use afterwards raises
    ``TransactionError``.
    """

    def __init__(self, db: "Database"):
        self._db = db
        self._open = True
        self._rollback_only = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def rollback_only(self) -> bool:
        return self._rollback_only

    def set_rollback_only(self) -> None:
        """Roll back instead of committing when the transaction finishes."""
        self._check_open()
        self._rollback_only = True

    def query(self, query: Query[A]) -> A:
        self._check_open()
        return self._db._run_query(query)

    __call__ = query

    def execute(self, statement: Statement) -> int:
        self._check_open()
        return self._db._run_execute(statement)

    # -- internal --------------------------------------------------------------

    def _check_open(self) -> None:
        if not self._open:
            raise TransactionError("Transaction handle used after its transaction finished")

    def _close(self) -> None:
        self._open = False


class Database:
    """
    One live DB-API connection plus a cache of compiled statements.

    Every mutation that must be atomic goes through ``transaction()`` (or one
    of its result-driven variants), which commits on success, rolls back on
    failure, and restores the connection's auto-commit mode afterwards.
    Not thread-safe: callers serialize their own use of a handle.
    """

    def __init__(
        self,
        connection: Any,
        driver: Optional[Driver] = None,
        url: Optional[str] = None,
        max_statements: int = DEFAULT_MAX_STATEMENTS,
    ):
        self._conn = connection
        self._driver = driver or Driver()
        self.url = url
        self._statements = StatementCache(max_statements)
        self._transaction: Optional[Transaction] = None

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<Database {self.url or self._driver.name} ({state})>"

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.close()

    # -- connection lifecycle --------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def driver(self) -> Driver:
        return self._driver

    def connection(self) -> Any:
        if self._conn is None:
            raise ConnectionError("Database handle is closed")
        return self._conn

    def close(self) -> None:
        """Drop cached statements and close the connection. Idempotent."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        self._statements.clear()
        try:
            conn.close()
        except Exception as exc:
            raise ConnectionError(f"Error while closing {self.url or 'connection'}") from exc
        logger.info(f"Closed connection to {self.url or self._driver.name}")

    def is_alive(self) -> bool:
        """Run ``SELECT 1``; any failure means not alive."""
        try:
            return bool(self.query(PING_QUERY))
        except Exception as exc:
            logger.debug(f"Liveness check failed: {exc}")
            return False

    def cache_info(self) -> dict:
        return self._statements.get_stats()

    # -- queries ---------------------------------------------------------------

    def query(self, query: Query[A]) -> A:
        """Run ``query`` and return what its reduction produces."""
        return self._run_query(query)

    __call__ = query

    def execute(self, statement: Statement) -> int:
        """Run an insert, update, delete or DDL statement; returns the affected-row count."""
        return self._run_execute(statement)

    # -- transaction helpers ---------------------------------------------------

    @contextmanager
    def begin(self) -> Generator[Transaction, None, None]:
        """
        Open a transaction and yield its handle.

        Commits when the block exits normally (unless the handle was marked
        rollback-only), rolls back and re-raises when it raises.  The prior
        auto-commit mode is restored in every case.
        """
        conn = self.connection()
        if self._transaction is not None:
            raise TransactionError("Transactions cannot be nested")

        auto_commit = False
        try:
            auto_commit = self._driver.get_autocommit(conn)
            if auto_commit:
                self._driver.set_autocommit(conn, False)
            self._driver.begin(conn)
        except Exception as exc:
            if auto_commit:
                self._restore_autocommit(conn, raise_errors=False)
            raise TransactionError("Could not start transaction") from exc

        tx = Transaction(self)
        self._transaction = tx
        failed = False
        try:
            try:
                yield tx
            except BaseException:
                failed = True
                self._rollback(conn, quiet=True)
                raise
            if tx.rollback_only:
                self._rollback(conn)
            else:
                self._commit(conn)
        finally:
            tx._close()
            self._transaction = None
            if auto_commit:
                self._restore_autocommit(conn, raise_errors=not failed)

    def transaction(self, f: Callable[[Transaction], A]) -> A:
        """
        Opens a transaction which is committed after ``f`` is called.
        If ``f`` raises, the transaction is rolled back and the error re-raised.
        """
        with self.begin() as tx:
            return f(tx)

    def transaction_either(self, f: Callable[[Transaction], Either]) -> Either:
        """
        Opens a transaction which is committed when ``f`` returns ``Right``.
        If ``f`` returns ``Left`` the transaction is rolled back; if it raises,
        it is rolled back and the error re-raised.
        """
        with self.begin() as tx:
            result = f(tx)
            if not isinstance(result, (Left, Right)):
                raise TypeError(f"transaction_either expects Left or Right, got {type(result).__name__}")
            if not result.is_right:
                tx.set_rollback_only()
            return result

    def transaction_validation(self, f: Callable[[Transaction], Validation]) -> Validation:
        """
        Opens a transaction which is committed when ``f`` returns ``Success``.
        If ``f`` returns ``Failure`` the transaction is rolled back.
        """
        def as_either(tx: Transaction) -> Either:
            result = f(tx)
            if not isinstance(result, (Failure, Success)):
                raise TypeError(f"transaction_validation expects Success or Failure, got {type(result).__name__}")
            return result.to_either()

        return validation_from_either(self.transaction_either(as_either))

    # -- internal --------------------------------------------------------------

    def _prepare(self, sql: str, values, error_cls: type[QueryError]) -> tuple[PreparedStatement, Any]:
        try:
            stmt = self._statements.get_or_compile(
                sql, lambda s: compile_statement(s, self._driver.paramstyle, self._driver.backslash_escapes)
            )
            return stmt, stmt.bind(values)
        except QueryError as exc:
            if isinstance(exc, error_cls):
                raise
            raise error_cls(str(exc), sql=sql) from exc

    def _cursor_for(self, sql: str, values, error_cls: type[QueryError]) -> Any:
        conn = self.connection()
        stmt, params = self._prepare(sql, values, error_cls)
        cursor = None
        try:
            cursor = conn.cursor()
            cursor.execute(stmt.operation, params)
        except Exception as exc:
            if cursor is not None:
                cursor.close()
            raise error_cls(f"{exc}", sql=sql) from exc
        return cursor

    def _run_query(self, query: Query[A]) -> A:
        driver_errors = self._driver.error_types(self.connection())
        cursor = self._cursor_for(query.sql, query.values, QueryError)
        try:
            return query.handle(cursor, driver_errors)
        finally:
            cursor.close()

    def _run_execute(self, statement: Statement) -> int:
        cursor = self._cursor_for(statement.sql, statement.values, ExecuteError)
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    def _commit(self, conn: Any) -> None:
        try:
            conn.commit()
        except Exception as exc:
            self._rollback(conn, quiet=True)
            raise TransactionError("Commit failed") from exc
        logger.debug("Transaction committed")

    def _rollback(self, conn: Any, quiet: bool = False) -> None:
        try:
            conn.rollback()
        except Exception as exc:
            if not quiet:
                raise TransactionError("Rollback failed") from exc
            logger.exception("Rollback failed")
            return
        logger.debug("Transaction rolled back")

    def _restore_autocommit(self, conn: Any, raise_errors: bool) -> None:
        try:
            self._driver.set_autocommit(conn, True)
        except Exception as exc:
            if raise_errors:
                raise TransactionError("Could not restore auto-commit") from exc
            logger.exception("Could not restore auto-commit")


# -- connecting ----------------------------------------------------------------


def connect(
    host: str,
    database_name: str,
    username: str,
    password: str,
    driver_name: str = "postgresql",
    extra_options: Optional[Mapping[str, Any]] = None,
    max_statements: int = DEFAULT_MAX_STATEMENTS,
) -> Database:
    """
    Create a connection to the given database.

    Credentials and ``extra_options`` travel in a properties mapping handed to
    the driver; they are never embedded in the ``<driver>://<host>/<database>`` URL.
    """
    driver = get_driver(driver_name)

    properties: dict[str, Any] = {"user": username, "password": password}
    properties.update(extra_options or {})

    url = driver.url(host, database_name)
    logger.info(f"Connecting to {url} with {redact_options(properties)}")
    connection = driver.connect(host, database_name, properties)

    return Database(connection, driver=driver, url=url, max_statements=max_statements)


def postgresql(
    host: str,
    database_name: str,
    username: str,
    password: str,
    extra_options: Optional[Mapping[str, Any]] = None,
) -> Database:
    return connect(host, database_name, username, password, "postgresql", extra_options)


def connect_from_settings(settings=None) -> Database:
    """Open a Database from ``DB_*`` environment settings."""
    from dbkit.config import get_settings
    settings = settings or get_settings()
    return connect(
        settings.DB_HOST,
        settings.DB_NAME,
        settings.DB_USER,
        settings.DB_PASSWORD.get_secret_value(),
        driver_name=settings.DB_DRIVER,
        extra_options=settings.options,
        max_statements=settings.DB_STATEMENT_CACHE_SIZE,
    )
