"""Exception hierarchy for the database layer.

Driver exceptions are never leaked bare from preparation or execution: they are
wrapped in one of the classes below and chained as ``__cause__``.
"""

from __future__ import annotations

from typing import Optional


class DatabaseError(RuntimeError):
    """Base class for every error raised by dbkit."""


class ConnectionError(DatabaseError):  # noqa: A001 - mirrors the driver vocabulary
    """The driver could not be loaded, refused the connection, or the handle is closed."""


class QueryError(DatabaseError):
    """Preparing, binding or executing a query failed."""

    def __init__(self, message: str, sql: Optional[str] = None):
        super().__init__(message)
        self.sql = sql


class ExecuteError(QueryError):
    """Preparing, binding or executing an update / DDL statement failed."""


class TransactionError(DatabaseError):
    """Transaction control itself failed (auto-commit toggle, nesting, expired handle)."""
