"""dbkit — a thin layer over DB-API drivers: cached statements and scoped transactions."""

from dbkit.db import Database, Transaction, connect, connect_from_settings, postgresql
from dbkit.errors import (
    ConnectionError,
    DatabaseError,
    ExecuteError,
    QueryError,
    TransactionError,
)
from dbkit.models import (
    PING_QUERY,
    Failure,
    Left,
    PingQuery,
    Query,
    Right,
    Row,
    Statement,
    Success,
)

__version__ = "0.1.0"

__all__ = [
    "Database", "Transaction", "connect", "connect_from_settings", "postgresql",
    "DatabaseError", "ConnectionError", "QueryError", "ExecuteError", "TransactionError",
    "Query", "Statement", "Row", "PingQuery", "PING_QUERY",
    "Left", "Right", "Failure", "Success",
]
