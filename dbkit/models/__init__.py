"""Value types: queries, statements, rows and two-variant results."""

from dbkit.models.query import PING_QUERY, PingQuery, Query, Row, Statement
from dbkit.models.result import Either, Failure, Left, Right, Success, Validation

__all__ = [
    "Query", "Statement", "Row", "PingQuery", "PING_QUERY",
    "Either", "Left", "Right", "Validation", "Failure", "Success",
]
