"""Query / Statement values and the row wrapper handed to reductions."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Generic, Iterator, Optional, Sequence, TypeVar

from dbkit.errors import QueryError

A = TypeVar("A")


class Row:
    """One result row. Index or column-name access; typed accessors return None for NULL."""

    __slots__ = ("_values", "_columns")

    def __init__(self, values: Sequence[Any], columns: Sequence[str] = ()):
        self._values = tuple(values)
        self._columns = tuple(columns)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, str):
            try:
                key = self._columns.index(key)
            except ValueError:
                raise KeyError(key) from None
        return self._values[key]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Row):
            return self._values == other._values
        if isinstance(other, tuple):
            return self._values == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"Row({self._values!r})"

    @property
    def columns(self) -> tuple[str, ...]:
        return self._columns

    def to_dict(self) -> dict[str, Any]:
        return dict(zip(self._columns, self._values))

    def get(self, key: int | str, default: Any = None) -> Any:
        try:
            value = self[key]
        except (IndexError, KeyError):
            return default
        return default if value is None else value

    # -- typed accessors -------------------------------------------------------

    def _convert(self, key: int | str, conv: Callable[[Any], Any]) -> Any:
        value = self[key]
        return None if value is None else conv(value)

    def int(self, key: int | str) -> Optional[int]:
        return self._convert(key, int)

    def float(self, key: int | str) -> Optional[float]:
        return self._convert(key, float)

    def decimal(self, key: int | str) -> Optional[Decimal]:
        return self._convert(key, lambda v: v if isinstance(v, Decimal) else Decimal(str(v)))

    def string(self, key: int | str) -> Optional[str]:
        return self._convert(key, str)

    def bool(self, key: int | str) -> Optional[bool]:
        return self._convert(key, bool)

    def bytes(self, key: int | str) -> Optional[bytes]:
        return self._convert(key, bytes)


def iter_rows(
    cursor: Any,
    driver_errors: tuple[type[BaseException], ...] = (),
    sql: Optional[str] = None,
) -> Iterator[Row]:
    """
    Lazily wrap a DB-API cursor's result set in ``Row`` objects.

    Rows are fetched one at a time, so a driver can fail after ``execute``
    returned; those failures (instances of ``driver_errors``) become
    ``QueryError``.
    """
    description = cursor.description or ()
    columns = [d[0] for d in description]
    while True:
        try:
            raw = cursor.fetchone()
        except driver_errors as exc:
            raise QueryError(str(exc), sql=sql) from exc
        if raw is None:
            return
        yield Row(raw, columns)


class Query(Generic[A]):
    """
    SQL text, positional bind values and a reduction over the result rows.

    Either subclass and override ``reduce`` (setting ``sql`` / ``values`` as
    class attributes), or build one directly::

        Query("SELECT name FROM users WHERE id = ?", [7], lambda rows: next(rows)[0])
    """

    sql: str = ""
    values: Sequence[Any] = ()

    def __init__(
        self,
        sql: Optional[str] = None,
        values: Optional[Sequence[Any]] = None,
        reducer: Optional[Callable[[Iterator[Row]], A]] = None,
    ):
        if sql is not None:
            self.sql = sql
        if values is not None:
            self.values = tuple(values)
        self._reducer = reducer

    def reduce(self, rows: Iterator[Row]) -> A:
        if self._reducer is None:
            return list(rows)  # type: ignore[return-value]
        return self._reducer(rows)

    def handle(self, cursor: Any, driver_errors: tuple[type[BaseException], ...] = ()) -> A:
        return self.reduce(iter_rows(cursor, driver_errors, self.sql))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(sql={self.sql!r}, values={tuple(self.values)!r})"


@dataclass(frozen=True)
class Statement:
    """Insert / update / delete / DDL: SQL plus bind values, no result decoding."""

    sql: str
    values: Sequence[Any] = field(default_factory=tuple)


class PingQuery(Query[bool]):
    """True if the server can process ``SELECT 1`` without touching any table."""

    sql = "SELECT 1"
    values = ()

    def __init__(self) -> None:
        super().__init__()

    def reduce(self, rows: Iterator[Row]) -> bool:
        return any(_is_integer_one(row[0]) for row in rows if len(row))


def _is_integer_one(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value == 1


PING_QUERY = PingQuery()
