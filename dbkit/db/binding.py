"""Statement compilation and positional parameter binding.

SQL is always written with ``?`` placeholders.  Compiling rewrites those into
the driver module's DB-API ``paramstyle`` once, so the cached result can be
reused for every execution of the same text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Sequence

from dbkit.errors import QueryError

SUPPORTED_PARAMSTYLES = ("qmark", "format", "pyformat", "numeric", "named")

# PostgreSQL dollar quoting: $$...$$ or $tag$...$tag$
_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")


@dataclass(frozen=True)
class PreparedStatement:
    """Compiled form of a SQL string for one paramstyle."""

    sql: str
    operation: str
    param_count: int
    paramstyle: str = "qmark"

    def bind(self, values: Sequence[Any]) -> Sequence[Any] | dict[str, Any]:
        """
        Bind ``values`` to placeholders 1..n in order.  ``None`` is DB-API's
        typed NULL and goes through like any other value.
        """
        values = tuple(values)
        if len(values) != self.param_count:
            raise QueryError(
                f"Statement expects {self.param_count} parameter(s), got {len(values)}",
                sql=self.sql,
            )
        if self.paramstyle == "named":
            return {f"p{i}": v for i, v in enumerate(values, start=1)}
        return values


def _placeholder(style: str, index: int) -> str:
    if style == "qmark":
        return "?"
    if style in ("format", "pyformat"):
        return "%s"
    if style == "numeric":
        return f":{index}"
    return f":p{index}"


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def _quoted_end(sql: str, start: int, backslash: bool) -> int:
    """Index of the quote closing the literal opened at ``start``."""
    quote = sql[start]
    i = start + 1
    n = len(sql)
    while i < n:
        ch = sql[i]
        if backslash and ch == "\\":
            i += 2
            continue
        if ch == quote:
            # doubled quote inside a literal is an escaped quote
            if i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i
        i += 1
    raise QueryError("Unterminated quoted literal", sql=sql)


def compile_statement(sql: str, paramstyle: str = "qmark", backslash_escapes: bool = False) -> PreparedStatement:
    """
    Scan ``sql`` once and rewrite each ``?`` outside string literals, quoted
    identifiers, dollar-quoted bodies and comments into the driver's
    placeholder syntax.

    ``backslash_escapes`` makes ``\\`` escape the next character inside
    string literals (MySQL).  PostgreSQL ``E'...'`` literals always do.
    """
    if paramstyle not in SUPPORTED_PARAMSTYLES:
        raise QueryError(f"Unsupported paramstyle: {paramstyle}", sql=sql)

    escape_percent = paramstyle in ("format", "pyformat")
    out: list[str] = []
    count = 0
    i = 0
    n = len(sql)

    def emit(chunk: str) -> None:
        out.append(chunk.replace("%", "%%") if escape_percent else chunk)

    while i < n:
        ch = sql[i]
        if ch in ("'", '"', "`"):
            escape_string = (
                ch == "'"
                and i > 0
                and sql[i - 1] in "eE"
                and (i < 2 or not _is_word_char(sql[i - 2]))
            )
            backslash = ch != "`" and (backslash_escapes or escape_string)
            end = _quoted_end(sql, i, backslash)
            emit(sql[i:end + 1])
            i = end + 1
            continue
        if ch == "$" and (i == 0 or not _is_word_char(sql[i - 1])):
            m = _DOLLAR_TAG.match(sql, i)
            if m:
                end = sql.find(m.group(0), m.end())
                if end == -1:
                    raise QueryError("Unterminated dollar-quoted string", sql=sql)
                end += len(m.group(0))
                emit(sql[i:end])
                i = end
                continue
        if sql.startswith("--", i):
            end = sql.find("\n", i)
            end = n if end == -1 else end
            emit(sql[i:end])
            i = end
            continue
        if sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            end = n if end == -1 else end + 2
            emit(sql[i:end])
            i = end
            continue
        if ch == "?":
            count += 1
            out.append(_placeholder(paramstyle, count))
        else:
            emit(ch)
        i += 1

    return PreparedStatement(sql=sql, operation="".join(out), param_count=count, paramstyle=paramstyle)
