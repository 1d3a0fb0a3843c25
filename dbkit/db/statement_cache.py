"""
Bounded LRU cache of compiled statements, keyed by SQL text.

The cache is advisory: an evicted entry is simply recompiled on the next
lookup.  Lookups and evictions run under a lock; callers keep their own
reference to the returned ``PreparedStatement`` so an eviction while a
statement is executing has no effect on that execution.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Callable

from dbkit.db.binding import PreparedStatement

logger = logging.getLogger(__name__)

DEFAULT_MAX_STATEMENTS = 256


class StatementCache:
    """
    SQL text -> PreparedStatement, least recently used entry evicted first.

    Example:
        >>> cache = StatementCache(max_statements=2)
        >>> stmt = cache.get_or_compile("SELECT 1", compile_fn)
    """

    def __init__(self, max_statements: int = DEFAULT_MAX_STATEMENTS):
        if max_statements < 1:
            raise ValueError("max_statements must be >= 1")
        self._max = max_statements
        self._entries: OrderedDict[str, PreparedStatement] = OrderedDict()
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0

    def get(self, sql: str) -> PreparedStatement | None:
        with self._lock:
            stmt = self._entries.get(sql)
            if stmt is None:
                self._misses += 1
                return None
            self._entries.move_to_end(sql)
            self._hits += 1
            return stmt

    def put(self, sql: str, stmt: PreparedStatement) -> None:
        with self._lock:
            self._store(sql, stmt)

    def get_or_compile(self, sql: str, compile_fn: Callable[[str], PreparedStatement]) -> PreparedStatement:
        """Return the cached statement for ``sql``, compiling and caching it on a miss."""
        stmt = self.get(sql)
        if stmt is not None:
            return stmt
        stmt = compile_fn(sql)
        with self._lock:
            # another caller may have compiled the same text meanwhile; keep one entry
            existing = self._entries.get(sql)
            if existing is not None:
                self._entries.move_to_end(sql)
                return existing
            self._store(sql, stmt)
        return stmt

    def evict(self, sql: str) -> None:
        """Drop ``sql`` from the cache. Idempotent."""
        with self._lock:
            self._entries.pop(sql, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, sql: object) -> bool:
        with self._lock:
            return sql in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> dict:
        """
        Returns:
            hits, misses, hit_rate (0-1), size and max_statements.
        """
        with self._lock:
            total = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total else 0.0,
                "size": len(self._entries),
                "max_statements": self._max,
            }

    # -- internal --------------------------------------------------------------

    def _store(self, sql: str, stmt: PreparedStatement) -> None:
        # caller holds self._lock
        self._entries[sql] = stmt
        self._entries.move_to_end(sql)
        while len(self._entries) > self._max:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cached statement: {evicted[:80]!r}")
