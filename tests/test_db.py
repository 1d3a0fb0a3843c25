"""Unit tests for the Database handle against real temporary SQLite files."""

from __future__ import annotations

import os
import sqlite3
import tempfile
import unittest

from dbkit.db.database import Database, connect
from dbkit.errors import ConnectionError, ExecuteError, QueryError
from dbkit.models.query import PING_QUERY, PingQuery, Query, Statement


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_db(**kwargs) -> Database:
    """Return a Database backed by a fresh temporary SQLite file."""
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    db = connect("", tmp.name, "", "", driver_name="sqlite", **kwargs)
    db.execute(Statement("CREATE TABLE t (id INTEGER PRIMARY KEY, x INTEGER, label TEXT)"))
    db._tmp_path = tmp.name
    return db


def _drop_db(db: Database) -> None:
    db.close()
    os.unlink(db._tmp_path)


COUNT_T = Query("SELECT COUNT(*) FROM t", reducer=lambda rows: next(rows).int(0))


# ===========================================================================
# 1. Connecting
# ===========================================================================

class TestConnect(unittest.TestCase):
    def test_sqlite_url_and_driver(self):
        db = _make_db()
        try:
            self.assertTrue(db.url.startswith("sqlite:///"))
            self.assertEqual(db.driver.name, "sqlite")
            self.assertFalse(db.closed)
        finally:
            _drop_db(db)

    def test_unknown_driver(self):
        with self.assertRaises(ConnectionError):
            connect("localhost", "app", "u", "p", driver_name="nosuchdb")

    def test_unreachable_database_file(self):
        with self.assertRaises(ConnectionError):
            connect("", "/nonexistent/dir/x.db", "", "", driver_name="sqlite")

    def test_extra_options_become_pragmas(self):
        tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
        tmp.close()
        db = connect("", tmp.name, "", "", driver_name="sqlite",
                     extra_options={"foreign_keys": "ON", "timeout": "2.5"})
        try:
            fk = db.query(Query("PRAGMA foreign_keys", reducer=lambda rows: next(rows).int(0)))
            self.assertEqual(fk, 1)
        finally:
            db.close()
            os.unlink(tmp.name)


# ===========================================================================
# 2. Query / execute
# ===========================================================================

class TestQueryExecute(unittest.TestCase):
    def setUp(self):
        self.db = _make_db()

    def tearDown(self):
        _drop_db(self.db)

    def test_single_row_insert_returns_one(self):
        n = self.db.execute(Statement("INSERT INTO t(x) VALUES (?)", [42]))
        self.assertEqual(n, 1)

    def test_update_returns_affected_rows(self):
        for x in (1, 2, 3):
            self.db.execute(Statement("INSERT INTO t(x) VALUES (?)", [x]))
        n = self.db.execute(Statement("UPDATE t SET label = ? WHERE x > ?", ["big", 1]))
        self.assertEqual(n, 2)

    def test_query_reduces_rows(self):
        self.db.execute(Statement("INSERT INTO t(x, label) VALUES (?, ?)", [7, "seven"]))
        q = Query("SELECT x, label FROM t WHERE x = ?", [7],
                  reducer=lambda rows: [(r.int("x"), r.string("label")) for r in rows])
        self.assertEqual(self.db.query(q), [(7, "seven")])

    def test_call_is_query_alias(self):
        self.assertTrue(self.db(PING_QUERY))

    def test_default_reduction_lists_rows(self):
        self.db.execute(Statement("INSERT INTO t(x) VALUES (?)", [5]))
        rows = self.db.query(Query("SELECT x FROM t"))
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0][0], 5)

    def test_none_bound_as_null(self):
        self.db.execute(Statement("INSERT INTO t(x, label) VALUES (?, ?)", [1, None]))
        q = Query("SELECT COUNT(*) FROM t WHERE label IS NULL", reducer=lambda rows: next(rows).int(0))
        self.assertEqual(self.db.query(q), 1)

    def test_question_mark_in_literal_is_not_a_placeholder(self):
        self.db.execute(Statement("INSERT INTO t(x, label) VALUES (?, 'why?')", [1]))
        q = Query("SELECT label FROM t", reducer=lambda rows: next(rows).string(0))
        self.assertEqual(self.db.query(q), "why?")

    def test_ping_true_for_select_one(self):
        self.assertTrue(self.db.query(PING_QUERY))

    def test_ping_reduction_false_for_select_zero(self):
        class PingZero(PingQuery):
            sql = "SELECT 0"

        self.assertFalse(self.db.query(PingZero()))

    def test_ping_reduction_requires_integer_one(self):
        for sql in ("SELECT 1.5", "SELECT '1'", "SELECT 'abc'", "SELECT NULL", "SELECT 1.0"):
            ping = PingQuery()
            ping.sql = sql
            with self.subTest(sql=sql):
                self.assertIs(self.db.query(ping), False)

    def test_ping_reduction_false_for_no_rows(self):
        class PingEmpty(PingQuery):
            sql = "SELECT 1 FROM t"

        self.assertFalse(self.db.query(PingEmpty()))

    def test_bad_sql_raises_query_error(self):
        with self.assertRaises(QueryError) as ctx:
            self.db.query(Query("SELECT * FROM missing_table"))
        self.assertEqual(ctx.exception.sql, "SELECT * FROM missing_table")
        self.assertIsNotNone(ctx.exception.__cause__)

    def test_driver_error_while_reading_rows_is_wrapped(self):
        self.db.execute(Statement("INSERT INTO t(id, x) VALUES (?, ?)", [1, 1]))
        self.db.execute(Statement("INSERT INTO t(id, x) VALUES (?, ?)", [2, 2]))
        # the second row overflows only when it is fetched
        sql = "SELECT CASE WHEN x = 2 THEN abs(-9223372036854775808) ELSE x END FROM t"
        with self.assertRaises(QueryError) as ctx:
            self.db.query(Query(sql, reducer=list))
        self.assertEqual(ctx.exception.sql, sql)
        self.assertIsInstance(ctx.exception.__cause__, sqlite3.Error)
        self.assertTrue(self.db.is_alive())

    def test_bad_statement_raises_execute_error(self):
        with self.assertRaises(ExecuteError):
            self.db.execute(Statement("INSERT INTO missing_table VALUES (?)", [1]))

    def test_parameter_count_mismatch(self):
        with self.assertRaises(ExecuteError):
            self.db.execute(Statement("INSERT INTO t(x) VALUES (?)", [1, 2]))
        with self.assertRaises(QueryError):
            self.db.query(Query("SELECT x FROM t WHERE x = ?"))

    def test_reduction_error_propagates_unchanged(self):
        def boom(rows):
            raise KeyError("reducer")

        with self.assertRaises(KeyError):
            self.db.query(Query("SELECT 1", reducer=boom))
        # connection still usable afterwards
        self.assertTrue(self.db.is_alive())


# ===========================================================================
# 3. Statement cache
# ===========================================================================

class TestStatementCaching(unittest.TestCase):
    def setUp(self):
        self.db = _make_db(max_statements=2)

    def tearDown(self):
        _drop_db(self.db)

    def test_same_sql_compiled_once(self):
        insert = "INSERT INTO t(x) VALUES (?)"
        self.db.execute(Statement(insert, [1]))
        self.db.execute(Statement(insert, [2]))
        stats = self.db.cache_info()
        self.assertGreaterEqual(stats["hits"], 1)
        self.assertEqual(self.db.query(COUNT_T), 2)

    def test_results_consistent_after_eviction(self):
        self.db.execute(Statement("INSERT INTO t(x) VALUES (?)", [9]))
        first = self.db.query(COUNT_T)
        # push COUNT_T out of a two-entry cache
        self.db.query(Query("SELECT 2"))
        self.db.query(Query("SELECT 3"))
        self.assertNotIn(COUNT_T.sql, self.db._statements)
        self.assertEqual(self.db.query(COUNT_T), first)

    def test_close_clears_cache(self):
        self.db.query(COUNT_T)
        self.db.close()
        self.assertEqual(self.db.cache_info()["size"], 0)


# ===========================================================================
# 4. Lifecycle
# ===========================================================================

class TestLifecycle(unittest.TestCase):
    def test_is_alive_false_after_close(self):
        db = _make_db()
        self.assertTrue(db.is_alive())
        _drop_db(db)
        self.assertFalse(db.is_alive())

    def test_close_is_idempotent(self):
        db = _make_db()
        _drop_db(db)
        db.close()
        self.assertTrue(db.closed)

    def test_operations_after_close_raise(self):
        db = _make_db()
        _drop_db(db)
        with self.assertRaises(ConnectionError):
            db.query(PING_QUERY)

    def test_context_manager_closes(self):
        db = _make_db()
        with db:
            self.assertTrue(db.is_alive())
        self.assertTrue(db.closed)
        os.unlink(db._tmp_path)


if __name__ == "__main__":
    unittest.main()
