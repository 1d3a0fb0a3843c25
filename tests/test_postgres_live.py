"""Live PostgreSQL tests — run with ``pytest --real-db`` against the DB_* settings."""

from __future__ import annotations

import unittest

import pytest

from dbkit.db.database import connect_from_settings
from dbkit.models.query import PING_QUERY, Query, Statement

COUNT = Query("SELECT COUNT(*) FROM dbkit_live_t", reducer=lambda rows: next(rows).int(0))


@pytest.mark.real_db
class TestPostgresLive(unittest.TestCase):
    def setUp(self):
        self.db = connect_from_settings()
        self.db.execute(Statement("CREATE TEMP TABLE dbkit_live_t (x INTEGER, note TEXT)"))

    def tearDown(self):
        self.db.close()

    def test_ping(self):
        self.assertTrue(self.db.is_alive())
        self.assertTrue(self.db.query(PING_QUERY))

    def test_insert_and_percent_literal(self):
        n = self.db.execute(Statement("INSERT INTO dbkit_live_t(x, note) VALUES (?, '100%')", [1]))
        self.assertEqual(n, 1)
        note = self.db.query(Query("SELECT note FROM dbkit_live_t", reducer=lambda rows: next(rows).string(0)))
        self.assertEqual(note, "100%")

    def test_rollback_on_error(self):
        def f(tx):
            tx.execute(Statement("INSERT INTO dbkit_live_t(x) VALUES (?)", [42]))
            raise RuntimeError("abort")

        with self.assertRaises(RuntimeError):
            self.db.transaction(f)
        self.assertEqual(self.db.query(COUNT), 0)
        self.assertTrue(self.db.connection().autocommit)
