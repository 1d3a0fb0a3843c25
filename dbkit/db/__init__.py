"""Database layer — connection handle, statement cache and driver registry."""

from dbkit.db.database import Database, Transaction, connect, connect_from_settings, postgresql
from dbkit.db.drivers import Driver, get_driver, register_driver

__all__ = [
    "Database", "Transaction", "connect", "connect_from_settings", "postgresql",
    "Driver", "get_driver", "register_driver",
]
