"""Driver registry — maps a driver name onto the DB-API module that speaks it.

Each ``Driver`` knows how to load its module, open a connection from a host,
a database name and a properties mapping, and toggle auto-commit, which is
the one part of DB-API that every module spells differently.
"""

from __future__ import annotations

import importlib
import logging
from types import ModuleType
from typing import Any, Mapping, Optional

from dbkit.errors import ConnectionError
from dbkit.redact import redact_text

logger = logging.getLogger(__name__)


def split_host(host: str, default_port: Optional[int] = None) -> tuple[str, Optional[int]]:
    """``"db.local:5433"`` -> ``("db.local", 5433)``; bare hosts keep ``default_port``."""
    if host.count(":") == 1:
        name, _, port = host.partition(":")
        if port.isdigit():
            return name, int(port)
    return host, default_port


class Driver:
    """Generic DB-API driver: ``module.connect(host=…, database=…, **properties)``."""

    name: str = "generic"
    module_name: str = ""
    paramstyle: str = "qmark"
    default_port: Optional[int] = None
    # backslash escapes quotes inside string literals (MySQL default sql_mode)
    backslash_escapes: bool = False
    # options that arrive as strings from DB_OPTIONS but must reach the module as ints
    int_options: tuple[str, ...] = ()

    def __init__(self, name: Optional[str] = None, module_name: Optional[str] = None,
                 paramstyle: Optional[str] = None):
        if name is not None:
            self.name = name
        if module_name is not None:
            self.module_name = module_name
        if paramstyle is not None:
            self.paramstyle = paramstyle

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, module={self.module_name!r})"

    # -- connection ------------------------------------------------------------

    def url(self, host: str, database: str) -> str:
        return f"{self.name}://{host}/{database}"

    def load(self) -> ModuleType:
        try:
            return importlib.import_module(self.module_name)
        except ImportError as exc:
            raise ConnectionError(
                f"Driver module '{self.module_name}' for '{self.name}' is not installed"
            ) from exc

    def connect_kwargs(self, host: str, database: str, properties: Mapping[str, Any]) -> dict[str, Any]:
        hostname, port = split_host(host, self.default_port)
        kwargs: dict[str, Any] = {"host": hostname, "database": database}
        if port is not None:
            kwargs["port"] = port
        for key, value in properties.items():
            if key in self.int_options and isinstance(value, str):
                try:
                    value = int(value)
                except ValueError:
                    raise ConnectionError(f"Option '{key}' must be an integer, got {value!r}") from None
            kwargs[key] = value
        return kwargs

    def connect(self, host: str, database: str, properties: Mapping[str, Any]) -> Any:
        module = self.load()
        try:
            return module.connect(**self.connect_kwargs(host, database, properties))
        except Exception as exc:
            raise ConnectionError(
                f"Could not connect to {self.url(host, database)}: {redact_text(str(exc))}"
            ) from exc

    # -- transaction control ---------------------------------------------------

    def get_autocommit(self, conn: Any) -> bool:
        return bool(conn.autocommit)

    def set_autocommit(self, conn: Any, enabled: bool) -> None:
        conn.autocommit = enabled

    def begin(self, conn: Any) -> None:
        """Start a transaction once auto-commit is off. Most modules do this implicitly."""

    def error_types(self, conn: Any) -> tuple[type[BaseException], ...]:
        """The module's DB-API ``Error`` base class, read from the connection when it exposes one."""
        error = getattr(conn, "Error", None)
        if not (isinstance(error, type) and issubclass(error, Exception)) and self.module_name:
            error = getattr(self.load(), "Error", None)
        if isinstance(error, type) and issubclass(error, Exception):
            return (error,)
        return ()


class PostgreSQLDriver(Driver):
    name = "postgresql"
    module_name = "psycopg2"
    paramstyle = "pyformat"
    default_port = 5432

    def connect_kwargs(self, host: str, database: str, properties: Mapping[str, Any]) -> dict[str, Any]:
        kwargs = super().connect_kwargs(host, database, properties)
        kwargs["dbname"] = kwargs.pop("database")
        return kwargs

    def connect(self, host: str, database: str, properties: Mapping[str, Any]) -> Any:
        conn = super().connect(host, database, properties)
        # psycopg2 opens in transactional mode; statements outside transaction() commit on their own
        conn.autocommit = True
        return conn


class MySQLDriver(Driver):
    name = "mysql"
    module_name = "pymysql"
    paramstyle = "pyformat"
    default_port = 3306
    backslash_escapes = True
    int_options = ("connect_timeout", "read_timeout", "write_timeout", "max_allowed_packet", "client_flag")

    def connect_kwargs(self, host: str, database: str, properties: Mapping[str, Any]) -> dict[str, Any]:
        kwargs = super().connect_kwargs(host, database, properties)
        kwargs.setdefault("autocommit", True)
        return kwargs

    def get_autocommit(self, conn: Any) -> bool:
        return bool(conn.get_autocommit())

    def set_autocommit(self, conn: Any, enabled: bool) -> None:
        conn.autocommit(enabled)


class SQLiteDriver(Driver):
    """
    ``sqlite3`` — the host is ignored and the database name is the file path.

    Connections open in auto-commit mode (``isolation_level=None``); turning it
    off switches to ``DEFERRED`` and ``begin`` issues an explicit ``BEGIN`` so
    DDL is transactional too.  ``timeout`` and ``cached_statements`` are passed
    to ``sqlite3.connect``; every other option becomes a ``PRAGMA``.
    """

    name = "sqlite"
    module_name = "sqlite3"
    paramstyle = "qmark"

    _CONNECT_OPTIONS = {"timeout": float, "cached_statements": int}
    _IGNORED = ("user", "password")

    def connect(self, host: str, database: str, properties: Mapping[str, Any]) -> Any:
        module = self.load()
        kwargs: dict[str, Any] = {"isolation_level": None, "check_same_thread": False}
        pragmas: dict[str, Any] = {}
        for key, value in properties.items():
            if key in self._IGNORED:
                continue
            if key in self._CONNECT_OPTIONS:
                kwargs[key] = self._CONNECT_OPTIONS[key](value)
            else:
                pragmas[key] = value
        try:
            conn = module.connect(database, **kwargs)
        except Exception as exc:
            raise ConnectionError(f"Could not open sqlite database '{database}': {exc}") from exc
        try:
            for key, value in pragmas.items():
                conn.execute(f"PRAGMA {key} = {value}")
        except Exception as exc:
            conn.close()
            raise ConnectionError(f"Invalid sqlite option for '{database}': {exc}") from exc
        return conn

    def get_autocommit(self, conn: Any) -> bool:
        return conn.isolation_level is None

    def set_autocommit(self, conn: Any, enabled: bool) -> None:
        conn.isolation_level = None if enabled else "DEFERRED"

    def begin(self, conn: Any) -> None:
        if not conn.in_transaction:
            conn.execute("BEGIN")


_DRIVERS: dict[str, Driver] = {}


def register_driver(driver: Driver, *aliases: str) -> None:
    """Make ``driver`` available to ``connect`` under its name and any aliases."""
    for key in (driver.name, *aliases):
        _DRIVERS[key.lower()] = driver


def get_driver(name: str) -> Driver:
    try:
        return _DRIVERS[name.lower()]
    except KeyError:
        known = ", ".join(sorted(_DRIVERS))
        raise ConnectionError(f"Unknown driver '{name}' (known: {known})") from None


def registered_drivers() -> list[str]:
    return sorted(_DRIVERS)


register_driver(PostgreSQLDriver(), "postgres")
register_driver(MySQLDriver())
register_driver(SQLiteDriver(), "sqlite3")
