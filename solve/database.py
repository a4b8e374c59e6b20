"""Database connection configuration and connection handles."""

from __future__ import annotations

import enum
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterator
from urllib.parse import quote

from .schema import Dialect


class ConfigError(ValueError):
    """Raised when a configuration is invalid or unsupported."""


class DBDriver(str, enum.Enum):
    """Name of a database driver."""

    SQLITE = "sqlite"
    POSTGRES = "postgres"


@dataclass
class SQLiteOptions:
    """SQLite connection options."""

    path: str = ""


@dataclass
class PostgresOptions:
    """Postgres connection options."""

    hosts: list[str] = field(default_factory=list)
    user: str = ""
    password: str = ""
    name: str = ""
    sslmode: str = ""


def _field(data: dict, key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    valid = isinstance(value, kind)
    if kind is int and isinstance(value, bool):
        valid = False
    if not valid:
        raise ConfigError(f"field {key!r} should be of type {kind.__name__}")
    return value


def _sqlite_options(raw: dict) -> SQLiteOptions:
    return SQLiteOptions(path=_field(raw, "path", str, ""))


def _postgres_options(raw: dict) -> PostgresOptions:
    hosts = _field(raw, "hosts", list, [])
    if not all(isinstance(host, str) for host in hosts):
        raise ConfigError("field 'hosts' should contain strings")
    return PostgresOptions(
        hosts=list(hosts),
        user=_field(raw, "user", str, ""),
        password=_field(raw, "password", str, ""),
        name=_field(raw, "name", str, ""),
        sslmode=_field(raw, "sslmode", str, ""),
    )


class Database:
    """A lazily opened database connection of one dialect."""

    def __init__(
        self,
        dialect: Dialect,
        connect: Callable[[], sqlite3.Connection],
        dsn: str = "",
    ) -> None:
        self.dialect = dialect
        self.dsn = dsn
        self._connect = connect
        self._connection: sqlite3.Connection | None = None
        self._closed = False
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        """The underlying connection, opened on first use."""
        with self._lock:
            if self._closed:
                raise sqlite3.ProgrammingError("Cannot operate on a closed database.")
            if self._connection is None:
                self._connection = self._connect()
            return self._connection

    def ping(self) -> None:
        """Check that the database answers queries."""
        self.connection.execute("SELECT 1").fetchone()

    def close(self) -> None:
        """Close the connection; further use raises."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
            self._closed = True

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside a transaction, rolling back on error."""
        connection = self.connection
        connection.execute("BEGIN")
        try:
            yield connection
        except BaseException:
            if connection.in_transaction:
                connection.execute("ROLLBACK")
            raise
        else:
            if connection.in_transaction:
                connection.execute("COMMIT")

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _open_sqlite(path: str) -> Callable[[], sqlite3.Connection]:
    def connect() -> sqlite3.Connection:
        return sqlite3.connect(path, isolation_level=None, check_same_thread=False)

    return connect


def _postgres_dsn(options: PostgresOptions) -> str:
    credentials = quote(options.user, safe="")
    if options.password:
        credentials += ":" + quote(options.password, safe="")
    if credentials:
        credentials += "@"
    dsn = f"postgres://{credentials}{','.join(options.hosts)}/{quote(options.name, safe='')}"
    if options.sslmode:
        dsn += f"?sslmode={quote(options.sslmode, safe='')}"
    return dsn


def _postgres_unavailable() -> sqlite3.Connection:
    raise ConfigError("no PostgreSQL driver is available in this installation")


@dataclass
class DBConfig:
    """Database connection configuration holding driver-specific options."""

    options: Any = None

    def to_dict(self) -> dict:
        """Return the JSON-ready form with driver and options."""
        if isinstance(self.options, SQLiteOptions):
            driver = DBDriver.SQLITE
        elif isinstance(self.options, PostgresOptions):
            driver = DBDriver.POSTGRES
        else:
            raise ConfigError(
                f"options of type {type(self.options).__name__} is not supported"
            )
        return {"driver": driver.value, "options": asdict(self.options)}

    @classmethod
    def from_dict(cls, data: Any) -> DBConfig:
        """Build a configuration from its JSON form."""
        if not isinstance(data, dict):
            raise ConfigError("database config should be an object")
        driver = data.get("driver")
        if driver is not None and not isinstance(driver, str):
            raise ConfigError("field 'driver' should be of type str")
        if driver not in (DBDriver.SQLITE.value, DBDriver.POSTGRES.value):
            raise ConfigError(f"driver {driver or ''!r} is not supported")
        if "options" not in data:
            raise ConfigError("database options are missing")
        raw = data["options"]
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError("database options should be an object")
        if driver == DBDriver.SQLITE.value:
            return cls(options=_sqlite_options(raw))
        return cls(options=_postgres_options(raw))

    def create(self) -> Database:
        """Create a database handle for this configuration."""
        if isinstance(self.options, SQLiteOptions):
            return Database(Dialect.SQLITE, _open_sqlite(self.options.path))
        if isinstance(self.options, PostgresOptions):
            return Database(
                Dialect.POSTGRES, _postgres_unavailable, dsn=_postgres_dsn(self.options)
            )
        raise ConfigError("unsupported database config type")