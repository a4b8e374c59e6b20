"""Row mapping and transaction-aware helpers shared by object and event stores."""

from __future__ import annotations

import dataclasses
import sqlite3
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Generic, Iterator, Mapping, Sequence, TypeVar

from .database import Database
from .schema import Dialect

T = TypeVar("T")


class NoRowsError(LookupError):
    """Raised when a query that needs a row finds none."""

    def __init__(self, message: str = "sql: no rows in result set") -> None:
        super().__init__(message)


class TransactionDoneError(RuntimeError):
    """Raised when a finished transaction is used."""

    def __init__(
        self, message: str = "sql: transaction has already been committed or rolled back"
    ) -> None:
        super().__init__(message)


def _quote(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class _Transaction:
    """An open transaction on a database connection."""

    def __init__(self, database: Database) -> None:
        self.database = database
        self._connection = database.connection
        self._connection.execute("BEGIN")
        self.done = False

    def execute(self, query: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        if self.done:
            raise TransactionDoneError()
        return self._connection.execute(query, params)

    def commit(self) -> None:
        """Commit the transaction."""
        self._finish("COMMIT")

    def rollback(self) -> None:
        """Roll the transaction back."""
        self._finish("ROLLBACK")

    def _finish(self, statement: str) -> None:
        if self.done:
            raise TransactionDoneError()
        self.done = True
        self._connection.execute(statement)


class _Direct:
    """Runs queries on the database outside any transaction."""

    done = False

    def __init__(self, database: Database) -> None:
        self.database = database

    def execute(self, query: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        return self.database.connection.execute(query, params)


_active: ContextVar[Mapping[Database, _Transaction]] = ContextVar(
    "solve_db_transactions", default={}
)


def get_runner(database: Database) -> _Transaction | _Direct:
    """Return the transaction active for the database, or a direct runner."""
    tx = _active.get().get(database)
    if tx is not None:
        return tx
    return _Direct(database)


@contextmanager
def transaction(database: Database) -> Iterator[_Transaction]:
    """Run a block in a transaction that store operations pick up."""
    tx = _Transaction(database)
    token = _active.set({**_active.get(), database: tx})
    try:
        yield tx
    except BaseException:
        if not tx.done:
            tx.rollback()
        raise
    else:
        if not tx.done:
            tx.commit()
    finally:
        _active.reset(token)


def get_columns(row_type: type) -> dict[str, str]:
    """Map column names to attribute names of a dataclass row type, in order.

    A field's column is its name, or the part before the first comma of its
    ``db`` metadata; a field with ``db`` metadata of ``None`` is not a column.
    """
    if not dataclasses.is_dataclass(row_type):
        raise TypeError(f"{row_type!r} is not a dataclass")
    columns: dict[str, str] = {}
    for item in dataclasses.fields(row_type):
        if not item.init:
            continue
        name = item.metadata.get("db", item.name)
        if name is None:
            continue
        columns[name.split(",")[0]] = item.name
    return columns


class RowReader(Generic[T]):
    """Iterator that turns result rows into instances of a row type."""

    def __init__(
        self,
        cursor: sqlite3.Cursor,
        row_type: type[T],
        runner: _Transaction | _Direct | None = None,
    ) -> None:
        self._columns = get_columns(row_type)
        names = [column[0] for column in cursor.description or ()]
        expected = list(self._columns)
        if names != expected:
            cursor.close()
            raise ValueError(
                f"result has invalid column sequence: {expected} != {names}"
            )
        self._cursor = cursor
        self._row_type = row_type
        self._runner = runner
        self._closed = False

    def __iter__(self) -> RowReader[T]:
        return self

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        if self._runner is not None and self._runner.done:
            self.close()
            raise TransactionDoneError()
        values = self._cursor.fetchone()
        if values is None:
            self.close()
            raise StopIteration
        return self._row_type(**dict(zip(self._columns.values(), values)))

    def close(self) -> None:
        """Release the underlying cursor."""
        if not self._closed:
            self._closed = True
            self._cursor.close()

    def __enter__(self) -> RowReader[T]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _prepare_upsert(row: Any, id_column: str) -> tuple[list[str], list[Any]]:
    columns: list[str] = []
    values: list[Any] = []
    for column, attribute in get_columns(type(row)).items():
        if column == id_column:
            continue
        columns.append(column)
        values.append(getattr(row, attribute))
    return columns, values


def insert_row(database: Database, row: Any, id_column: str, table: str) -> int:
    """Insert a row without its id column and return the new id."""
    columns, values = _prepare_upsert(row, id_column)
    runner = get_runner(database)
    query = f"INSERT INTO {_quote(table)}"
    if columns:
        names = ", ".join(_quote(column) for column in columns)
        placeholders = ", ".join("?" for _ in columns)
        query += f" ({names}) VALUES ({placeholders})"
    else:
        query += " DEFAULT VALUES"
    if database.dialect is Dialect.POSTGRES:
        cursor = runner.execute(f"{query} RETURNING {_quote(id_column)}", values)
        result = cursor.fetchone()
        if result is None:
            raise NoRowsError()
        return result[0]
    cursor = runner.execute(query, values)
    if cursor.rowcount != 1:
        raise RuntimeError(f"invalid amount of affected rows: {cursor.rowcount}")
    return cursor.lastrowid


def update_row(
    database: Database, row: Any, row_id: int, id_column: str, table: str
) -> None:
    """Update the row with the given id; raise NoRowsError if it is missing."""
    columns, values = _prepare_upsert(row, id_column)
    if not columns:
        raise ValueError("row has no columns to update")
    assignments = ", ".join(f"{_quote(column)} = ?" for column in columns)
    query = f"UPDATE {_quote(table)} SET {assignments} WHERE {_quote(id_column)} = ?"
    cursor = get_runner(database).execute(query, [*values, row_id])
    if cursor.rowcount < 1:
        raise NoRowsError()
    if cursor.rowcount > 1:
        raise RuntimeError(f"updated {cursor.rowcount} objects")


def delete_row(database: Database, row_id: int, id_column: str, table: str) -> None:
    """Delete the row with the given id; raise NoRowsError if it is missing."""
    query = f"DELETE FROM {_quote(table)} WHERE {_quote(id_column)} = ?"
    cursor = get_runner(database).execute(query, [row_id])
    if cursor.rowcount < 1:
        raise NoRowsError()
    if cursor.rowcount > 1:
        raise RuntimeError(f"deleted {cursor.rowcount} objects")