"""Persistent store of objects kept one per table row."""

from __future__ import annotations

from typing import Any, Generic, Sequence, TypeVar

from .database import Database
from .db import (
    RowReader,
    _quote,
    delete_row,
    get_columns,
    get_runner,
    insert_row,
    update_row,
)

T = TypeVar("T")


class ObjectStore(Generic[T]):
    """Loads, creates, updates and deletes dataclass objects in a table."""

    def __init__(
        self, row_type: type[T], id_column: str, table: str, database: Database
    ) -> None:
        self.row_type = row_type
        self.id_column = id_column
        self.table = table
        self.database = database
        self._columns = get_columns(row_type)
        if id_column not in self._columns:
            raise ValueError(f"row type has no column {id_column!r}")
        self._id_attribute = self._columns[id_column]

    def _select(self, where: str | None, params: Sequence[Any]) -> RowReader[T]:
        names = ", ".join(_quote(column) for column in self._columns)
        query = f"SELECT {names} FROM {_quote(self.table)}"
        if where:
            query += f" WHERE {where}"
        query += f" ORDER BY {_quote(self.id_column)} ASC"
        runner = get_runner(self.database)
        cursor = runner.execute(query, list(params))
        try:
            return RowReader(cursor, self.row_type, runner)
        except ValueError as err:
            raise ValueError(f"store {self.table!r}: {err}") from err

    def load_objects(self) -> RowReader[T]:
        """Return a reader over all objects ordered by id."""
        return self._select(None, ())

    def find_objects(
        self, where: str | None = None, params: Sequence[Any] = ()
    ) -> RowReader[T]:
        """Return a reader over objects matching an SQL condition."""
        return self._select(where, params)

    def create_object(self, obj: T) -> None:
        """Insert the object and set its id."""
        new_id = insert_row(self.database, obj, self.id_column, self.table)
        setattr(obj, self._id_attribute, new_id)

    def update_object(self, obj: T) -> None:
        """Update the stored object with the object's id."""
        row_id = getattr(obj, self._id_attribute)
        update_row(self.database, obj, row_id, self.id_column, self.table)

    def delete_object(self, object_id: int) -> None:
        """Delete the object with the given id."""
        delete_row(self.database, object_id, self.id_column, self.table)