"""Persistent append-only store of events with sequential ids."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Iterable, TypeVar

from .database import Database
from .db import NoRowsError, RowReader, _quote, get_columns, get_runner, insert_row

T = TypeVar("T")


@dataclass(frozen=True)
class EventRange:
    """Range of event ids [begin, end); an end of 0 means no upper limit."""

    begin: int = 0
    end: int = 0

    def contains(self, event_id: int) -> bool:
        """Tell whether the id falls in the range."""
        return event_id >= self.begin and (self.end == 0 or event_id < self.end)

    def _where(self, column: str) -> tuple[str, list[int]]:
        name = _quote(column)
        if self.end == 0:
            return f"{name} >= ?", [self.begin]
        if self.begin + 1 == self.end:
            return f"{name} = ?", [self.begin]
        return f"{name} >= ? AND {name} < ?", [self.begin, self.end]


class EventStore(Generic[T]):
    """Creates and loads dataclass events in a table."""

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

    def last_event_id(self) -> int:
        """Return the largest event id; raise NoRowsError if there are none."""
        query = f"SELECT max({_quote(self.id_column)}) FROM {_quote(self.table)}"
        row = get_runner(self.database).execute(query).fetchone()
        if row is None or row[0] is None:
            raise NoRowsError()
        return row[0]

    def load_events(self, ranges: Iterable[EventRange]) -> RowReader[T]:
        """Return a reader over events in the ranges, ordered by id."""
        names = ", ".join(_quote(column) for column in self._columns)
        query = f"SELECT {names} FROM {_quote(self.table)}"
        conditions: list[str] = []
        params: list[Any] = []
        for rng in ranges:
            condition, values = rng._where(self.id_column)
            conditions.append(f"({condition})")
            params.extend(values)
        if conditions:
            query += " WHERE " + " OR ".join(conditions)
        query += f" ORDER BY {_quote(self.id_column)} ASC"
        runner = get_runner(self.database)
        cursor = runner.execute(query, params)
        try:
            return RowReader(cursor, self.row_type, runner)
        except ValueError as err:
            raise ValueError(f"store {self.table!r}: {err}") from err

    def create_event(self, event: T) -> None:
        """Insert the event and set its id."""
        new_id = insert_row(self.database, event, self.id_column, self.table)
        setattr(event, self._id_attribute, new_id)