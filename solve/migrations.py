"""Database migrations grouped by name and tracked in a migrations table."""

from __future__ import annotations

import abc
import logging
import time
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from .config import VERSION
from .database import Database
from .db import NoRowsError, get_runner, transaction
from .object_store import ObjectStore
from .schema import Column, ColumnType, CreateTable, Dialect

logger = logging.getLogger(__name__)

MIGRATION_TABLE_NAME = "solve_db_migration"
ZERO_MIGRATION = "zero"

_MIGRATION_TABLE = CreateTable(
    name=MIGRATION_TABLE_NAME,
    columns=[
        Column("id", ColumnType.INT64, primary_key=True, auto_increment=True),
        Column("group", ColumnType.STRING),
        Column("name", ColumnType.STRING),
        Column("version", ColumnType.STRING),
        Column("time", ColumnType.INT64),
    ],
)


class _Operation(Protocol):
    def build_apply(self, dialect: Dialect) -> str: ...

    def build_unapply(self, dialect: Dialect) -> str: ...


class Migration(abc.ABC):
    """A reversible change of the database schema."""

    @abc.abstractmethod
    def apply(self, database: Database) -> None:
        """Apply the migration."""

    @abc.abstractmethod
    def unapply(self, database: Database) -> None:
        """Revert the migration."""


class SimpleMigration(Migration):
    """Migration made of schema operations applied in order."""

    def __init__(self, operations: Sequence[_Operation]) -> None:
        self.operations = list(operations)

    def apply(self, database: Database) -> None:
        """Run every operation's apply query in order."""
        runner = get_runner(database)
        for operation in self.operations:
            runner.execute(operation.build_apply(database.dialect))

    def unapply(self, database: Database) -> None:
        """Run every operation's unapply query in reverse order."""
        runner = get_runner(database)
        for operation in reversed(self.operations):
            runner.execute(operation.build_unapply(database.dialect))


@dataclass(frozen=True)
class NamedMigration:
    """A migration together with its name."""

    name: str
    migration: Migration


@dataclass(frozen=True)
class MigrationState:
    """Whether a migration is applied and whether the group knows it."""

    name: str
    applied: bool
    supported: bool


@dataclass
class MigrationGroup:
    """Named set of migrations applied in order of their names."""

    _migrations: dict[str, Migration] = field(default_factory=dict)

    def add_migration(self, name: str, migration: Migration) -> None:
        """Register a migration; names must be unique."""
        if name in self._migrations:
            raise ValueError(f"migration {name!r} already exists")
        self._migrations[name] = migration

    def get_migration(self, name: str) -> Migration:
        """Return the migration with the given name."""
        try:
            return self._migrations[name]
        except KeyError:
            raise KeyError(f"migration {name!r} does not exists") from None

    def get_migrations(self) -> list[NamedMigration]:
        """Return all migrations sorted by name."""
        return [
            NamedMigration(name, self._migrations[name])
            for name in sorted(self._migrations)
        ]


@dataclass
class _MigrationRecord:
    id: int = 0
    group: str = ""
    name: str = ""
    version: str = ""
    time: int = 0


class _Manager:
    def __init__(self, database: Database, group_name: str) -> None:
        self.database = database
        self.group_name = group_name
        self.store = ObjectStore(
            _MigrationRecord, "id", MIGRATION_TABLE_NAME, database
        )
        get_runner(database).execute(_MIGRATION_TABLE.build_apply(database.dialect))

    def _applied_names(self) -> set[str]:
        with self.store.load_objects() as rows:
            return {row.name for row in rows if row.group == self.group_name}

    def state(self, group: MigrationGroup) -> list[MigrationState]:
        known = {item.name for item in group.get_migrations()}
        applied = self._applied_names()
        return [
            MigrationState(name, name in applied, name in known)
            for name in sorted(known | applied)
        ]

    def _record(self, name: str) -> _MigrationRecord:
        with self.store.find_objects(
            '"group" = ? AND "name" = ?', [self.group_name, name]
        ) as rows:
            for row in rows:
                return row
        raise NoRowsError()

    def forward(self, group: MigrationGroup, states: list[MigrationState]) -> None:
        if not states:
            logger.info("No migrations to apply: %s", self.group_name)
            return
        for state in states:
            logger.info("Applying migration: %s.%s", self.group_name, state.name)
            migration = group.get_migration(state.name)
            with transaction(self.database):
                migration.apply(self.database)
                if not state.applied:
                    self.store.create_object(
                        _MigrationRecord(
                            group=self.group_name,
                            name=state.name,
                            version=VERSION,
                            time=int(time.time()),
                        )
                    )
            logger.info("Migration applied: %s.%s", self.group_name, state.name)

    def backward(self, group: MigrationGroup, states: list[MigrationState]) -> None:
        if not states:
            logger.info("No migrations to reverse apply: %s", self.group_name)
            return
        for state in reversed(states):
            logger.info(
                "Reverse applying migration: %s.%s", self.group_name, state.name
            )
            migration = group.get_migration(state.name)
            if not state.applied:
                raise ValueError(f"migration {state.name!r} is not applied")
            with transaction(self.database):
                record = self._record(state.name)
                migration.unapply(self.database)
                self.store.delete_object(record.id)
            logger.info(
                "Migration reverse applied: %s.%s", self.group_name, state.name
            )


def _position(states: list[MigrationState], name: str) -> int:
    for index, state in enumerate(states):
        if state.name == name:
            return index
    raise ValueError(f"invalid migration {name!r}")


def apply_migrations(
    database: Database,
    group_name: str,
    group: MigrationGroup,
    target: str | None = None,
    start: str | None = None,
) -> None:
    """Bring the group's migrations to the target, forward or backward.

    Without a target every migration is applied; the target "zero" reverts
    all of them. A start name makes migrations from it onwards run again.
    """
    manager = _Manager(database, group_name)
    states = manager.state(group)
    begin = max(
        (index + 1 for index, state in enumerate(states) if state.applied), default=0
    )
    end = len(states)
    if start is not None:
        begin = _position(states, start)
    if target is not None:
        end = 0 if target == ZERO_MIGRATION else _position(states, target) + 1
    if end < begin:
        manager.backward(group, states[end:begin])
    else:
        manager.forward(group, states[begin:end])