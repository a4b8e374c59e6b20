"""SQL schema operations: column definitions, tables and indexes."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field

_SUFFIX_PRIMARY_KEY = " PRIMARY KEY"
_SUFFIX_NOT_NULL = " NOT NULL"


class Dialect(enum.Enum):
    """SQL dialect of a database."""

    SQLITE = "sqlite"
    POSTGRES = "postgres"


class ColumnType(enum.IntEnum):
    """Logical type of a table column."""

    INT64 = 1
    STRING = 2
    JSON = 3


def _quote(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass
class Column:
    """Table column with its parameters."""

    name: str
    type: ColumnType
    primary_key: bool = False
    auto_increment: bool = False
    nullable: bool = False

    def _int64_sql(self, dialect: Dialect) -> str:
        type_name = "bigint"
        if self.primary_key:
            if dialect is Dialect.SQLITE:
                # SQLite does not support bigint primary keys.
                type_name = "integer"
            if dialect is Dialect.POSTGRES and self.auto_increment:
                type_name = "bigserial"
            type_name += _SUFFIX_PRIMARY_KEY
            if self.auto_increment and dialect is Dialect.SQLITE:
                type_name += " AUTOINCREMENT"
        elif not self.nullable:
            type_name += _SUFFIX_NOT_NULL
        return f"{_quote(self.name)} {type_name}"

    def build_sql(self, dialect: Dialect) -> str:
        """Return the column definition in the given dialect."""
        if self.type == ColumnType.INT64:
            return self._int64_sql(dialect)
        if self.type == ColumnType.STRING:
            type_name = "text"
        elif self.type == ColumnType.JSON:
            # Postgres prefers jsonb over json for efficiency.
            type_name = "jsonb" if dialect is Dialect.POSTGRES else "blob"
        else:
            raise ValueError(f"unsupported column type: {self.type}")
        if not self.nullable:
            type_name += _SUFFIX_NOT_NULL
        return f"{_quote(self.name)} {type_name}"


@dataclass
class ForeignKey:
    """Reference from a column to a column of another table."""

    column: str
    parent_table: str
    parent_column: str


@dataclass
class CreateTable:
    """Operation that creates a table."""

    name: str
    columns: list[Column] = field(default_factory=list)
    foreign_keys: list[ForeignKey] = field(default_factory=list)
    strict: bool = False

    def build_apply(self, dialect: Dialect) -> str:
        """Return the CREATE TABLE query."""
        prefix = "CREATE TABLE " if self.strict else "CREATE TABLE IF NOT EXISTS "
        parts = [column.build_sql(dialect) for column in self.columns]
        parts.extend(
            f"FOREIGN KEY ({_quote(fk.column)}) "
            f"REFERENCES {_quote(fk.parent_table)} ({_quote(fk.parent_column)})"
            for fk in self.foreign_keys
        )
        return f"{prefix}{_quote(self.name)} ({', '.join(parts)})"

    def build_unapply(self, dialect: Dialect) -> str:
        """Return the DROP TABLE query."""
        prefix = "DROP TABLE " if self.strict else "DROP TABLE IF EXISTS "
        return prefix + _quote(self.name)


@dataclass
class CreateIndex:
    """Operation that creates an index over columns or an expression."""

    table: str
    expression: str = ""
    columns: list[str] = field(default_factory=list)
    unique: bool = False
    strict: bool = False

    def name(self) -> str:
        """Return the generated index name."""
        if self.expression:
            parts = [part for part in re.split(r'[()"]', self.expression) if part]
            return f"{self.table}_{'_'.join(parts).lower()}_idx"
        return f"{self.table}_{'_'.join(self.columns)}_idx"

    def build_apply(self, dialect: Dialect) -> str:
        """Return the CREATE INDEX query."""
        query = "CREATE "
        if self.unique:
            query += "UNIQUE "
        query += "INDEX "
        if not self.strict:
            query += "IF NOT EXISTS "
        if self.expression:
            target = self.expression
        else:
            target = ", ".join(_quote(column) for column in self.columns)
        return f"{query}{_quote(self.name())} ON {_quote(self.table)} ({target})"

    def build_unapply(self, dialect: Dialect) -> str:
        """Return the DROP INDEX query."""
        prefix = "DROP INDEX " if self.strict else "DROP INDEX IF EXISTS "
        return prefix + _quote(self.name())