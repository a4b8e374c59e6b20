import pytest

from solve.schema import (
    Column,
    ColumnType,
    CreateIndex,
    CreateTable,
    Dialect,
    ForeignKey,
)


@pytest.mark.parametrize(
    "column, dialect, expected",
    [
        (
            Column("test1", ColumnType.INT64, primary_key=True, auto_increment=True),
            Dialect.SQLITE,
            '"test1" integer PRIMARY KEY AUTOINCREMENT',
        ),
        (
            Column("test1", ColumnType.INT64, primary_key=True, auto_increment=True),
            Dialect.POSTGRES,
            '"test1" bigserial PRIMARY KEY',
        ),
        (
            Column("test2", ColumnType.INT64, primary_key=True),
            Dialect.SQLITE,
            '"test2" integer PRIMARY KEY',
        ),
        (
            Column("test2", ColumnType.INT64, primary_key=True),
            Dialect.POSTGRES,
            '"test2" bigint PRIMARY KEY',
        ),
        (Column("test3", ColumnType.INT64), Dialect.SQLITE, '"test3" bigint NOT NULL'),
        (Column("test3", ColumnType.INT64), Dialect.POSTGRES, '"test3" bigint NOT NULL'),
        (Column("test4", ColumnType.INT64, nullable=True), Dialect.SQLITE, '"test4" bigint'),
        (Column("test4", ColumnType.INT64, nullable=True), Dialect.POSTGRES, '"test4" bigint'),
    ],
)
def test_column_int64(column, dialect, expected):
    assert column.build_sql(dialect) == expected


@pytest.mark.parametrize("dialect", [Dialect.SQLITE, Dialect.POSTGRES])
def test_column_string(dialect):
    assert Column("test1", ColumnType.STRING).build_sql(dialect) == '"test1" text NOT NULL'
    nullable = Column("test2", ColumnType.STRING, nullable=True)
    assert nullable.build_sql(dialect) == '"test2" text'


def test_column_json():
    c1 = Column("test1", ColumnType.JSON)
    assert c1.build_sql(Dialect.SQLITE) == '"test1" blob NOT NULL'
    assert c1.build_sql(Dialect.POSTGRES) == '"test1" jsonb NOT NULL'
    c2 = Column("test2", ColumnType.JSON, nullable=True)
    assert c2.build_sql(Dialect.SQLITE) == '"test2" blob'
    assert c2.build_sql(Dialect.POSTGRES) == '"test2" jsonb'


def test_column_invalid():
    with pytest.raises(ValueError):
        Column("test", 228).build_sql(Dialect.SQLITE)


def test_create_table_simple():
    table = CreateTable(
        name="test_table",
        columns=[
            Column("id", ColumnType.INT64, primary_key=True, auto_increment=True),
            Column("name", ColumnType.STRING),
        ],
        strict=True,
    )
    assert table.build_apply(Dialect.SQLITE) == (
        'CREATE TABLE "test_table" ("id" integer PRIMARY KEY AUTOINCREMENT, '
        '"name" text NOT NULL)'
    )
    assert table.build_apply(Dialect.POSTGRES) == (
        'CREATE TABLE "test_table" ("id" bigserial PRIMARY KEY, "name" text NOT NULL)'
    )


@pytest.mark.parametrize("dialect", [Dialect.SQLITE, Dialect.POSTGRES])
def test_create_table_invalid_column(dialect):
    table = CreateTable(name="test_table", columns=[Column("id", 228)], strict=True)
    with pytest.raises(ValueError):
        table.build_apply(dialect)


def test_create_table_foreign_key_and_not_strict():
    table = CreateTable(
        name="child",
        columns=[Column("parent_id", ColumnType.INT64)],
        foreign_keys=[ForeignKey("parent_id", "parent", "id")],
    )
    assert table.build_apply(Dialect.SQLITE) == (
        'CREATE TABLE IF NOT EXISTS "child" ("parent_id" bigint NOT NULL, '
        'FOREIGN KEY ("parent_id") REFERENCES "parent" ("id"))'
    )
    assert table.build_unapply(Dialect.SQLITE) == 'DROP TABLE IF EXISTS "child"'


def test_create_table_strict_unapply():
    table = CreateTable(name="t", strict=True)
    assert table.build_unapply(Dialect.POSTGRES) == 'DROP TABLE "t"'


def test_create_index_columns():
    index = CreateIndex(table="t", columns=["a", "b"], unique=True)
    assert index.name() == "t_a_b_idx"
    assert index.build_apply(Dialect.SQLITE) == (
        'CREATE UNIQUE INDEX IF NOT EXISTS "t_a_b_idx" ON "t" ("a", "b")'
    )
    assert index.build_unapply(Dialect.SQLITE) == 'DROP INDEX IF EXISTS "t_a_b_idx"'


def test_create_index_expression():
    index = CreateIndex(table="solve_user", expression='lower("login")', strict=True)
    assert index.name() == "solve_user_lower_login_idx"
    assert index.build_apply(Dialect.POSTGRES) == (
        'CREATE INDEX "solve_user_lower_login_idx" ON "solve_user" (lower("login"))'
    )
    assert index.build_unapply(Dialect.POSTGRES) == 'DROP INDEX "solve_user_lower_login_idx"'