# solve

Building blocks for the backend of a programming-contest judging service:
configuration loading, SQL schema generation, generic object and event
stores on top of a database connection, an event consumer that tolerates
gaps, versioned migrations, a core that keeps stores in sync, and a few
helpers for localisation and settings. It needs only the standard library.

## Configuration

`solve.config.load_from_file(path)` reads a JSON configuration file. Before
parsing, the file is rendered as a template (`solve.config.render_template`)
with three functions available:

- `json` — encode a value as JSON, e.g. `{{ "localhost" | json }}`;
- `file` — insert the contents of a file with trailing newlines removed,
  e.g. `{{ file "/run/secrets/db_path" | json }}`;
- `env` — insert an environment variable (empty if unset).

Errors in the template or in the JSON raise `solve.database.ConfigError`.

The result is a `Config`. Its `db` section is a `DBConfig` whose options are
either `SQLiteOptions` or `PostgresOptions`, chosen by the `driver` key; an
unknown driver raises `ConfigError`. The optional `storage` section follows
the same pattern with `LocalStorageOptions` and `S3StorageOptions`. Other
sections are `server` (`Server`), `invoker` (`Invoker` with `Safeexec`) and
`security` (`Security`). `socket_file` defaults to
`/tmp/solve-server.sock` and `log_level` to `info`. `Config`, `DBConfig`
and `Storage` all round-trip through `to_dict()` / `from_dict()`.

Log levels accept `debug`, `info`, `warning`/`warn`, `error` and `off`:

```python
from solve.config import LogLevel, Server

LogLevel.parse("warn").to_text()                # "warning"
Server(host="localhost", port=8080).address()   # "localhost:8080"
```

`DBConfig.create()` returns a `Database` handle that connects lazily and
offers `ping()`, `close()` and a `transaction()` context manager.

## Schema

`solve.schema` describes tables and indexes and renders them for
`Dialect.SQLITE` or `Dialect.POSTGRES`: `Column.build_sql(dialect)`,
`CreateTable.build_apply(dialect)` / `build_unapply(dialect)`, and the same
pair on `CreateIndex`, whose `name()` is derived from the table and its
columns or expression. Column types are `ColumnType.INT64`, `STRING` and
`JSON`; an unknown type raises `ValueError`.

## Stores

Rows are dataclasses. Each field is a column named after it; a field with
`metadata={"db": "name"}` uses that column name, and `metadata={"db": None}`
leaves it out (see `solve.db.get_columns`).

```python
from dataclasses import dataclass

from solve.database import DBConfig, SQLiteOptions
from solve.object_store import ObjectStore
from solve.schema import Column, ColumnType, CreateTable


@dataclass
class Problem:
    id: int = 0
    title: str = ""


db = DBConfig(SQLiteOptions(path=":memory:")).create()
table = CreateTable("problem", [
    Column("id", ColumnType.INT64, primary_key=True, auto_increment=True),
    Column("title", ColumnType.STRING),
])
db.connection.execute(table.build_apply(db.dialect))

store = ObjectStore(Problem, "id", "problem", db)
problem = Problem(title="A+B")
store.create_object(problem)        # problem.id is now 1
with store.load_objects() as rows:
    print(list(rows))
```

- `solve.object_store.ObjectStore` — `load_objects()`,
  `find_objects(where, params)` with an SQL condition using `?`
  placeholders, `create_object`, `update_object` and `delete_object`.
  Updating or deleting a missing row raises `solve.db.NoRowsError`.
- `solve.event_store.EventStore` — append-only events with
  `last_event_id()` (raises `NoRowsError` when empty),
  `load_events(ranges)` and `create_event(event)`, where each range is an
  `EventRange` (an end of 0 means unbounded).
- `solve.event_consumer.EventConsumer` — passes events to a callback in id
  order and keeps track of gaps left by transactions that have not
  committed yet, so late events are still delivered exactly once.
  `begin_event_id()` reports the smallest id that may still arrive.

Work done inside `with solve.db.transaction(database):` shares one
transaction, which commits on success and rolls back on error. Using it
after it has ended raises `TransactionDoneError`.

## Migrations

Register migrations in a `solve.migrations.MigrationGroup` under sortable
names, then call `apply_migrations(database, group_name, group, target,
start)`. Migrations are applied in name order inside transactions and
recorded in the `solve_db_migration` table. Naming an earlier `target`, or
`"zero"`, rolls applied migrations back in reverse order; `start` makes
migrations from that name onwards run again. `SimpleMigration` runs a list
of schema operations forward and, reversed, backward.

## Core

`solve.core.Core(config)` owns the database. Register stores (objects with
`init()` and `sync()`) with `add_store(name, store, delay)`; `start()`
initialises them in parallel and then syncs each one every `delay` seconds.
A store that keeps failing to sync for fifteen periods stops the core.
`start_task(name, task)` runs `task(event)` in a thread, where the event is
set when the task should stop; `stop()` stops tasks first, then the sync
loops. `transaction()` wraps `solve.db.transaction`.

## Localisation and settings

- `solve.locale` — `StubLocale` and `SettingLocale` localise messages,
  substituting `{name}` placeholders from keyword arguments. Translations
  live in settings under keys built by `localization_key(name, text)`.
  `select_locale(accept_language, settings)` picks English or Russian from
  an `Accept-Language` header, or the stub locale.
- `solve.settings` — `parse_bool_setting` (`1`/`t`/`true`,
  `0`/`f`/`false`), `get_bool_setting`, `sync_requested` for the sync
  request header (honouring the `handlers.allow_sync` setting) and
  `make_request_id`.

## What it does not do

- It has no HTTP server, routes or command line; the helpers above are
  meant to be called from one.
- It has no user accounts, sessions, permission checks or form validation.
- It defines no concrete stores for settings, users, contests and the like;
  the core syncs whatever stores it is given.
- It can only connect to SQLite. A Postgres configuration is parsed and
  turned into a connection string, but connecting raises `ConfigError`.
- Storage options are read from the configuration only; no file storage
  backend is provided.