from dataclasses import dataclass, replace

import pytest

from solve.database import DBConfig, SQLiteOptions
from solve.db import NoRowsError, TransactionDoneError, transaction
from solve.event_store import EventRange, EventStore

CREATE_TABLES = [
    'CREATE TABLE "test_object" ("id" INTEGER PRIMARY KEY, "a" VARCHAR(255),'
    ' "b" INTEGER, "c" INTEGER)',
    'CREATE TABLE "test_event" ("id" INTEGER PRIMARY KEY, "time" BIGINT,'
    ' "a" VARCHAR(255), "b" INTEGER, "c" INTEGER, "d" INTEGER)',
]


@dataclass
class MockEvent:
    id: int = 0
    time: int = 0


@dataclass
class ExtraEvent:
    a: str = ""
    b: int = 0


@dataclass
class SampleEvent(MockEvent, ExtraEvent):
    c: int = 0


@pytest.fixture
def database():
    db = DBConfig(options=SQLiteOptions(path=":memory:")).create()
    for query in CREATE_TABLES:
        db.connection.execute(query)
    yield db
    db.close()


@pytest.fixture
def store(database):
    return EventStore(SampleEvent, "id", "test_event", database)


def test_event_range_contains():
    rng = EventRange(begin=3, end=5)
    assert [rng.contains(i) for i in (2, 3, 4, 5)] == [False, True, True, False]
    assert EventRange(begin=3).contains(10**9)


def test_event_store(database, store):
    events = [
        SampleEvent(c=8),
        SampleEvent(c=16),
        SampleEvent(c=5),
        SampleEvent(c=3),
        SampleEvent(a="qwerty", c=10),
    ]
    with transaction(database):
        for i, event in enumerate(events):
            created = replace(event)
            store.create_event(created)
            event.id = created.id
            assert event.id == i + 1
            assert event == created
            assert store.last_event_id() == created.id
        with store.load_events([EventRange(begin=1, end=6)]) as rows:
            assert list(rows) == events
        with store.load_events([EventRange(begin=2, end=3), EventRange(begin=4)]) as rows:
            assert list(rows) == [events[1], events[3], events[4]]


def test_event_store_closed(database, store):
    with transaction(database) as tx:
        with pytest.raises(NoRowsError):
            store.last_event_id()
        tx.rollback()
        with pytest.raises(TransactionDoneError):
            store.last_event_id()
        with pytest.raises(TransactionDoneError):
            store.load_events([EventRange(begin=1, end=100)])
        with pytest.raises(TransactionDoneError):
            store.create_event(SampleEvent())