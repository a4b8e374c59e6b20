import logging
import threading

import pytest

from solve.config import Config, LogLevel
from solve.core import Core
from solve.database import DBConfig, SQLiteOptions


def make_core(**kwargs):
    config = Config(db=DBConfig(options=SQLiteOptions(path=":memory:")), **kwargs)
    return Core(config)


class FakeStore:
    def __init__(self, init_error=None, sync_error=None):
        self.init_error = init_error
        self.sync_error = sync_error
        self.init_calls = 0
        self.sync_calls = 0
        self.synced = threading.Event()

    def init(self):
        self.init_calls += 1
        if self.init_error is not None:
            raise self.init_error

    def sync(self):
        self.sync_calls += 1
        self.synced.set()
        if self.sync_error is not None:
            raise self.sync_error


def test_start_inits_and_syncs_stores():
    core = make_core()
    store = FakeStore()
    core.add_store("settings", store, 0.01)
    core.start()
    try:
        assert core.running is True
        assert store.synced.wait(5) is True
    finally:
        core.stop()
    assert store.init_calls == 1
    assert store.sync_calls >= 1
    assert core.running is False


def test_start_twice_raises():
    core = make_core()
    core.start()
    try:
        with pytest.raises(RuntimeError, match="already started"):
            core.start()
    finally:
        core.stop()


def test_store_init_failure_is_raised_and_core_stopped():
    core = make_core()
    error = ValueError("init failed")
    core.add_store("good", FakeStore(), 0.01)
    core.add_store("bad", FakeStore(init_error=error), 0.01)
    with pytest.raises(ValueError) as info:
        core.start()
    assert info.value is error
    assert core.running is False


def test_none_store_is_skipped():
    core = make_core()
    store = FakeStore()
    core.add_store("missing", None, 0.01)
    core.add_store("present", store, 0.01)
    core.start()
    core.stop()
    assert store.init_calls == 1


def test_core_can_be_restarted():
    core = make_core()
    store = FakeStore()
    core.add_store("store", store, 0.01)
    core.start()
    core.stop()
    core.start()
    core.stop()
    assert store.init_calls == 2


def test_stop_without_start_does_nothing():
    core = make_core()
    core.stop()
    assert core.running is False


def test_task_is_cancelled_on_stop():
    core = make_core()
    results = []
    core.start()
    core.start_task("waiter", lambda cancelled: results.append(cancelled.wait(5)))
    core.stop()
    assert results == [True]


def test_start_task_before_start_raises():
    core = make_core()
    with pytest.raises(RuntimeError):
        core.start_task("task", lambda cancelled: None)


def test_persistent_sync_failure_aborts_core():
    core = make_core()
    store = FakeStore(sync_error=RuntimeError("sync failed"))
    core.add_store("broken", store, 0.01)
    results = []
    finished = threading.Event()

    def watch(cancelled):
        results.append(cancelled.wait(10))
        finished.set()

    core.start()
    try:
        core.start_task("watch", watch)
        assert finished.wait(15) is True
        assert results == [True]
        assert core.running is False
    finally:
        core.stop()


def test_transaction_commits_and_rolls_back():
    core = make_core()
    with core.transaction() as tx:
        tx.execute('CREATE TABLE "t" ("v" integer)')
        tx.execute('INSERT INTO "t" VALUES (1)')
    with pytest.raises(RuntimeError, match="boom"):
        with core.transaction() as tx:
            tx.execute('INSERT INTO "t" VALUES (2)')
            raise RuntimeError("boom")
    rows = core.database.connection.execute('SELECT "v" FROM "t"').fetchall()
    assert rows == [(1,)]


def test_logger_level_follows_config():
    core = make_core(log_level=LogLevel.DEBUG)
    assert core.logger.level == logging.DEBUG