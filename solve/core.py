"""Application core: database handle, store synchronisation and background tasks."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Protocol

from .config import Config, LogLevel
from .database import Database
from .db import transaction

_LOG_LEVELS = {
    LogLevel.UNSET: logging.NOTSET,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.OFF: logging.CRITICAL + 1,
}

# A store that fails to sync for this many sync periods aborts the core.
_SYNC_FAILURE_PERIODS = 15
_LONG_QUERY_SECONDS = 1.0


class _Store(Protocol):
    def init(self) -> None: ...

    def sync(self) -> None: ...


@dataclass
class _StoreEntry:
    name: str
    store: _Store | None
    delay: float


class Core:
    """Owns the database, keeps registered stores in sync and runs tasks."""

    def __init__(self, config: Config, database: Database | None = None) -> None:
        self.config = config
        self.database = database if database is not None else config.db.create()
        self.logger = logging.getLogger("solve.core")
        self.logger.setLevel(_LOG_LEVELS[config.log_level])
        self._stores: list[_StoreEntry] = []
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        self._task_threads: list[threading.Thread] = []
        self._cancel: threading.Event | None = None
        self._task_cancel: threading.Event | None = None

    @property
    def running(self) -> bool:
        """Whether the core is started and has not been cancelled."""
        cancel = self._cancel
        return cancel is not None and not cancel.is_set()

    def add_store(self, name: str, store: _Store | None, delay: float = 1.0) -> None:
        """Register a store synced every ``delay`` seconds; None is ignored on start."""
        self._stores.append(_StoreEntry(name, store, delay))

    def start(self) -> None:
        """Initialise all stores and start their sync loops."""
        with self._lock:
            if self._cancel is not None:
                raise RuntimeError("core already started")
            self._cancel = threading.Event()
            self._task_cancel = threading.Event()
            cancel, task_cancel = self._cancel, self._task_cancel
        self.logger.debug("Starting core")
        try:
            self._start_store_loops(cancel, task_cancel)
        except BaseException:
            self.stop()
            raise
        self.logger.debug("Core started")

    def stop(self) -> None:
        """Stop tasks first, then the store loops, and wait for all of them."""
        with self._lock:
            cancel, task_cancel = self._cancel, self._task_cancel
        if cancel is None or task_cancel is None:
            return
        self.logger.debug("Stopping core")
        task_cancel.set()
        self._join(self._task_threads)
        cancel.set()
        self._join(self._threads)
        with self._lock:
            self._cancel = None
            self._task_cancel = None
        self.logger.debug("Core stopped")

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Run a block in a database transaction picked up by the stores."""
        with transaction(self.database) as tx:
            yield tx

    def start_task(self, name: str, task: Callable[[threading.Event], None]) -> None:
        """Run a task in a new thread; it gets an event set when it should stop."""
        with self._lock:
            task_cancel = self._task_cancel
        if task_cancel is None:
            raise RuntimeError("core not started")
        self.logger.info("Start task %s", name)

        def run() -> None:
            try:
                task(task_cancel)
            finally:
                self.logger.info("Task finished %s", name)

        self._spawn(run, self._task_threads)

    def _spawn(
        self, target: Callable[[], None], threads: list[threading.Thread]
    ) -> threading.Thread:
        thread = threading.Thread(target=target, daemon=True)
        with self._lock:
            threads.append(thread)
        thread.start()
        return thread

    def _join(self, threads: list[threading.Thread]) -> None:
        while True:
            with self._lock:
                if not threads:
                    return
                thread = threads.pop(0)
            thread.join()

    def _start_store_loops(
        self, cancel: threading.Event, task_cancel: threading.Event
    ) -> None:
        errors: list[BaseException] = []
        errors_lock = threading.Lock()

        def abort() -> None:
            task_cancel.set()
            cancel.set()

        def init(entry: _StoreEntry) -> None:
            store = entry.store
            assert store is not None
            self.logger.debug("Store init started: %s", entry.name)
            try:
                store.init()
            except Exception as err:
                self.logger.error("Store init failed: %s: %s", entry.name, err)
                with errors_lock:
                    if not errors:
                        errors.append(err)
                abort()
                return
            self.logger.debug("Store init finished: %s", entry.name)
            self._spawn(lambda: self._store_loop(entry, cancel, abort), self._threads)

        init_threads = [
            self._spawn(lambda entry=entry: init(entry), self._threads)
            for entry in self._stores
            if entry.store is not None
        ]
        for thread in init_threads:
            thread.join()
        if errors:
            raise errors[0]

    def _store_loop(
        self, entry: _StoreEntry, cancel: threading.Event, abort: Callable[[], None]
    ) -> None:
        store = entry.store
        assert store is not None
        self.logger.debug("Store sync loop started: %s", entry.name)
        update_time = time.monotonic()
        try:
            while not cancel.wait(entry.delay):
                begin_time = time.monotonic()
                try:
                    store.sync()
                except Exception as err:
                    if time.monotonic() - update_time > entry.delay * _SYNC_FAILURE_PERIODS:
                        self.logger.error("Cannot sync store %s: %s", entry.name, err)
                        abort()
                        return
                    self.logger.warning("Cannot sync store %s: %s", entry.name, err)
                else:
                    update_time = time.monotonic()
                    duration = update_time - begin_time
                    if duration >= _LONG_QUERY_SECONDS:
                        self.logger.warning(
                            "Long query in store %s: %.3fs", entry.name, duration
                        )
        finally:
            self.logger.debug("Store sync loop stopped: %s", entry.name)