"""A SQLite-backed store of recent log lines and time series for debugging."""

from __future__ import annotations

import logging
import os
import queue
import sqlite3
import threading
from datetime import datetime, timezone

log = logging.getLogger(__name__)

_QUEUE_SIZE = 10
_STOP = object()

_CREATE_TIMESERIES = """create table if not exists timeseries (
    timestamp timestamp,
    key text,
    value real)"""
_CREATE_LOGLINES = """create table if not exists loglines (
    timestamp timestamp,
    line text)"""
_PRUNE_LOGLINES = "delete from loglines where datetime(timestamp, '+1 day') < datetime()"
_PRUNE_TIMESERIES = "delete from timeseries where datetime(timestamp, '+1 day') < datetime()"
_INSERT_LOGLINE = "insert into loglines (timestamp, line) values (datetime(), ?)"
_INSERT_TIMESERIES = "insert into timeseries (timestamp, key, value) values (datetime(), ?, ?)"
_SELECT_LOGLINES = (
    "select cast(strftime('%s', timestamp) as integer), line from loglines "
    "where timestamp > datetime(?, 'unixepoch')"
)


class DebugPack:
    """Records log lines and time-series samples, keeping one day of history.

    Writes go through small bounded queues to background threads; when a
    queue is full the new entry is dropped rather than blocking the caller.
    """

    def __init__(self, db_path: str | os.PathLike[str]) -> None:
        self.db_path = os.fspath(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._lock = threading.Lock()
        with self._conn:
            for statement in (
                _CREATE_TIMESERIES,
                _CREATE_LOGLINES,
                _PRUNE_LOGLINES,
                _PRUNE_TIMESERIES,
            ):
                self._conn.execute(statement)

        self._log_queue: queue.Queue = queue.Queue(maxsize=_QUEUE_SIZE)
        self._series_queue: queue.Queue = queue.Queue(maxsize=_QUEUE_SIZE)
        self._writers = [
            threading.Thread(
                target=self._drain, args=(self._log_queue, _INSERT_LOGLINE), daemon=True
            ),
            threading.Thread(
                target=self._drain,
                args=(self._series_queue, _INSERT_TIMESERIES),
                daemon=True,
            ),
        ]
        for writer in self._writers:
            writer.start()
        self._closed = False

    def _drain(self, source: queue.Queue, statement: str) -> None:
        conn = sqlite3.connect(self.db_path)
        try:
            while (item := source.get()) is not _STOP:
                try:
                    with conn:
                        conn.execute(statement, item)
                except sqlite3.Error as exc:
                    log.error("cannot write logline: %s", exc)
        finally:
            conn.close()

    @staticmethod
    def _offer(target: queue.Queue, item: tuple) -> None:
        try:
            target.put_nowait(item)
        except queue.Full:
            pass

    def add_logline(self, line: str) -> None:
        """Queue a log line for storage, dropping it if the queue is full."""
        if not self._closed:
            self._offer(self._log_queue, (line,))

    def add_timeseries(self, key: str, value: float) -> None:
        """Queue a time-series sample, dropping it if the queue is full."""
        if not self._closed:
            self._offer(self._series_queue, (key, float(value)))

    def backup(self, dest: str | os.PathLike[str]) -> None:
        """Copy the whole database to ``dest``."""
        target = sqlite3.connect(os.fspath(dest))
        try:
            with self._lock:
                self._conn.backup(target, pages=100, sleep=0.001)
        finally:
            target.close()

    def get_loglines(self, after: datetime) -> list[tuple[datetime, str]]:
        """Stored log lines newer than ``after``, with their UTC timestamps."""
        seconds = after.timestamp()
        if seconds < 0:
            raise ValueError(f"time is before the Unix epoch: {after}")
        with self._lock:
            rows = self._conn.execute(_SELECT_LOGLINES, (int(seconds),)).fetchall()
        return [
            (datetime.fromtimestamp(stamp, timezone.utc), line) for stamp, line in rows
        ]

    def close(self) -> None:
        """Flush queued entries, stop the writers and close the database."""
        if self._closed:
            return
        self._closed = True
        for target in (self._log_queue, self._series_queue):
            target.put(_STOP)
        for writer in self._writers:
            writer.join()
        self._conn.close()

    def __enter__(self) -> DebugPack:
        return self

    def __exit__(self, *args) -> None:
        self.close()