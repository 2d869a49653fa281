"""Session pool: ordered credential store with a shared round-robin cursor."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator

from .exceptions import ConfigurationError, SessionIndexError

logger = logging.getLogger("pplx-proxy")


@dataclass(frozen=True)
class Session:
    """An upstream session credential. Identity is the token value."""

    token: str

    def to_dict(self) -> dict[str, str]:
        return {"session_key": self.token}


class _ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers are preferred: once a writer is waiting, new readers block until
    it has finished, so a pool replacement cannot be starved by a steady
    stream of selections.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SessionPool:
    """Ordered session store shared by every request.

    Thread Safety:
    - The session list is guarded by a read/write lock. Selection and
      snapshots are readers; ``replace`` is the only writer.
    - The cursor has its own mutex, held only for the read-modify-write.
    - Callers receive ``Session`` values, so an in-flight attempt is not
      affected when the list is replaced underneath it.
    """

    def __init__(self, sessions: Iterable[Session | str] = ()) -> None:
        self._rw_lock = _ReadWriteLock()
        self._cursor_lock = threading.Lock()
        self._sessions: list[Session] = [_coerce(item) for item in sessions]
        self._cursor = 0

    def __len__(self) -> int:
        with self._rw_lock.read():
            return len(self._sessions)

    @property
    def cursor(self) -> int:
        with self._cursor_lock:
            return self._cursor

    def select_next(self) -> int:
        """Return the current cursor position and advance it by one.

        Raises:
            ConfigurationError: If the pool is empty.
        """
        with self._rw_lock.read():
            size = len(self._sessions)
            if size == 0:
                raise ConfigurationError("No sessions available")
            with self._cursor_lock:
                index = self._cursor % size
                self._cursor = (index + 1) % size
        return index

    def get(self, index: int) -> Session:
        """Resolve an index against the current sessions.

        Raises:
            SessionIndexError: If the index is outside the current pool.
        """
        with self._rw_lock.read():
            size = len(self._sessions)
            if index < 0 or index >= size:
                raise SessionIndexError(index, size)
            return self._sessions[index]

    def snapshot(self) -> list[Session]:
        """Return a copy of the current sessions in order."""
        with self._rw_lock.read():
            return list(self._sessions)

    def replace(self, sessions: Iterable[Session | str]) -> None:
        """Swap the whole session list in one step."""
        new_sessions = [_coerce(item) for item in sessions]
        with self._rw_lock.write():
            self._sessions = new_sessions
            with self._cursor_lock:
                if new_sessions:
                    self._cursor %= len(new_sessions)
                else:
                    self._cursor = 0
        logger.info("Session pool replaced with %d sessions", len(new_sessions))


def _coerce(item: Session | str) -> Session:
    if isinstance(item, Session):
        return item
    return Session(str(item))
