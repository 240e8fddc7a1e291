"""Per-key locks for serializing writes of one user."""

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager


class _KeyLock:
    __slots__ = ("lock", "__weakref__")

    def __init__(self) -> None:
        self.lock = threading.Lock()


class KeyedLock:
    """A lock per key, released from memory once no thread holds it.

    Only serializes threads of one process. Writers in other processes are
    caught by the database constraints instead.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, _KeyLock] = (
            weakref.WeakValueDictionary()
        )

    def _get(self, key: str) -> _KeyLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._locks[key] = entry
            return entry

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        entry = self._get(key)
        with entry.lock:
            yield
