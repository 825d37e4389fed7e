# platelink/utils/keyed_lock.py
"""
Per-key mutual exclusion for the in-memory backend.
Two callers holding the same key never interleave; different keys never block
each other. Locks are reentrant and dropped once no caller holds or waits on them.
"""

import threading
from contextlib import contextmanager


class KeyedLock:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}     # key -> [RLock, holders]

    def _acquire_entry(self, key):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1
        return entry

    def _release_entry(self, key, entry):
        with self._guard:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key):
        entry = self._acquire_entry(key)
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            self._release_entry(key, entry)

    @contextmanager
    def hold_many(self, keys):
        """Hold several keys at once. Sorted order keeps two callers from deadlocking."""
        ordered = sorted(set(keys))
        acquired = []
        try:
            for key in ordered:
                entry = self._acquire_entry(key)
                entry[0].acquire()
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                entry[0].release()
                self._release_entry(key, entry)

    def __len__(self):
        with self._guard:
            return len(self._locks)
