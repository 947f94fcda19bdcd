"""Per-subject mutual exclusion for the transition executor.

Every mutation of a subject (house, guild, business, ...) runs while holding
that subject's lock. Operations touching two subjects, such as currency
transfers, acquire both locks in sorted order so two transfers in opposite
directions cannot deadlock. Locks are re-entrant so a service may call
another service for the same subject. The registry keeps a lock only while
someone references it, so idle subjects do not accumulate.
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager

SubjectKey = tuple[str, int]


class SubjectLocks:
    """Registry of lazily created per-subject locks, dropped once unreferenced."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[SubjectKey, threading.RLock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, kind: str, subject_id: int) -> threading.RLock:
        key = (kind, int(subject_id))
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *subjects: SubjectKey | None) -> Iterator[None]:
        """Hold the locks of every given subject; ``None`` entries are skipped."""
        keys = sorted({(kind, int(subject_id)) for kind, subject_id in filter(None, subjects)})
        with ExitStack() as stack:
            for kind, subject_id in keys:
                stack.enter_context(self.lock_for(kind, subject_id))
            yield

    def __len__(self) -> int:
        return len(self._locks)


DEFAULT_LOCKS = SubjectLocks()
