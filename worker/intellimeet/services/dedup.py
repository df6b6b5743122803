from __future__ import annotations

import threading
from typing import Any, Iterable, List, Set

from ..models.tasks import TaskRecord


def task_signature(text: str) -> str:
    return (text or "").strip().lower()


class Deduplicator:
    """Session-wide memory of task texts already surfaced to the user."""

    def __init__(self) -> None:
        self._seen: Set[str] = set()
        self._lock = threading.Lock()

    def has(self, text: str) -> bool:
        with self._lock:
            return task_signature(text) in self._seen

    def add(self, text: str) -> bool:
        """Record ``text``; False when it (or an equivalent) was already seen."""
        sig = task_signature(text)
        if not sig:
            return False
        with self._lock:
            if sig in self._seen:
                return False
            self._seen.add(sig)
            return True

    def admit(self, records: Iterable[TaskRecord]) -> List[TaskRecord]:
        return [r for r in records if self.add(r.task)]

    def clear(self) -> int:
        with self._lock:
            n = len(self._seen)
            self._seen = set()
        return n

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def __contains__(self, text: Any) -> bool:
        return isinstance(text, str) and self.has(text)
