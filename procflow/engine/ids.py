"""In-process identifier generator."""

from __future__ import annotations

import threading
from collections import defaultdict

from procflow.engine.ports import IdGenerator


class SequenceIdGenerator(IdGenerator):
    """Per-category counters starting at ``start``; not shared between processes."""

    def __init__(self, start: int = 1):
        self._next: defaultdict[str, int] = defaultdict(lambda: start)
        self._lock = threading.Lock()

    async def generate_id(self, category: str) -> str:
        with self._lock:
            value = self._next[category]
            self._next[category] = value + 1
        return str(value)
