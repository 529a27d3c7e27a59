"""
Identifier generation.

Row ids for documents, revisions, sections, notes and queue entries come
from an injectable generator so tests can use deterministic ids.
"""

import threading
import uuid
from typing import Protocol


class IdGenerator(Protocol):
    """Produces unique string ids with a kind prefix (``doc``, ``rev``, ...)."""

    def new_id(self, prefix: str) -> str: ...


class UuidIdGenerator:
    """Default generator: ``{prefix}-{uuid4}``."""

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{uuid.uuid4()}"


class SequentialIdGenerator:
    """Deterministic generator: ``{prefix}-1``, ``{prefix}-2``, ... per prefix."""

    def __init__(self):
        self._counters: dict[str, int] = {}
        self._lock = threading.Lock()

    def new_id(self, prefix: str) -> str:
        with self._lock:
            n = self._counters.get(prefix, 0) + 1
            self._counters[prefix] = n
        return f"{prefix}-{n}"
