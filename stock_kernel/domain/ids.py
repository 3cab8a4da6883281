"""
Document identifier generation.

Business documents (arrivals, transfers, losses, orders ...) get their id
from an injected ``IdGenerator`` instead of concatenated timestamps.
``SequentialIdGenerator`` gives readable, per-prefix monotonic ids
(``BR-000001``) and is deterministic for tests; ``UuidIdGenerator``
gives globally unique ids.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from uuid import uuid4


class IdGenerator(ABC):
    """Produces a new identifier for a document kind prefix."""

    @abstractmethod
    def next_id(self, prefix: str) -> str:
        ...


class SequentialIdGenerator(IdGenerator):
    """Per-prefix counter: ``PREFIX-000001``, ``PREFIX-000002`` ..."""

    def __init__(self, width: int = 6):
        self._width = width
        self._counters: defaultdict[str, int] = defaultdict(int)

    def next_id(self, prefix: str) -> str:
        self._counters[prefix] += 1
        return f"{prefix}-{self._counters[prefix]:0{self._width}d}"


class UuidIdGenerator(IdGenerator):
    """``PREFIX-<uuid4 hex>``."""

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{uuid4().hex}"
