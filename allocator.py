from __future__ import annotations

import logging
import random
from typing import Optional

from models import BlockKind

logger = logging.getLogger(__name__)


class BlockAccountingError(RuntimeError):
    """A block was released that was never allocated (double free)."""


class BlockAllocator:
    """
    Bookkeeping for the storage a queue claims: the handle, each node and
    each node's private string copy.

    allocate() can be told to fail (probability or the next n calls), which
    is how the allocation-failure paths of the queue get exercised.
    Live counts per kind let callers prove that teardown leaked nothing.
    """

    def __init__(self, fail_probability: float = 0.0, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)
        self._fail_probability = 0.0
        self.set_fail_probability(fail_probability)
        self._forced_failures = 0
        self._live: dict[BlockKind, int] = {kind: 0 for kind in BlockKind}
        self.total_allocated = 0
        self.failures = 0

    @property
    def fail_probability(self) -> float:
        return self._fail_probability

    def set_fail_probability(self, probability: float) -> None:
        if not 0.0 <= probability <= 1.0:
            raise ValueError("fail probability must be within [0, 1]")
        self._fail_probability = probability

    def fail_next(self, count: int = 1) -> None:
        """Force the next `count` allocations to fail."""
        if count < 0:
            raise ValueError("count must be >= 0")
        self._forced_failures = count

    def allocate(self, kind: BlockKind) -> bool:
        if self._should_fail():
            self.failures += 1
            logger.warning("Allocation of %s block failed", kind.value)
            return False
        self._live[kind] += 1
        self.total_allocated += 1
        return True

    def release(self, kind: BlockKind) -> None:
        if self._live[kind] == 0:
            raise BlockAccountingError(f"release of unallocated {kind.value} block")
        self._live[kind] -= 1

    def live(self, kind: Optional[BlockKind] = None) -> int:
        if kind is None:
            return sum(self._live.values())
        return self._live[kind]

    def snapshot(self) -> dict[str, int]:
        return {kind.value: count for kind, count in self._live.items()}

    # -------------------------
    # internal
    # -------------------------
    def _should_fail(self) -> bool:
        if self._forced_failures > 0:
            self._forced_failures -= 1
            return True
        if self._fail_probability <= 0.0:
            return False
        return self._rng.random() < self._fail_probability


# shared by queues created without an explicit allocator; never fails
default_allocator = BlockAllocator()
