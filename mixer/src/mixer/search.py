"""
Bounded combination search.

Enumerates multisets of denomination values whose sum lands close to a target.
The decomposition engine only depends on the CombinationSearch protocol, so any
strategy honouring it can be plugged in.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Sequence
from typing import Any, Protocol

from loguru import logger

# (sum, element count, opaque selection)
Combination = tuple[int, int, Any]

# Nodes visited between two deadline checks
CLOCK_CHECK_INTERVAL = 1024


class SearchExhaustedError(Exception):
    """Raised when a search runs out of its node budget before finishing."""

    pass


class CombinationSearch(Protocol):
    def search(
        self, target: int, tolerance: int, max_count: int, values: Sequence[int]
    ) -> Iterator[Combination]:
        """
        Yield combinations of up to `max_count` values (with repetition) summing
        to within `tolerance` of `target`.
        """
        ...

    def materialize(self, selection: Any, count: int, values: Sequence[int]) -> list[int]:
        """Expand a selection back into the chosen values."""
        ...


class BoundedCombinationSearch:
    """
    Depth-first enumeration over values sorted largest first.

    A selection is a non-increasing-value tuple of indices into `values`, so each
    multiset is produced exactly once. Branches are cut as soon as the running sum
    overshoots the target or can no longer reach `target - tolerance` with the
    remaining slots. Only sums in [target - tolerance, target] are yielded.
    """

    def __init__(
        self,
        max_nodes: int = 500_000,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_nodes = max_nodes
        self.timeout = timeout
        self.clock = clock

    def search(
        self, target: int, tolerance: int, max_count: int, values: Sequence[int]
    ) -> Iterator[Combination]:
        if max_count < 1 or not values:
            return
        if any(v <= 0 for v in values):
            raise ValueError("Combination search requires positive values")

        order = sorted(range(len(values)), key=lambda i: values[i], reverse=True)
        lower = target - tolerance
        deadline = None if self.timeout is None else self.clock() + self.timeout
        nodes = 0

        # Stack of (position in `order` to try next, running sum, chosen indices)
        stack: list[tuple[int, int, tuple[int, ...]]] = [(0, 0, ())]
        while stack:
            start, total, chosen = stack.pop()
            nodes += 1
            if nodes > self.max_nodes:
                logger.debug(f"Combination search gave up after {self.max_nodes} nodes")
                raise SearchExhaustedError(
                    f"Search exceeded {self.max_nodes} nodes (target={target}, "
                    f"tolerance={tolerance}, values={len(values)})"
                )
            if deadline is not None and nodes % CLOCK_CHECK_INTERVAL == 0:
                if self.clock() > deadline:
                    raise SearchExhaustedError(
                        f"Search exceeded {self.timeout}s after {nodes} nodes (target={target})"
                    )

            if chosen and lower <= total <= target:
                yield total, len(chosen), chosen

            slots = max_count - len(chosen)
            if slots == 0:
                continue

            children = []
            for pos in range(start, len(order)):
                value = values[order[pos]]
                if total + value > target:
                    continue
                if total + value * slots < lower:
                    # Values only get smaller from here on.
                    break
                children.append((pos, total + value, chosen + (order[pos],)))

            # Larger values are explored first.
            stack.extend(reversed(children))

    def materialize(self, selection: Any, count: int, values: Sequence[int]) -> list[int]:
        indices = tuple(selection)
        if len(indices) != count:
            raise ValueError(f"Selection has {len(indices)} elements, expected {count}")
        return sorted((values[i] for i in indices), reverse=True)
