"""
Test configuration for mixer tests.
"""

from __future__ import annotations

import random
import sys
from collections.abc import Callable, Iterator, Sequence
from typing import Any

import pytest
from cjcore.fees import FeeRate, ScriptType
from cjcore.models import Output
from loguru import logger

from mixer.context import MixerContext


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Restore the default loguru sink after CLI tests replace it."""
    yield
    logger.remove()
    logger.add(sys.stderr, level="WARNING")


@pytest.fixture
def fee_rate() -> FeeRate:
    """2 sat/vB: P2WPKH output fee 62, taproot output fee 86."""
    return FeeRate.from_sat_per_vbyte(2)


@pytest.fixture
def make_context(fee_rate: FeeRate) -> Callable[..., MixerContext]:
    """Factory for round contexts with overridable parameters."""

    def _make(
        min_allowed_output_amount: int = 5_000,
        max_allowed_output_amount: int = 10_000_000,
        is_taproot_allowed: bool = False,
        seed: int = 42,
        denominations: Sequence[Output] | None = None,
        change_script_type: ScriptType | None = None,
    ) -> MixerContext:
        context = MixerContext.create(
            fee_rate=fee_rate,
            min_allowed_output_amount=min_allowed_output_amount,
            max_allowed_output_amount=max_allowed_output_amount,
            is_taproot_allowed=is_taproot_allowed,
            rng=random.Random(seed),
        )
        if denominations is not None:
            context.denominations = tuple(denominations)
        if change_script_type is not None:
            context.change_script_type = change_script_type
        return context

    return _make


class ScriptedSearch:
    """
    Combination search returning a fixed list of value combinations.

    Selections are the raw value lists, so the oracle can propose anything,
    including combinations that are not valid for the request.
    """

    def __init__(self, combinations: Sequence[Sequence[int]]):
        self.combinations = [list(c) for c in combinations]
        self.calls: list[dict[str, Any]] = []

    def search(self, target: int, tolerance: int, max_count: int, values: Sequence[int]):
        self.calls.append(
            {"target": target, "tolerance": tolerance, "max_count": max_count, "values": values}
        )
        for combination in self.combinations:
            yield sum(combination), len(combination), combination

    def materialize(self, selection: Any, count: int, values: Sequence[int]) -> list[int]:
        return sorted(selection, reverse=True)


@pytest.fixture
def scripted_search() -> type[ScriptedSearch]:
    return ScriptedSearch
