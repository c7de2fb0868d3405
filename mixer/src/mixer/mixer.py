"""
Round orchestration.

Runs the decomposition engine once per participant, in input order, sharing the
round's denomination catalog, random source and leftover log.
"""

from __future__ import annotations

import random
from collections import Counter
from collections.abc import Iterable, Iterator, Sequence

from cjcore.constants import (
    MAX_STANDARD_TX_VSIZE,
    MAX_VSIZE_CREDENTIAL_VALUE,
    SHARED_OVERHEAD_VSIZE,
)
from cjcore.fees import FeeRate, ScriptType
from cjcore.models import Output
from loguru import logger
from pydantic import BaseModel, Field

from mixer.config import MixerConfig
from mixer.context import MixerContext
from mixer.decomposer import Decomposer
from mixer.search import BoundedCombinationSearch, CombinationSearch


def max_vsize_credential_value(total_input_count: int) -> int:
    """
    Vsize each input of the round may claim.

    The standard transaction size minus the shared overhead is split evenly across
    inputs, capped by the protocol's per-input credential.
    """
    if total_input_count < 1:
        raise ValueError(f"A round needs at least one input, got {total_input_count}")
    allocation = (MAX_STANDARD_TX_VSIZE - SHARED_OVERHEAD_VSIZE) // total_input_count
    return min(allocation, MAX_VSIZE_CREDENTIAL_VALUE)


def calculate_available_vsize(input_count: int, credential_value: int) -> int:
    """Output vsize a participant can pay for: each input's credential minus its own size."""
    per_input = credential_value - ScriptType.P2WPKH.estimate_input_vsize()
    return max(0, input_count * per_input)


class Mixer:
    """
    Decomposes every participant of a round.

    Args:
        fee_rate: Round fee rate
        min_allowed_output_amount: Smallest output the coordinator accepts
        max_allowed_output_amount: Largest output the coordinator accepts
        is_taproot_allowed: Whether taproot outputs may be registered
        rng: Random source; seed it to make a round reproducible
        search: Combination search for optimized candidates
        search_timeout: Seconds allowed for the optimized search per participant
        max_search_candidates: Combinations consumed per participant
    """

    def __init__(
        self,
        fee_rate: FeeRate,
        min_allowed_output_amount: int,
        max_allowed_output_amount: int,
        is_taproot_allowed: bool,
        rng: random.Random | None = None,
        search: CombinationSearch | None = None,
        search_timeout: float = 10.0,
        max_search_candidates: int = 10_000,
    ):
        self.context = MixerContext.create(
            fee_rate=fee_rate,
            min_allowed_output_amount=min_allowed_output_amount,
            max_allowed_output_amount=max_allowed_output_amount,
            is_taproot_allowed=is_taproot_allowed,
            rng=rng,
        )
        self.decomposer = Decomposer(
            self.context,
            search=search,
            search_timeout=search_timeout,
            max_search_candidates=max_search_candidates,
        )

    @classmethod
    def from_config(cls, config: MixerConfig) -> Mixer:
        return cls(
            fee_rate=config.get_fee_rate(),
            min_allowed_output_amount=config.min_allowed_output_amount,
            max_allowed_output_amount=config.max_allowed_output_amount,
            is_taproot_allowed=config.is_taproot_allowed,
            rng=random.Random(config.seed),
            search=BoundedCombinationSearch(
                max_nodes=config.max_search_nodes, timeout=config.search_timeout
            ),
            search_timeout=config.search_timeout,
            max_search_candidates=config.max_search_candidates,
        )

    @property
    def denominations(self) -> tuple[Output, ...]:
        return self.context.denominations

    @property
    def leftovers(self) -> tuple[int, ...]:
        """Leftover of every successful decomposition so far, in order."""
        return tuple(self.context.leftovers)

    def complete_mix(self, grouped_inputs: Iterable[Iterable[int]]) -> Iterator[list[int]]:
        """
        Decompose each participant's inputs, lazily and in order.

        Every yielded result consumes randomness and appends to the leftover log, so
        re-running a participant does not reproduce it; replay with a fixed seed.

        Args:
            grouped_inputs: Effective input values, one group per participant

        Yields:
            Output face amounts of each participant, largest first
        """
        groups = [list(group) for group in grouped_inputs]
        total_input_count = sum(len(group) for group in groups)
        if total_input_count == 0:
            return

        credential = max_vsize_credential_value(total_input_count)
        # The pool is the same for every participant.
        pool = [value for group in groups for value in group]
        denoms = self.decomposer.filter_denominations(pool)
        logger.info(
            f"Mixing {len(groups)} participant(s) with {total_input_count} input(s), "
            f"{len(self.context.denominations)} denominations ({len(denoms)} shared), "
            f"change script {self.context.change_script_type.value}"
        )

        for i, my_inputs in enumerate(groups):
            others = [value for j, group in enumerate(groups) if j != i for value in group]
            available_vsize = calculate_available_vsize(len(my_inputs), credential)
            yield self.decomposer.decompose(
                my_inputs, others, available_vsize, denominations=denoms
            )


class RoundSummary(BaseModel):
    """Aggregate figures of a completed round."""

    participant_count: int = Field(..., ge=0)
    input_count: int = Field(..., ge=0)
    output_count: int = Field(..., ge=0)
    total_input: int = Field(..., ge=0)
    total_output: int = Field(..., ge=0)
    total_leftover: int = Field(..., ge=0)
    distinct_output_values: int = Field(..., ge=0)
    shared_output_count: int = Field(
        ..., ge=0, description="Outputs whose value appears at least twice in the round"
    )

    @property
    def shared_output_ratio(self) -> float:
        if self.output_count == 0:
            return 0.0
        return self.shared_output_count / self.output_count


def summarize_round(
    grouped_inputs: Sequence[Sequence[int]],
    grouped_outputs: Sequence[Sequence[int]],
    leftovers: Sequence[int],
) -> RoundSummary:
    """Summarize a round from its inputs, outputs and leftover log."""
    outputs = [value for group in grouped_outputs for value in group]
    frequencies = Counter(outputs)
    return RoundSummary(
        participant_count=len(grouped_inputs),
        input_count=sum(len(group) for group in grouped_inputs),
        output_count=len(outputs),
        total_input=sum(sum(group) for group in grouped_inputs),
        total_output=sum(outputs),
        total_leftover=sum(leftovers),
        distinct_output_values=len(frequencies),
        shared_output_count=sum(count for count in frequencies.values() if count > 1),
    )
