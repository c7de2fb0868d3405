"""
Per-participant output decomposition.

Turns one participant's input coins into a set of output amounts:
1. Build a naive greedy decomposition over the round's shared denominations
2. Ask the combination search for alternatives close to the input sum
3. Score every candidate by fees paid now, fees to spend later and value lost
4. Pick randomly among the near-best candidates
5. Refuse the result if it creates value, loses too much or exceeds the vsize budget

The last step guards against defects in the search or filtering stages and must
never be relaxed: a decomposition that fails it is a hard error.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable, Collection, Iterable, Sequence
from dataclasses import dataclass

from cjcore.constants import (
    CANDIDATE_COST_MARGIN,
    MAX_DENOMINATION_USAGE,
    MAX_OUTPUTS_PER_PARTICIPANT,
    MIN_DENOMINATION_USAGE,
)
from cjcore.fees import ScriptType
from cjcore.models import Output
from loguru import logger

from mixer.context import MixerContext
from mixer.frequency import get_filtered_denominations
from mixer.search import BoundedCombinationSearch, CombinationSearch, SearchExhaustedError


class DecompositionError(Exception):
    """Raised when a participant's inputs cannot be safely decomposed."""

    pass


class ValueCreationError(DecompositionError):
    """Raised when the selected outputs cost more than the inputs provide."""

    pass


class ExcessiveLossError(DecompositionError):
    """Raised when the unallocated leftover exceeds the dust threshold."""

    pass


class VsizeBudgetError(DecompositionError):
    """Raised when the selected outputs do not fit the participant's vsize budget."""

    pass


class InsufficientFundsError(DecompositionError):
    """Raised when the inputs cannot even pay for a single output."""

    pass


CandidateKey = tuple[tuple[int, str], ...]


def candidate_key(outputs: Iterable[Output]) -> CandidateKey:
    """Canonical identity of an output multiset: sorted (amount, script kind) pairs."""
    return tuple(sorted((o.amount, o.script_type.value) for o in outputs))


def calculate_cost(outputs: Iterable[Output]) -> int:
    """Fees to create the outputs plus fees to spend (or remix) them later."""
    outputs = list(outputs)
    return sum(o.fee for o in outputs) + sum(o.input_fee for o in outputs)


@dataclass(frozen=True)
class Candidate:
    """A scored decomposition of one participant's inputs."""

    outputs: tuple[Output, ...]
    cost: int
    loss: int = 0

    @property
    def key(self) -> CandidateKey:
        return candidate_key(self.outputs)

    @property
    def largest_amount(self) -> int:
        return max(o.amount for o in self.outputs)

    @property
    def script_type_count(self) -> int:
        return len({o.script_type for o in self.outputs})

    @property
    def total_effective_cost(self) -> int:
        return sum(o.effective_cost for o in self.outputs)

    @property
    def total_vsize(self) -> int:
        return sum(o.output_vsize for o in self.outputs)

    def is_standard_only(self, denominations: Collection[Output]) -> bool:
        return all(o in denominations for o in self.outputs)

    def amounts(self) -> list[int]:
        return sorted((o.amount for o in self.outputs), reverse=True)


def order_candidates(
    candidates: Iterable[Candidate], denominations: Iterable[Output], rng: random.Random
) -> list[Candidate]:
    """
    Order candidates best first.

    Lower cost wins, then candidates without change, then candidates mixing script
    kinds. Ties keep the order of a prior shuffle.
    """
    shuffled = list(candidates)
    rng.shuffle(shuffled)
    catalog = frozenset(denominations)
    return sorted(
        shuffled,
        key=lambda c: (
            c.cost,
            0 if c.is_standard_only(catalog) else 1,
            0 if c.script_type_count > 1 else 1,
        ),
    )


def near_best_candidates(ordered: Sequence[Candidate]) -> list[Candidate]:
    """Prefix of an ordered candidate list whose cost is within the margin of the best."""
    if not ordered:
        raise ValueError("No candidates to choose from")
    best_cost = ordered[0].cost
    return [c for c in ordered if c.cost <= best_cost * CANDIDATE_COST_MARGIN]


def pick_largest_amount(candidates: Sequence[Candidate], rng: random.Random) -> int:
    """Draw one of the distinct largest output amounts present among the candidates."""
    return rng.choice(sorted({c.largest_amount for c in candidates}))


def pick_candidate(
    candidates: Sequence[Candidate], largest_amount: int, rng: random.Random
) -> Candidate:
    """Draw one candidate whose largest output amount is `largest_amount`."""
    matching = [c for c in candidates if c.largest_amount == largest_amount]
    if not matching:
        raise ValueError(f"No candidate has largest amount {largest_amount}")
    return rng.choice(matching)


class Decomposer:
    """
    Decomposes participants' inputs for one round.

    Args:
        context: Round parameters and shared state
        search: Combination search used for optimized candidates
        search_timeout: Seconds after which optimized candidates are abandoned
        max_search_candidates: Combinations consumed from the search per participant
        clock: Monotonic clock, replaceable in tests
    """

    def __init__(
        self,
        context: MixerContext,
        search: CombinationSearch | None = None,
        search_timeout: float = 10.0,
        max_search_candidates: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.context = context
        self.search = search if search is not None else BoundedCombinationSearch()
        self.search_timeout = search_timeout
        self.max_search_candidates = max_search_candidates
        self.clock = clock

    def decompose(
        self,
        my_inputs: Sequence[int],
        others_inputs: Sequence[int],
        available_vsize: int,
        denominations: Sequence[Output] | None = None,
    ) -> list[int]:
        """
        Decompose one participant's inputs into output face amounts.

        Args:
            my_inputs: Effective values of the participant's coins
            others_inputs: Effective values of every other participant's coins
            available_vsize: Output vsize the participant may use
            denominations: Filtered denominations of the round, computed from all inputs
                when omitted

        Returns:
            Output face amounts, largest first

        Raises:
            DecompositionError: If no safe decomposition exists
        """
        if any(value < 0 for value in my_inputs):
            raise ValueError(f"Input values must be non-negative: {list(my_inputs)}")
        if available_vsize < 0:
            raise ValueError(f"Available vsize must be non-negative, got {available_vsize}")

        ctx = self.context
        input_sum = sum(my_inputs)
        if denominations is None:
            denoms = self.filter_denominations([*my_inputs, *others_inputs])
        else:
            denoms = list(denominations)

        naive = self.build_naive_candidate(input_sum, denoms, available_vsize)
        candidates: dict[CandidateKey, Candidate] = {naive.key: naive}
        for candidate in self.collect_optimized_candidates(
            input_sum, denoms, available_vsize, naive.loss
        ):
            candidates.setdefault(candidate.key, candidate)

        selected = self.select_candidate(candidates.values(), denoms)
        leftover = self.check_safety(selected.outputs, input_sum, available_vsize)
        ctx.leftovers.append(leftover)

        amounts = selected.amounts()
        logger.info(
            f"Decomposed {input_sum} sats from {len(my_inputs)} input(s) into "
            f"{len(amounts)} output(s) out of {len(candidates)} candidate(s), "
            f"leftover={leftover}"
        )
        logger.debug(f"Outputs: {amounts}")
        return amounts

    def filter_denominations(self, pool: Sequence[int]) -> list[Output]:
        """Denominations likely to be shared by the owners of the coins in `pool`."""
        ctx = self.context
        return get_filtered_denominations(
            pool,
            ctx.denominations,
            ctx.min_allowed_output_amount,
            ctx.change_script_type,
            ctx.fee_rate,
        )

    def build_naive_candidate(
        self, input_sum: int, denoms: Sequence[Output], available_vsize: int
    ) -> Candidate:
        """Greedy decomposition: largest denominations first, remainder as change."""
        ctx = self.context
        change_vsize = ctx.change_script_type.estimate_output_vsize()
        remaining = input_sum
        remaining_vsize = available_vsize

        # How many times the same denomination may be taken.
        max_denom_usage = ctx.rng.randint(MIN_DENOMINATION_USAGE, MAX_DENOMINATION_USAGE)

        outputs: list[Output] = []
        end = False
        for denom in denoms:
            usage = 0
            while denom.effective_cost <= remaining:
                # Only go on if there is room left for this denomination and a change.
                if (
                    remaining < ctx.min_allowed_output_amount_plus_change_fee
                    or remaining_vsize < denom.output_vsize + change_vsize
                ):
                    end = True
                    break

                outputs.append(denom)
                remaining -= denom.effective_cost
                remaining_vsize -= denom.output_vsize
                usage += 1

                # The rest will be change.
                if usage >= max_denom_usage:
                    end = True
                    break

            if end:
                break

        loss = 0
        if remaining >= ctx.min_allowed_output_amount_plus_change_fee:
            outputs.append(Output.from_amount(remaining, ctx.change_script_type, ctx.fee_rate))
        else:
            # Goes to miners.
            loss = remaining

        if not outputs:
            # The smallest denomination is larger than the input sum. The change
            # takes the whole balance but the loss stays in the cost.
            if remaining < ctx.change_fee:
                raise InsufficientFundsError(
                    f"Input sum {input_sum} cannot pay the {ctx.change_fee} sats "
                    f"fee of a single {ctx.change_script_type.value} output"
                )
            outputs.append(Output.from_amount(remaining, ctx.change_script_type, ctx.fee_rate))

        return Candidate(outputs=tuple(outputs), cost=calculate_cost(outputs) + loss, loss=loss)

    def collect_optimized_candidates(
        self, input_sum: int, denoms: Sequence[Output], available_vsize: int, loss: int
    ) -> list[Candidate]:
        """
        Candidates from the combination search, each re-validated.

        Returns an empty list when the search runs over its budget.
        """
        ctx = self.context
        max_outputs = min(
            available_vsize // ScriptType.smallest_output_vsize(), MAX_OUTPUTS_PER_PARTICIPANT
        )
        if max_outputs <= 1:
            return []

        by_cost: dict[int, Output] = {}
        for denom in denoms:
            if denom.effective_cost <= input_sum:
                by_cost.setdefault(denom.effective_cost, denom)
        values = list(by_cost)
        if not values:
            return []

        # The change fee stands in for any output fee here, it is only a tolerance.
        tolerance = int(max(loss, 0.5 * ctx.min_allowed_output_amount_plus_change_fee))

        deadline = self.clock() + self.search_timeout
        candidates: list[Candidate] = []
        consumed = 0
        try:
            for total, count, selection in self.search.search(
                target=input_sum, tolerance=tolerance, max_count=max_outputs, values=values
            ):
                consumed += 1
                candidate = self._translate(
                    total=total,
                    count=count,
                    selection=selection,
                    values=values,
                    by_cost=by_cost,
                    input_sum=input_sum,
                    tolerance=tolerance,
                    max_outputs=max_outputs,
                    available_vsize=available_vsize,
                )
                if candidate is not None:
                    candidates.append(candidate)

                if consumed >= self.max_search_candidates:
                    logger.debug(f"Stopped consuming search results after {consumed}")
                    break
                if self.clock() > deadline:
                    logger.warning(
                        f"Optimized search timed out after {self.search_timeout}s, "
                        "falling back to the naive decomposition"
                    )
                    return []
        except SearchExhaustedError as e:
            logger.warning(f"Optimized search exhausted, falling back to naive decomposition: {e}")
            return []

        logger.debug(
            f"Search returned {consumed} combination(s), {len(candidates)} usable "
            f"(target={input_sum}, tolerance={tolerance}, max_outputs={max_outputs})"
        )
        return candidates

    def _translate(
        self,
        total: int,
        count: int,
        selection: object,
        values: Sequence[int],
        by_cost: dict[int, Output],
        input_sum: int,
        tolerance: int,
        max_outputs: int,
        available_vsize: int,
    ) -> Candidate | None:
        """Map a search result back to outputs, or None if it breaks any constraint."""
        amounts = self.search.materialize(selection, count, values)
        if not amounts or len(amounts) > max_outputs:
            logger.debug(f"Rejected combination with {len(amounts)} element(s)")
            return None

        outputs = []
        for effective_cost in amounts:
            denom = by_cost.get(effective_cost)
            if denom is None:
                logger.debug(f"Rejected combination using unknown value {effective_cost}")
                return None
            outputs.append(denom)

        spent = sum(o.effective_cost for o in outputs)
        if spent != total:
            logger.debug(f"Search reported sum {total} but combination sums to {spent}")
        if spent > input_sum:
            logger.debug(f"Rejected combination spending {spent} of {input_sum} sats")
            return None
        deficit = input_sum - spent
        if deficit > tolerance:
            logger.debug(f"Rejected combination leaving {deficit} sats (tolerance {tolerance})")
            return None

        # The search does not know script kinds, vsize is checked here.
        vsize = sum(o.output_vsize for o in outputs)
        if vsize > available_vsize:
            logger.debug(f"Rejected combination of {vsize} vbytes (budget {available_vsize})")
            return None

        return Candidate(
            outputs=tuple(outputs), cost=deficit + calculate_cost(outputs), loss=deficit
        )

    def select_candidate(
        self, candidates: Iterable[Candidate], denoms: Sequence[Output]
    ) -> Candidate:
        """
        Random choice among the near-best candidates, spread over distinct largest amounts.

        Only outputs in `denoms`, the participant's filtered denominations, count as
        standard; anything else is change.
        """
        rng = self.context.rng
        finalists = near_best_candidates(order_candidates(candidates, denoms, rng))
        # Different largest elements give very different decompositions.
        largest_amount = pick_largest_amount(finalists, rng)
        return pick_candidate(finalists, largest_amount, rng)

    def check_safety(
        self, outputs: Sequence[Output], input_sum: int, available_vsize: int
    ) -> int:
        """
        Final money and size checks on the selected outputs.

        Returns:
            The leftover absorbed as fee

        Raises:
            ValueCreationError: If outputs cost more than the inputs
            ExcessiveLossError: If the leftover exceeds the dust threshold
            VsizeBudgetError: If outputs exceed the vsize budget
        """
        spent = sum(o.effective_cost for o in outputs)
        if spent > input_sum:
            raise ValueCreationError(
                f"Outputs cost {spent} sats but inputs only provide {input_sum}. Aborting."
            )

        leftover = input_sum - spent
        if leftover > self.context.max_allowed_loss:
            raise ExcessiveLossError(
                f"Leftover too large. Aborting to avoid money loss: {leftover} "
                f"(max {self.context.max_allowed_loss})"
            )

        vsize = sum(o.output_vsize for o in outputs)
        if vsize > available_vsize:
            raise VsizeBudgetError(
                f"Outputs need {vsize} vbytes but only {available_vsize} are available"
            )
        return leftover
