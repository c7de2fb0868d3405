"""
Denomination frequency filtering.

A denomination only one participant ends up using links that output to its owner.
Without knowing what the others will choose, we estimate which denominations are
likely to be shared by greedily breaking down every coin of the round and keeping
the denominations that show up more than once.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Iterator, Sequence

from cjcore.fees import FeeRate, ScriptType
from cjcore.models import Output
from loguru import logger

# Pruning severity added at the top of the list, spread linearly down to zero
SIMILARITY_SEVERITY_SPAN = 0.5


def break_down(
    coin: int,
    denominations: Iterable[Output],
    min_allowed_output_amount: int,
    change_script_type: ScriptType,
    fee_rate: FeeRate,
) -> Iterator[Output]:
    """
    Greedily decompose one coin into the given denominations.

    Denominations are consumed in the order given, as many times as they fit.
    Whatever remains is emitted as a change output if it is large enough to be one.
    """
    change_fee = fee_rate.fee(change_script_type.estimate_output_vsize())
    min_with_change_fee = min_allowed_output_amount + change_fee
    remaining = coin

    for denom in denominations:
        if denom.amount < min_allowed_output_amount or remaining < min_with_change_fee:
            break

        while denom.effective_cost <= remaining:
            yield denom
            remaining -= denom.effective_cost

    if remaining >= min_with_change_fee:
        yield Output.from_amount(remaining, change_script_type, fee_rate)


def second_largest(values: Sequence[int]) -> int:
    """Second largest value, or the only value of a single-element sequence."""
    if not values:
        raise ValueError("Cannot take the second largest value of an empty sequence")
    ordered = sorted(values, reverse=True)
    return ordered[1] if len(ordered) > 1 else ordered[0]


def prune_similar(denominations: Sequence[Output]) -> list[Output]:
    """
    Drop denominations too close to a larger one already kept.

    Filtering is heavy at the top and fades out at the bottom: small denominations
    are shared by many participants anyway, large ones rarely meet each other.
    """
    if not denominations:
        return []

    increment = SIMILARITY_SEVERITY_SPAN / len(denominations)
    kept: list[Output] = []
    remaining_count = len(denominations)
    for denom in denominations:
        severity = 1 + remaining_count * increment
        if not kept or denom.amount <= kept[-1].amount / severity:
            kept.append(denom)
        remaining_count -= 1
    return kept


def get_filtered_denominations(
    pool: Sequence[int],
    denominations: Sequence[Output],
    min_allowed_output_amount: int,
    change_script_type: ScriptType,
    fee_rate: FeeRate,
) -> list[Output]:
    """
    Select the denominations worth offering to participants of this round.

    Args:
        pool: Effective values of every input coin of the round
        denominations: Round denomination catalog
        min_allowed_output_amount: Smallest output the coordinator accepts
        change_script_type: Script kind of synthetic change outputs
        fee_rate: Round fee rate

    Returns:
        Denominations likely to be shared, ordered by effective cost, largest first
    """
    if not pool:
        return []

    # The largest coin alone must not pull in denominations nobody else can reach.
    cap = second_largest(pool)
    for_breakdown = sorted(
        (d for d in denominations if d.effective_cost <= cap),
        # Same face amount: the cheaper to spend goes first so greedy takes it.
        key=lambda d: (-d.amount, d.effective_cost),
    )

    frequencies: Counter[Output] = Counter()
    for coin in pool:
        frequencies.update(
            break_down(coin, for_breakdown, min_allowed_output_amount, change_script_type, fee_rate)
        )

    pre_filtered = sorted(
        (denom for denom, count in frequencies.items() if count > 1),
        key=lambda d: (d.effective_cost, d.amount, d.script_type.value),
        reverse=True,
    )
    filtered = prune_similar(pre_filtered)

    logger.debug(
        f"Frequency filter: {len(pool)} coins, cap={cap}, "
        f"{len(pre_filtered)} shared denominations, {len(filtered)} after pruning"
    )
    return filtered
