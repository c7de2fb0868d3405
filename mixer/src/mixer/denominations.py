"""
Standard denomination catalog.

Outputs are most useful for privacy when several participants end up with the
same value, so they are drawn from a fixed set of round amounts:
- powers of 2
- powers of 3 and 2 * powers of 3
- the 1-2-5 decade series (10^i, 2 * 10^i, 5 * 10^i)
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterator

from cjcore.fees import FeeRate, ScriptType
from cjcore.models import Output
from loguru import logger

PROGRESSIONS: dict[str, Callable[[int], int]] = {
    "powers_of_2": lambda i: 2**i,
    "powers_of_3": lambda i: 3**i,
    "powers_of_3_times_2": lambda i: 3**i * 2,
    "powers_of_10": lambda i: 10**i,
    "powers_of_10_times_2": lambda i: 10**i * 2,
    "powers_of_10_times_5": lambda i: 10**i * 5,
}


def iter_progression(term: Callable[[int], int], minimum: int, maximum: int) -> Iterator[int]:
    """
    Yield the terms of an increasing progression that fall in [minimum, maximum].

    Terms below `minimum` are skipped; the first term above `maximum` ends the walk.
    """
    i = 0
    while True:
        value = term(i)
        i += 1
        if value < minimum:
            continue
        if value > maximum:
            return
        yield value


def create_denominations(
    min_allowed_output_amount: int,
    max_allowed_output_amount: int,
    fee_rate: FeeRate,
    is_taproot_allowed: bool,
    rng: random.Random,
) -> tuple[Output, ...]:
    """
    Build the denomination catalog for a round.

    Args:
        min_allowed_output_amount: Smallest output the coordinator accepts
        max_allowed_output_amount: Largest output the coordinator accepts
        fee_rate: Round fee rate, used to price each denomination
        is_taproot_allowed: Whether taproot outputs may be registered
        rng: Random source for the per-denomination script kind

    Returns:
        Unique denominations ordered by effective amount, largest first
    """
    if min_allowed_output_amount < 1:
        raise ValueError(f"Minimum output amount must be positive: {min_allowed_output_amount}")
    if max_allowed_output_amount < min_allowed_output_amount:
        raise ValueError(
            f"Maximum output amount {max_allowed_output_amount} "
            f"is below minimum {min_allowed_output_amount}"
        )

    denominations: set[Output] = set()
    for term in PROGRESSIONS.values():
        for amount in iter_progression(term, min_allowed_output_amount, max_allowed_output_amount):
            if is_taproot_allowed:
                script_type = rng.choice((ScriptType.P2WPKH, ScriptType.TAPROOT))
            else:
                script_type = ScriptType.P2WPKH
            denominations.add(Output.from_denomination(amount, script_type, fee_rate))

    catalog = tuple(
        sorted(
            denominations,
            key=lambda d: (d.effective_amount, d.amount, d.script_type.value),
            reverse=True,
        )
    )
    logger.debug(
        f"Created {len(catalog)} denominations between "
        f"{min_allowed_output_amount} and {max_allowed_output_amount} sats"
    )
    return catalog
