"""
Round context shared by every participant's decomposition.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from cjcore.fees import FeeRate, ScriptType
from cjcore.models import Output

from mixer.denominations import create_denominations


@dataclass
class MixerContext:
    """
    Parameters and shared state of one round.

    The catalog is read-only once built. The random source and the leftover log
    are the only mutable parts and must be used by one participant at a time.
    """

    fee_rate: FeeRate
    min_allowed_output_amount: int
    max_allowed_output_amount: int
    is_taproot_allowed: bool
    change_script_type: ScriptType
    denominations: tuple[Output, ...]
    rng: random.Random
    leftovers: list[int] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        fee_rate: FeeRate,
        min_allowed_output_amount: int,
        max_allowed_output_amount: int,
        is_taproot_allowed: bool,
        rng: random.Random | None = None,
    ) -> MixerContext:
        """Pick the round's change script kind and build its denomination catalog."""
        rng = rng if rng is not None else random.Random()
        if is_taproot_allowed:
            change_script_type = rng.choice((ScriptType.P2WPKH, ScriptType.TAPROOT))
        else:
            change_script_type = ScriptType.P2WPKH

        denominations = create_denominations(
            min_allowed_output_amount,
            max_allowed_output_amount,
            fee_rate,
            is_taproot_allowed,
            rng,
        )
        return cls(
            fee_rate=fee_rate,
            min_allowed_output_amount=min_allowed_output_amount,
            max_allowed_output_amount=max_allowed_output_amount,
            is_taproot_allowed=is_taproot_allowed,
            change_script_type=change_script_type,
            denominations=denominations,
            rng=rng,
        )

    @property
    def change_fee(self) -> int:
        return self.fee_rate.fee(self.change_script_type.estimate_output_vsize())

    @property
    def min_allowed_output_amount_plus_change_fee(self) -> int:
        return self.min_allowed_output_amount + self.change_fee

    @property
    def max_allowed_loss(self) -> int:
        """Largest leftover tolerated before a decomposition is refused."""
        return self.min_allowed_output_amount + self.fee_rate.fee(ScriptType.largest_input_vsize())
