"""
Output value model.

An Output is a candidate coinjoin output: a face amount of a given script kind,
priced at the round's fee rate both for creating it now and for spending it later.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cjcore.fees import FeeRate, ScriptType


@dataclass(frozen=True)
class Output:
    """
    Immutable output candidate.

    Two outputs are interchangeable when they have the same face amount and script
    kind; the creation fee is derivable from those but takes part in equality too.
    """

    amount: int
    script_type: ScriptType
    fee: int
    input_fee: int = field(compare=False)

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Output amount must be non-negative, got {self.amount}")

    @classmethod
    def from_denomination(cls, amount: int, script_type: ScriptType, fee_rate: FeeRate) -> Output:
        """Output whose face value is exactly `amount`."""
        return cls(
            amount=amount,
            script_type=script_type,
            fee=fee_rate.fee(script_type.estimate_output_vsize()),
            input_fee=fee_rate.fee(script_type.estimate_input_vsize()),
        )

    @classmethod
    def from_amount(cls, amount: int, script_type: ScriptType, fee_rate: FeeRate) -> Output:
        """
        Output that consumes `amount` of effective value.

        The creation fee is taken out of `amount`, so `effective_cost` equals `amount`.
        """
        fee = fee_rate.fee(script_type.estimate_output_vsize())
        return cls(
            amount=amount - fee,
            script_type=script_type,
            fee=fee,
            input_fee=fee_rate.fee(script_type.estimate_input_vsize()),
        )

    @property
    def effective_amount(self) -> int:
        return self.amount - self.fee

    @property
    def effective_cost(self) -> int:
        return self.amount + self.fee

    @property
    def output_vsize(self) -> int:
        return self.script_type.estimate_output_vsize()

    def __repr__(self) -> str:
        return f"Output({self.amount} sats, {self.script_type.value}, fee={self.fee})"
