"""
Fee rates and script kinds.

A fee rate is a linear function from virtual size to satoshis; a script kind
carries the vsize estimates used to price creating and later spending an output.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, Decimal
from enum import Enum
from typing import NamedTuple

from cjcore.constants import (
    P2WPKH_INPUT_VSIZE,
    P2WPKH_OUTPUT_VSIZE,
    TAPROOT_INPUT_VSIZE,
    TAPROOT_OUTPUT_VSIZE,
)


class ScriptMetadata(NamedTuple):
    """Virtual sizes of a script kind when created as output and spent as input."""

    output_vsize: int
    input_vsize: int


class ScriptType(str, Enum):
    P2WPKH = "p2wpkh"
    TAPROOT = "taproot"

    @property
    def metadata(self) -> ScriptMetadata:
        return _SCRIPT_METADATA[self]

    def estimate_output_vsize(self) -> int:
        return self.metadata.output_vsize

    def estimate_input_vsize(self) -> int:
        return self.metadata.input_vsize

    @classmethod
    def smallest_output_vsize(cls) -> int:
        """Vsize of the cheapest output any script kind can produce."""
        return min(script_type.estimate_output_vsize() for script_type in cls)

    @classmethod
    def largest_input_vsize(cls) -> int:
        """Vsize of the most expensive input any script kind can produce."""
        return max(script_type.estimate_input_vsize() for script_type in cls)


_SCRIPT_METADATA: dict[ScriptType, ScriptMetadata] = {
    ScriptType.P2WPKH: ScriptMetadata(P2WPKH_OUTPUT_VSIZE, P2WPKH_INPUT_VSIZE),
    ScriptType.TAPROOT: ScriptMetadata(TAPROOT_OUTPUT_VSIZE, TAPROOT_INPUT_VSIZE),
}


class FeeRate:
    """
    Bitcoin fee rate, stored as satoshis per 1000 vbytes.

    Fees are rounded up to the next satoshi so an estimate never underpays.
    """

    __slots__ = ("sats_per_kvb",)

    def __init__(self, sats_per_kvb: int):
        if sats_per_kvb < 0:
            raise ValueError(f"Fee rate must be non-negative, got {sats_per_kvb} sat/kvB")
        self.sats_per_kvb = int(sats_per_kvb)

    @classmethod
    def from_sat_per_vbyte(cls, sat_per_vbyte: float | int | str | Decimal) -> FeeRate:
        sats_per_kvb = Decimal(str(sat_per_vbyte)) * 1000
        return cls(int(sats_per_kvb.to_integral_value(rounding=ROUND_CEILING)))

    @property
    def sat_per_vbyte(self) -> Decimal:
        return Decimal(self.sats_per_kvb) / 1000

    def fee(self, vsize: int) -> int:
        """Fee in satoshis for the given virtual size."""
        if vsize < 0:
            raise ValueError(f"Virtual size must be non-negative, got {vsize}")
        return -(-self.sats_per_kvb * vsize // 1000)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeeRate):
            return NotImplemented
        return self.sats_per_kvb == other.sats_per_kvb

    def __hash__(self) -> int:
        return hash(self.sats_per_kvb)

    def __repr__(self) -> str:
        return f"FeeRate({self.sat_per_vbyte} sat/vB)"
