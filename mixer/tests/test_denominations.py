"""
Tests for the denomination catalog.
"""

from __future__ import annotations

import random

import pytest
from cjcore.fees import FeeRate, ScriptType

from mixer.denominations import PROGRESSIONS, create_denominations, iter_progression


class TestIterProgression:
    """Tests for iter_progression."""

    def test_skips_values_below_minimum(self) -> None:
        """Terms below the minimum are skipped, later terms still come."""
        assert list(iter_progression(lambda i: 2**i, 5, 64)) == [8, 16, 32, 64]

    def test_stops_above_maximum(self) -> None:
        """The walk ends at the first term above the maximum."""
        assert list(iter_progression(lambda i: 10**i, 1, 999)) == [1, 10, 100]

    def test_empty_range(self) -> None:
        """No term falls between two consecutive terms."""
        assert list(iter_progression(lambda i: 10**i, 11, 99)) == []


class TestCreateDenominations:
    """Tests for create_denominations."""

    def test_contains_all_progressions(self, fee_rate: FeeRate) -> None:
        """Every series contributes its in-range terms."""
        catalog = create_denominations(5_000, 1_000_000, fee_rate, False, random.Random(1))
        amounts = {d.amount for d in catalog}

        for expected in (8192, 524288, 6561, 531441, 13122, 354294, 10_000, 1_000_000,
                         20_000, 200_000, 5_000, 500_000):
            assert expected in amounts

    def test_bounds(self, fee_rate: FeeRate) -> None:
        """Every denomination lies within the allowed output range."""
        catalog = create_denominations(5_000, 10_000_000, fee_rate, True, random.Random(7))
        assert catalog
        for denom in catalog:
            assert 5_000 <= denom.amount <= 10_000_000

    def test_unique_amount_and_script_type(self, fee_rate: FeeRate) -> None:
        """No two entries share an amount and a script kind."""
        catalog = create_denominations(1, 10_000_000, fee_rate, True, random.Random(3))
        pairs = [(d.amount, d.script_type) for d in catalog]
        assert len(pairs) == len(set(pairs))

    def test_shared_terms_collapse_without_taproot(self, fee_rate: FeeRate) -> None:
        """A value produced by several series appears once."""
        catalog = create_denominations(1, 100, fee_rate, False, random.Random(0))
        amounts = [d.amount for d in catalog]
        # 2 is 2^1, 3^0 * 2 and 10^0 * 2
        assert amounts.count(2) == 1
        assert amounts.count(1) == 1

    def test_ordered_by_effective_amount_descending(self, fee_rate: FeeRate) -> None:
        """The largest, least fee-heavy denominations come first."""
        catalog = create_denominations(5_000, 50_000_000, fee_rate, True, random.Random(11))
        effective = [d.effective_amount for d in catalog]
        assert effective == sorted(effective, reverse=True)

    def test_no_taproot_means_p2wpkh_only(self, fee_rate: FeeRate) -> None:
        """With taproot disallowed every denomination is P2WPKH."""
        catalog = create_denominations(5_000, 50_000_000, fee_rate, False, random.Random(5))
        assert {d.script_type for d in catalog} == {ScriptType.P2WPKH}

    def test_taproot_allowed_mixes_script_types(self, fee_rate: FeeRate) -> None:
        """The coin flip produces both script kinds over a full catalog."""
        catalog = create_denominations(1_000, 50_000_000, fee_rate, True, random.Random(5))
        assert {d.script_type for d in catalog} == {ScriptType.P2WPKH, ScriptType.TAPROOT}

    def test_priced_at_round_fee_rate(self, fee_rate: FeeRate) -> None:
        """Denominations carry the creation fee of their script kind."""
        catalog = create_denominations(5_000, 1_000_000, fee_rate, True, random.Random(2))
        for denom in catalog:
            assert denom.fee == fee_rate.fee(denom.script_type.estimate_output_vsize())
            assert denom.effective_cost == denom.amount + denom.fee

    def test_same_seed_same_catalog(self, fee_rate: FeeRate) -> None:
        """Script kind draws are reproducible."""
        first = create_denominations(5_000, 50_000_000, fee_rate, True, random.Random(9))
        second = create_denominations(5_000, 50_000_000, fee_rate, True, random.Random(9))
        assert first == second

    def test_six_progressions(self) -> None:
        """Six integer series feed the catalog."""
        assert [term(2) for term in PROGRESSIONS.values()] == [4, 9, 18, 100, 200, 500]

    @pytest.mark.parametrize("minimum,maximum", [(0, 100), (100, 99)])
    def test_invalid_bounds(self, fee_rate: FeeRate, minimum: int, maximum: int) -> None:
        """Non-positive minimum or inverted bounds are rejected."""
        with pytest.raises(ValueError):
            create_denominations(minimum, maximum, fee_rate, False, random.Random(0))
