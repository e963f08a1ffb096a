"""Tests for WAD settlement math."""

from __future__ import annotations

import pytest

from fillanthropist.core.errors import UnimplementedScaling
from fillanthropist.core.settlement import (
    WAD,
    ceil_div,
    derive_priority_fee,
    derive_settlement_amount,
    mul_wad_up,
)

MINIMUM = 95 * 10**16
BASELINE = 100 * 10**9
SCALE = 15 * 10**17


class TestHelpers:
    def test_ceil_div_rounds_up(self) -> None:
        assert ceil_div(7, 2) == 4
        assert ceil_div(6, 2) == 3
        assert ceil_div(0, 5) == 0

    def test_ceil_div_rejects_zero_denominator(self) -> None:
        with pytest.raises(ZeroDivisionError):
            ceil_div(1, 0)

    def test_mul_wad_up(self) -> None:
        assert mul_wad_up(3, WAD // 2) == 2
        assert mul_wad_up(10**18, 2 * WAD) == 2 * 10**18


class TestDeriveSettlementAmount:
    def test_two_wei_above_baseline(self) -> None:
        assert derive_settlement_amount(BASELINE + 2, MINIMUM, BASELINE, SCALE) == 19 * 10**17

    def test_ten_wei_above_baseline(self) -> None:
        # multiplier = 1e18 + 0.5e18 * 10 = 6e18
        assert derive_settlement_amount(BASELINE + 10, MINIMUM, BASELINE, SCALE) == MINIMUM * 6

    def test_neutral_scaling_returns_minimum(self) -> None:
        assert derive_settlement_amount(BASELINE + 10, 95 * 10**18, BASELINE, WAD) == 95 * 10**18

    def test_fee_at_or_below_baseline_returns_minimum(self) -> None:
        assert derive_settlement_amount(BASELINE, MINIMUM, BASELINE, SCALE) == MINIMUM
        assert derive_settlement_amount(BASELINE - 1, MINIMUM, BASELINE, SCALE) == MINIMUM
        assert derive_settlement_amount(0, MINIMUM, BASELINE, SCALE) == MINIMUM

    def test_exact_out_is_unimplemented(self) -> None:
        with pytest.raises(UnimplementedScaling, match="unimplemented"):
            derive_settlement_amount(BASELINE + 1, MINIMUM, BASELINE, 5 * 10**17)

    def test_exact_out_without_excess_returns_minimum(self) -> None:
        assert derive_settlement_amount(BASELINE, MINIMUM, BASELINE, 5 * 10**17) == MINIMUM

    def test_monotonic_in_priority_fee(self) -> None:
        amounts = [derive_settlement_amount(BASELINE + delta, MINIMUM, BASELINE, SCALE) for delta in range(0, 50)]
        assert amounts == sorted(amounts)
        assert all(amount >= MINIMUM for amount in amounts)

    def test_rounds_up(self) -> None:
        # 3 * 1.5 = 4.5 rounds to 5
        assert derive_settlement_amount(BASELINE + 1, 3, BASELINE, SCALE) == 5

    def test_rejects_non_integers(self) -> None:
        with pytest.raises(TypeError):
            derive_settlement_amount(1.5, MINIMUM, BASELINE, SCALE)  # type: ignore[arg-type]
        with pytest.raises(TypeError):
            derive_settlement_amount(True, MINIMUM, BASELINE, SCALE)  # type: ignore[arg-type]

    def test_rejects_negative_values(self) -> None:
        with pytest.raises(ValueError):
            derive_settlement_amount(BASELINE, -1, BASELINE, SCALE)


class TestDerivePriorityFee:
    def test_inverse_of_worked_example(self) -> None:
        assert derive_priority_fee(19 * 10**17, MINIMUM, BASELINE, SCALE) == BASELINE + 2

    def test_minimum_settlement_needs_only_baseline(self) -> None:
        assert derive_priority_fee(MINIMUM, MINIMUM, BASELINE, SCALE) == BASELINE
        assert derive_priority_fee(MINIMUM - 1, MINIMUM, BASELINE, SCALE) == BASELINE

    def test_neutral_scaling_returns_baseline(self) -> None:
        assert derive_priority_fee(2 * MINIMUM, MINIMUM, BASELINE, WAD) == BASELINE

    def test_never_below_baseline(self) -> None:
        for desired in (0, MINIMUM // 2, MINIMUM, MINIMUM * 3):
            assert derive_priority_fee(desired, MINIMUM, BASELINE, SCALE) >= BASELINE

    @pytest.mark.parametrize("desired", [MINIMUM + 1, MINIMUM + 12345, 19 * 10**17, 19 * 10**17 + 1, 10**19 + 7])
    def test_round_trip_meets_desired_settlement(self, desired: int) -> None:
        fee = derive_priority_fee(desired, MINIMUM, BASELINE, SCALE)
        assert derive_settlement_amount(fee, MINIMUM, BASELINE, SCALE) >= desired

    def test_zero_minimum_cannot_scale(self) -> None:
        with pytest.raises(ValueError):
            derive_priority_fee(10, 0, BASELINE, SCALE)

    def test_exact_out_is_unimplemented(self) -> None:
        with pytest.raises(UnimplementedScaling):
            derive_priority_fee(2 * MINIMUM, MINIMUM, BASELINE, 5 * 10**17)
