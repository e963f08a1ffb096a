"""WAD fixed-point settlement math mirroring the Tribunal contract.

All values are uint256 integers. ``scaling_factor`` is a WAD (1e18 = 1.0):
above WAD the settlement amount grows with the priority fee paid above the
baseline (exact-in), at WAD nothing scales, below WAD (exact-out) there is no
supported formula yet.
"""

from __future__ import annotations

from fillanthropist.core.errors import UnimplementedScaling
from fillanthropist.core.utils import UINT256_MAX

WAD = 10**18


def _check_uint(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{name} must be within the uint256 range, got {value}")
    return value


def ceil_div(numerator: int, denominator: int) -> int:
    """Integer division rounding towards positive infinity."""
    if denominator <= 0:
        raise ZeroDivisionError("ceil_div requires a positive denominator")
    return -(-numerator // denominator)


def mul_wad_up(a: int, b: int) -> int:
    """``a * b / WAD`` rounded up, as Solady's ``mulWadUp``."""
    return ceil_div(a * b, WAD)


def derive_settlement_amount(
    priority_fee: int,
    minimum_amount: int,
    baseline_priority_fee: int,
    scaling_factor: int,
) -> int:
    """Return the amount a filler must settle when paying ``priority_fee``.

    Rounds up: the result is what the filler has to supply, so rounding down
    would under-collateralize the fill.
    """
    _check_uint(priority_fee, "priority_fee")
    _check_uint(minimum_amount, "minimum_amount")
    _check_uint(baseline_priority_fee, "baseline_priority_fee")
    _check_uint(scaling_factor, "scaling_factor")

    excess = max(0, priority_fee - baseline_priority_fee)
    if excess == 0 or scaling_factor == WAD:
        return minimum_amount

    if scaling_factor > WAD:
        multiplier = WAD + (scaling_factor - WAD) * excess
        return mul_wad_up(minimum_amount, multiplier)

    raise UnimplementedScaling(scaling_factor)


def derive_priority_fee(
    desired_settlement: int,
    minimum_amount: int,
    baseline_priority_fee: int,
    scaling_factor: int,
) -> int:
    """Return the priority fee needed to reach ``desired_settlement``.

    Inverse of :func:`derive_settlement_amount` for exact-in scaling. The fee
    above baseline is rounded up, so feeding the result back into
    :func:`derive_settlement_amount` yields a settlement that meets or
    exceeds ``desired_settlement`` rather than matching it exactly.
    """
    _check_uint(desired_settlement, "desired_settlement")
    _check_uint(minimum_amount, "minimum_amount")
    _check_uint(baseline_priority_fee, "baseline_priority_fee")
    _check_uint(scaling_factor, "scaling_factor")

    if desired_settlement == minimum_amount or scaling_factor == WAD:
        return baseline_priority_fee

    if scaling_factor > WAD:
        if desired_settlement < minimum_amount:
            return baseline_priority_fee
        if minimum_amount == 0:
            raise ValueError("a zero minimum_amount cannot scale up to a positive settlement")
        remainder = desired_settlement * WAD - minimum_amount * WAD
        excess = ceil_div(remainder, minimum_amount * (scaling_factor - WAD))
        return baseline_priority_fee + excess

    raise UnimplementedScaling(scaling_factor)


__all__ = [
    "WAD",
    "ceil_div",
    "derive_priority_fee",
    "derive_settlement_amount",
    "mul_wad_up",
]
