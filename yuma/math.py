"""
Deterministic fixed-point numerics for the epoch engine.

- Fixed-point values are Python ints scaled by ONE (10**18).
- Products and quotients round toward zero (floor for the non-negative values
  the engine works with). Sums are exact, so accumulation order never matters.
- The logistic used for outlier attenuation is evaluated with `decimal` at a
  fixed precision and ROUND_HALF_EVEN, then quantised back to fixed-point.
  We avoid platform-dependent libm entirely.

Reference:
  - weights, bonds, rank, trust, consensus, incentive, dividend: [0, ONE]
  - stake: plain integer ledger units, converted to shares with `ratio()`.
"""

from __future__ import annotations

from decimal import Decimal, getcontext, localcontext, ROUND_HALF_EVEN
from typing import Dict, Mapping

from .types import ONE

# -------------------------
# Decimal precision
# -------------------------

# 60 digits leaves > 40 guard digits past the 18-digit fixed-point scale.
DEC_PRECISION: int = 60
DEC_ROUNDING = ROUND_HALF_EVEN

_ONE_D = Decimal(ONE)


def _dec_ctx():
    """Return a local decimal context with fixed precision & rounding."""
    ctx = getcontext().copy()
    ctx.prec = DEC_PRECISION
    ctx.rounding = DEC_ROUNDING
    return ctx


# -------------------------
# Helpers
# -------------------------

def clamp(value: int, lo: int, hi: int) -> int:
    """Clamp integer `value` to [lo, hi]."""
    return hi if value > hi else lo if value < lo else value


def fmul(a: int, b: int) -> int:
    """Fixed-point product a*b/ONE, truncated."""
    p = a * b
    return p // ONE if p >= 0 else -((-p) // ONE)


def fdiv(a: int, b: int) -> int:
    """Fixed-point quotient a*ONE/b, truncated. `b` must be non-zero."""
    if b == 0:
        raise ZeroDivisionError("fixed-point division by zero")
    n = a * ONE
    if (n >= 0) == (b > 0):
        return abs(n) // abs(b)
    return -(abs(n) // abs(b))


def ratio(numerator: int, denominator: int) -> int:
    """
    Fixed-point share numerator/denominator for plain integers (e.g. stake).
    Returns 0 when the denominator is 0.
    """
    if denominator == 0:
        return 0
    return fdiv(numerator, denominator)


def normalize(values: Mapping[int, int]) -> Dict[int, int]:
    """
    Scale a non-negative sparse vector so its entries sum to ONE (up to
    truncation, at most len(values) units short). All-zero input maps to
    all-zero output with the same keys.
    """
    total = sum(values.values())
    if total <= 0:
        return {k: 0 for k in values}
    return {k: (v * ONE) // total for k, v in values.items()}


def pow_fixed(base: int, exponent: int) -> int:
    """
    base**exponent in fixed-point by square-and-multiply, truncating after
    every product. `base` in [0, ONE], `exponent` >= 0.
    """
    if exponent < 0:
        raise ValueError("pow_fixed expects a non-negative exponent")
    result = ONE
    b = base
    e = exponent
    while e:
        if e & 1:
            result = fmul(result, b)
        e >>= 1
        if e:
            b = fmul(b, b)
    return result


# -------------------------
# Logistic (Decimal)
# -------------------------

def to_decimal(x: int) -> Decimal:
    """Fixed-point int → Decimal real value."""
    with localcontext(_dec_ctx()):
        return Decimal(x) / _ONE_D


def from_decimal(d: Decimal) -> int:
    """Decimal real value → fixed-point int (ROUND_HALF_EVEN)."""
    with localcontext(_dec_ctx()):
        return int((d * _ONE_D).to_integral_value(rounding=DEC_ROUNDING))


def sigmoid_fixed(x: int) -> int:
    """
    Logistic σ(x) = 1 / (1 + e^(-x)) for a fixed-point argument, returned in
    fixed-point within [0, ONE].
    """
    with localcontext(_dec_ctx()) as ctx:
        xd = Decimal(x) / _ONE_D
        s = Decimal(1) / (Decimal(1) + ctx.exp(-xd))
        return clamp(int((s * _ONE_D).to_integral_value(rounding=DEC_ROUNDING)), 0, ONE)


def outlier_attenuation(excess: int, rho: int) -> int:
    """
    Attenuation factor 2·σ(−rho·excess) for a weight that exceeds the majority
    weight by `excess` (fixed-point, >= 0). Equals ONE at excess 0 and decays
    toward 0 with steepness `rho`.
    """
    if excess <= 0:
        return ONE
    return clamp(2 * sigmoid_fixed(-rho * excess), 0, ONE)


__all__ = [
    "DEC_PRECISION",
    "clamp",
    "fmul",
    "fdiv",
    "ratio",
    "normalize",
    "pow_fixed",
    "to_decimal",
    "from_decimal",
    "sigmoid_fixed",
    "outlier_attenuation",
]
