"""
Yuma fixed-point scales and shared aliases.

Scaling conventions
-------------------
We avoid floats in consensus-critical code. Every real-valued quantity
(weights, bonds, rank, trust, consensus, incentive, dividend, pruning score)
is a scaled integer with

    ONE = 10**18   (fixed-point 1.0)

Stake and emission are plain non-negative integers in ledger units.

Keep this module import-light.
"""

from __future__ import annotations

from typing import Dict

# -------------------------
# Fixed-point / scaled ints
# -------------------------

ONE: int = 10**18
PPM_SCALE: int = 1_000_000  # parts-per-million (bondsMovingAverage)

# Upper bound of a u64 difficulty register.
U64_MAX: int = (1 << 64) - 1

# Sparse vector over UIDs: {uid: value}
SparseRow = Dict[int, int]


__all__ = [
    "ONE",
    "PPM_SCALE",
    "U64_MAX",
    "SparseRow",
]
