"""
Emission distribution.

Splits an integer amount among neurons in proportion to their epoch
dividends using largest-remainder rounding, so the parts always sum exactly
to `amount` (when any dividend is non-zero). Remainder ties go to the lowest
UID. Integer-only and deterministic.
"""

from __future__ import annotations

from typing import Dict, Mapping

from .engine import ConsensusOutput


def split_proportional(amount: int, weights: Mapping[int, int]) -> Dict[int, int]:
    """Largest-remainder split of `amount` by non-negative integer weights."""
    if amount < 0:
        raise ValueError("amount must be non-negative")
    keys = sorted(weights)
    denom = sum(weights[k] for k in keys)
    if denom <= 0 or amount == 0:
        return {k: 0 for k in keys}

    parts: Dict[int, int] = {}
    remainders = []
    for k in keys:
        q, r = divmod(amount * weights[k], denom)
        parts[k] = q
        remainders.append((-r, k))
    leftover = amount - sum(parts.values())
    for _, k in sorted(remainders)[:leftover]:
        parts[k] += 1
    return parts


def distribute_emission(output: ConsensusOutput, amount: int) -> Dict[int, int]:
    """Per-UID emission for an epoch, by dividend share."""
    return split_proportional(amount, output.dividend)


__all__ = ["split_proportional", "distribute_emission"]
