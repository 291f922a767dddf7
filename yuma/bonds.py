"""
Bonds ledger
============

Smoothed (EMA) bond matrix between neuron pairs. A bond b[src][dst] in
[0, ONE] measures how consistently `src` has backed `dst` with weight that
survived consensus clipping. Bonds drive the dividend channel.

EMA rule
--------
`bondsMovingAverage` is a ppm *retention* factor r (900_000 → 0.9): the share
of the previous bond kept per epoch. With α = 1 − r and a source last counted
m epochs ago:

    α_eff = 1 − r^m
    b'    = b · (1 − α_eff) + realized · α_eff

so a source that skipped epochs blends proportionally more of the new value.
With b, realized ∈ [0, ONE] and truncating products the result stays in
[0, ONE]; we clamp anyway.

The matrix is sparse and immutable: zero bonds are not stored and every
update returns a new `BondMatrix`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Mapping, Optional

from .math import clamp, fmul, pow_fixed
from .types import ONE, PPM_SCALE


# ------------------------------- EMA helpers --------------------------------

def retention(bonds_moving_average: int) -> int:
    """ppm retention → fixed-point."""
    return (clamp(bonds_moving_average, 0, PPM_SCALE) * ONE) // PPM_SCALE


def effective_alpha(bonds_moving_average: int, epochs: int) -> int:
    """α_eff = 1 − r^m in fixed-point, for m >= 1 elapsed epochs."""
    m = max(1, int(epochs))
    return ONE - pow_fixed(retention(bonds_moving_average), m)


def ema(bond: int, realized: int, alpha: int) -> int:
    """One EMA step: bond·(1−α) + realized·α, clamped to [0, ONE]."""
    a = clamp(alpha, 0, ONE)
    return clamp(fmul(bond, ONE - a) + fmul(realized, a), 0, ONE)


# -------------------------------- Container ---------------------------------

@dataclass(frozen=True)
class BondMatrix:
    rows: Mapping[int, Mapping[int, int]] = field(default_factory=dict)
    # Block of each source's last counted epoch.
    last_epoch: Mapping[int, int] = field(default_factory=dict)

    def bond(self, src: int, dst: int) -> int:
        return self.rows.get(src, {}).get(dst, 0)

    def row(self, src: int) -> Mapping[int, int]:
        return self.rows.get(src, {})

    def last_counted(self, src: int) -> Optional[int]:
        return self.last_epoch.get(src)

    def nnz(self) -> int:
        return sum(len(r) for r in self.rows.values())

    def update_row(
        self,
        src: int,
        realized: Mapping[int, int],
        alpha: int,
        block: int,
    ) -> "BondMatrix":
        """
        Blend every bond of `src` toward `realized` (targets missing from
        `realized` move toward 0) and mark `src` as counted at `block`.
        """
        prev = self.rows.get(src, {})
        new_row: Dict[int, int] = {}
        for dst in sorted(set(prev) | set(realized)):
            b = ema(prev.get(dst, 0), realized.get(dst, 0), alpha)
            if b > 0:
                new_row[dst] = b
        rows = dict(self.rows)
        if new_row:
            rows[src] = new_row
        else:
            rows.pop(src, None)
        last = dict(self.last_epoch)
        last[src] = block
        return BondMatrix(rows=rows, last_epoch=last)

    def restricted_to(self, uids: AbstractSet[int]) -> "BondMatrix":
        """Drop rows and columns of UIDs that are no longer registered."""
        rows: Dict[int, Mapping[int, int]] = {}
        for src, row in self.rows.items():
            if src not in uids:
                continue
            kept = {dst: b for dst, b in row.items() if dst in uids}
            if kept:
                rows[src] = kept
        last = {src: blk for src, blk in self.last_epoch.items() if src in uids}
        return BondMatrix(rows=rows, last_epoch=last)

    def clear(self, uid: int) -> "BondMatrix":
        """Forget all bonds held by or in `uid` (UID changes occupant)."""
        rows: Dict[int, Mapping[int, int]] = {}
        for src, row in self.rows.items():
            if src == uid:
                continue
            kept = {dst: b for dst, b in row.items() if dst != uid}
            if kept:
                rows[src] = kept
        last = {src: blk for src, blk in self.last_epoch.items() if src != uid}
        return BondMatrix(rows=rows, last_epoch=last)

    def reset(self) -> "BondMatrix":
        """Empty matrix (explicit ledger-driven reset only)."""
        return BondMatrix()


__all__ = ["BondMatrix", "retention", "effective_alpha", "ema"]
