"""
Epoch consensus engine (Yuma)
=============================

Converts stake + weights + bonds into per-neuron rank, trust, consensus,
incentive and dividend, and returns the updated bond matrix. `run_epoch` is a
pure function of its inputs: independent executors fed the same snapshot
produce byte-identical output (compare `ConsensusOutput.digest()`).

Pipeline
--------
1. Validity filter
     active(i)  ⇔  block − last_update_block(i) ≤ activityCutoff
     row(i)     =  normalised weights of an active neuron, self-weights and
                   unregistered targets dropped; fewer than
                   min(minAllowedWeights, n_active − 1) targets → zero row.
2. Stake shares & rank
     s(i)       =  stake(i) / Σ_active stake
     rank(j)    ∝  Σ_i s(i)·w(i,j)
3. Majority clipping (kappa, rho)
     c(j)       =  weight at which cumulative stake, walking entries by weight
                   descending (lowest UID first on ties), reaches 1/kappa
     w'(i,j)    =  w                            if w ≤ c
                   c + (w − c)·2σ(−rho·(w − c))  otherwise
4. Max/min ratio clamp
     w'(i,j)    ≤  maxAllowedMaxMinRatio · min_{k: w'(k,j)>0} w'(k,j)
5. Trust & consensus
     trust(j)   =  Σ_i s(i)·[w(i,j) > 0]                 (fraction of stake)
     cons(j)    ∝  Σ_i s(i)·w'(i,j)
6. Bonds        b'(i,j) = EMA(b(i,j), s(i)·w'(i,j), α_eff(i))
                   for valid rows of staked sources only
7. Incentive    inc(j) ∝ cons(j)·trust(j)
8. Dividend     div(i) ∝ Σ_j b'(i,j)·inc(j)     for active, staked i only

All quantities are fixed-point integers (ONE = 10**18); sums are exact so
the evaluation order never changes the result. `∝` means normalised to ONE
(an all-zero vector stays zero).
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Tuple

from .bonds import BondMatrix, effective_alpha
from .errors import InvalidWeightVector, ZeroStakeEpoch
from .logging import get_logger
from .math import fmul, normalize, outlier_attenuation, ratio
from .params import DEFAULT_PARAMS, HyperParams
from .registry import Registry
from .types import SparseRow
from .version import ENGINE_REVISION
from .weights import WeightMatrix, min_required_targets
from .window import epochs_elapsed

log = get_logger(__name__)

Rows = Dict[int, SparseRow]
Column = List[Tuple[int, int]]  # [(src, weight)] ascending src


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConsensusOutput:
    """
    Per-neuron epoch scores. Every vector has an entry for every registered
    UID (zeros included) so outputs from different executors line up.
    """
    block: int
    uids: Tuple[int, ...]
    active: FrozenSet[int] = frozenset()
    rank: Mapping[int, int] = field(default_factory=dict)
    trust: Mapping[int, int] = field(default_factory=dict)
    consensus: Mapping[int, int] = field(default_factory=dict)
    incentive: Mapping[int, int] = field(default_factory=dict)
    dividend: Mapping[int, int] = field(default_factory=dict)

    @classmethod
    def zeros(cls, block: int, uids: Tuple[int, ...]) -> "ConsensusOutput":
        z = {u: 0 for u in uids}
        return cls(
            block=block,
            uids=uids,
            active=frozenset(),
            rank=dict(z),
            trust=dict(z),
            consensus=dict(z),
            incentive=dict(z),
            dividend=dict(z),
        )

    def is_zero(self) -> bool:
        return not any(self.incentive.values()) and not any(self.dividend.values())

    def to_canonical_json(self) -> bytes:
        """Sorted keys, integers only, UIDs as decimal strings."""
        def vec(m: Mapping[int, int]) -> Dict[str, int]:
            return {str(u): int(m.get(u, 0)) for u in self.uids}

        payload = {
            "revision": ENGINE_REVISION,
            "block": self.block,
            "uids": list(self.uids),
            "active": sorted(self.active),
            "rank": vec(self.rank),
            "trust": vec(self.trust),
            "consensus": vec(self.consensus),
            "incentive": vec(self.incentive),
            "dividend": vec(self.dividend),
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")

    def digest(self) -> bytes:
        return hashlib.sha3_256(self.to_canonical_json()).digest()

    def hex_digest(self) -> str:
        return "0x" + self.digest().hex()


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------

def active_uids(registry: Registry, block: int, activity_cutoff: int) -> FrozenSet[int]:
    return frozenset(n.uid for n in registry if n.is_active(block, activity_cutoff))


def stake_shares(registry: Registry, active: FrozenSet[int], block: int) -> Dict[int, int]:
    """Fixed-point share of active stake per active UID. Raises ZeroStakeEpoch."""
    stakes = {u: registry.neurons[u].stake for u in sorted(active)}
    total_active = sum(stakes.values())
    if total_active == 0:
        raise ZeroStakeEpoch(block=block, active=len(active))
    return {u: ratio(s, total_active) for u, s in stakes.items()}


def valid_rows(
    weights: WeightMatrix,
    registry: Registry,
    active: FrozenSet[int],
    min_allowed_weights: int,
) -> Rows:
    """Normalised rows of active neurons; invalid rows are zeroed (omitted)."""
    required = min_required_targets(min_allowed_weights, len(active))
    rows: Rows = {}
    for uid in sorted(active):
        if weights.row(uid) is None:
            continue
        try:
            rows[uid] = weights.consensus_row(uid, registry, required)
        except InvalidWeightVector as e:
            log.debug("weight row zeroed", extra={"uid": uid, "reason": e.context.get("reason")})
    return rows


def columns(rows: Mapping[int, Mapping[int, int]]) -> Dict[int, Column]:
    """Transpose sparse rows into per-target columns, ascending src order."""
    cols: Dict[int, Column] = {}
    for src in sorted(rows):
        for dst, w in rows[src].items():
            if w > 0:
                cols.setdefault(dst, []).append((src, w))
    return cols


def stake_weighted(
    cols: Mapping[int, Column],
    shares: Mapping[int, int],
    uids: Tuple[int, ...],
) -> Dict[int, int]:
    """Σ_i s(i)·w(i,j) per target j (not normalised)."""
    out = {u: 0 for u in uids}
    for dst, col in cols.items():
        out[dst] = sum(fmul(shares.get(src, 0), w) for src, w in col)
    return out


def majority_weight(col: Column, shares: Mapping[int, int], threshold: int) -> int:
    """
    Weight at which cumulative supporting stake reaches `threshold`, walking
    entries by weight descending then src ascending. 0 if never reached.
    """
    if threshold <= 0:
        return max((w for _, w in col), default=0)
    cumulative = 0
    for src, w in sorted(col, key=lambda e: (-e[1], e[0])):
        cumulative += shares.get(src, 0)
        if cumulative >= threshold:
            return w
    return 0


def clip_column(col: Column, majority: int, rho: int) -> Column:
    """Attenuate weights above the majority weight with the rho logistic."""
    out: Column = []
    for src, w in col:
        if w > majority:
            w = majority + fmul(w - majority, outlier_attenuation(w - majority, rho))
        out.append((src, w))
    return out


def clamp_ratio(col: Column, max_ratio: int) -> Column:
    """Clamp every weight above max_ratio × (smallest non-zero weight)."""
    nonzero = [w for _, w in col if w > 0]
    if not nonzero:
        return col
    cap = min(nonzero) * max_ratio
    return [(src, min(w, cap)) for src, w in col]


def trust_vector(
    cols: Mapping[int, Column],
    shares: Mapping[int, int],
    uids: Tuple[int, ...],
) -> Dict[int, int]:
    """Fraction of active stake that set any non-zero weight on each target."""
    out = {u: 0 for u in uids}
    for dst, col in cols.items():
        out[dst] = sum(shares.get(src, 0) for src, w in col if w > 0)
    return out


def update_bonds(
    bonds: BondMatrix,
    clipped_rows: Mapping[int, Mapping[int, int]],
    shares: Mapping[int, int],
    block: int,
    params: HyperParams,
) -> BondMatrix:
    """
    EMA every valid source's bonds toward its realized row, the clipped
    weights scaled by the source's stake share. Sources without stake buy no
    bonds and are not counted.
    """
    out = bonds
    for src in sorted(clipped_rows):
        share = shares.get(src, 0)
        if share == 0:
            continue
        realized = {dst: fmul(share, w) for dst, w in clipped_rows[src].items()}
        m = epochs_elapsed(block, bonds.last_counted(src), params.blocks_per_step)
        alpha = effective_alpha(params.bonds_moving_average, m)
        out = out.update_row(src, realized, alpha, block)
    return out


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def run_epoch(
    block_height: int,
    registry: Registry,
    weight_matrix: WeightMatrix,
    bond_matrix: BondMatrix,
    params: HyperParams = DEFAULT_PARAMS,
) -> Tuple[ConsensusOutput, BondMatrix]:
    """
    Run one epoch over an immutable snapshot.

    Returns the epoch's ConsensusOutput and the updated BondMatrix. A
    zero-stake epoch is recovered locally: all-zero output, bonds unchanged
    (restricted to registered UIDs).
    """
    uids = registry.uids()
    bonds_in = bond_matrix.restricted_to(frozenset(uids))
    active = active_uids(registry, block_height, params.activity_cutoff)

    try:
        shares = stake_shares(registry, active, block_height)
    except ZeroStakeEpoch as e:
        log.warning("zero-stake epoch; emitting zero output", extra={"block": block_height, **e.context})
        return ConsensusOutput.zeros(block_height, uids), bonds_in

    rows = valid_rows(weight_matrix, registry, active, params.min_allowed_weights)
    cols = columns(rows)

    rank = normalize(stake_weighted(cols, shares, uids))
    trust = trust_vector(cols, shares, uids)

    threshold = -(-sum(shares.values()) // params.kappa)
    clipped_cols: Dict[int, Column] = {}
    for dst in sorted(cols):
        col = clip_column(cols[dst], majority_weight(cols[dst], shares, threshold), params.rho)
        clipped_cols[dst] = clamp_ratio(col, params.max_allowed_max_min_ratio)

    consensus = normalize(stake_weighted(clipped_cols, shares, uids))
    incentive = normalize({u: fmul(consensus[u], trust[u]) for u in uids})

    clipped_rows: Rows = {src: {} for src in rows}
    for dst, col in clipped_cols.items():
        for src, w in col:
            clipped_rows[src][dst] = w
    bonds_out = update_bonds(bonds_in, clipped_rows, shares, block_height, params)

    raw_div = {u: 0 for u in uids}
    for src in sorted(active):
        if shares.get(src, 0) == 0:
            continue
        raw_div[src] = sum(fmul(b, incentive.get(dst, 0)) for dst, b in bonds_out.row(src).items())
    dividend = normalize(raw_div)

    out = ConsensusOutput(
        block=block_height,
        uids=uids,
        active=active,
        rank=rank,
        trust=trust,
        consensus=consensus,
        incentive=incentive,
        dividend=dividend,
    )
    log.info(
        "epoch complete",
        extra={
            "block": block_height,
            "neurons": len(uids),
            "active": len(active),
            "valid_rows": len(rows),
            "bonds": bonds_out.nnz(),
            "digest": out.hex_digest()[:18],
        },
    )
    return out, bonds_out


__all__ = [
    "ConsensusOutput",
    "run_epoch",
    "active_uids",
    "stake_shares",
    "valid_rows",
    "columns",
    "stake_weighted",
    "majority_weight",
    "clip_column",
    "clamp_ratio",
    "trust_vector",
    "update_bonds",
]
