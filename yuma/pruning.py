"""
Pruning controller
==================

Scores neurons for eviction and picks the victim when a registration needs a
slot in a full registry.

Score
-----
    score(i) = incentive(i) // incentivePruningDenominator
             + stake_share(i) // stakePruningDenominator

with stake_share the fixed-point share of total registered stake. A neuron
holding less than `stakePruningMin` scores 0 whatever its incentive, so it is
always among the first eligible.

Selection
---------
- Neurons within `immunityPeriod` blocks of registration are never selected.
- Lowest score first; ties go to the earliest registration block (oldest
  evicted first), then the lowest UID.
- No eligible neuron → None. The registration flow turns that into
  CapacityExceeded when the registry is full.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .engine import ConsensusOutput
from .logging import get_logger
from .math import ratio
from .params import DEFAULT_PARAMS, HyperParams
from .registry import Neuron, Registry

log = get_logger(__name__)


def pruning_score(
    neuron: Neuron,
    incentive: int,
    total_stake: int,
    params: HyperParams = DEFAULT_PARAMS,
) -> int:
    if neuron.stake < params.stake_pruning_min:
        return 0
    return (
        incentive // params.incentive_pruning_denominator
        + ratio(neuron.stake, total_stake) // params.stake_pruning_denominator
    )


def score_neurons(
    registry: Registry,
    output: ConsensusOutput,
    params: HyperParams = DEFAULT_PARAMS,
) -> Dict[int, int]:
    """Pruning score for every registered neuron."""
    total_stake = registry.total_stake()
    return {
        n.uid: pruning_score(n, output.incentive.get(n.uid, 0), total_stake, params)
        for n in registry
    }


def apply_pruning_scores(
    registry: Registry,
    output: ConsensusOutput,
    params: HyperParams = DEFAULT_PARAMS,
) -> Registry:
    """Write this epoch's pruning scores into the registry snapshot."""
    return registry.with_pruning_scores(score_neurons(registry, output, params))


def _order_key(neuron: Neuron, score: int) -> Tuple[int, int, int]:
    return (score, neuron.registration_block, neuron.uid)


def eviction_order(
    registry: Registry,
    output: ConsensusOutput,
    params: HyperParams = DEFAULT_PARAMS,
    *,
    block: Optional[int] = None,
) -> List[int]:
    """Eligible (non-immune) UIDs, most prunable first."""
    at = output.block if block is None else block
    scores = score_neurons(registry, output, params)
    eligible = [n for n in registry if not n.is_immune(at, params.immunity_period)]
    eligible.sort(key=lambda n: _order_key(n, scores[n.uid]))
    return [n.uid for n in eligible]


def prune(
    registry: Registry,
    consensus_output: ConsensusOutput,
    params: HyperParams = DEFAULT_PARAMS,
    *,
    block: Optional[int] = None,
) -> Optional[int]:
    """
    UID to evict, or None when every neuron is immune. `block` defaults to
    the epoch block of `consensus_output`.
    """
    order = eviction_order(registry, consensus_output, params, block=block)
    if not order:
        log.info("no neuron eligible for pruning", extra={"neurons": len(registry)})
        return None
    victim = order[0]
    log.info("pruning candidate selected", extra={"uid": victim})
    return victim


def select_stale(
    registry: Registry,
    output: ConsensusOutput,
    params: HyperParams = DEFAULT_PARAMS,
    *,
    block: Optional[int] = None,
) -> List[int]:
    """
    Periodic sweep: non-immune neurons that are inactive beyond
    `activityCutoff`, hold less than `stakePruningMin` and earn no incentive.
    Returned in eviction order.
    """
    at = output.block if block is None else block
    stale = {
        n.uid
        for n in registry
        if not n.is_immune(at, params.immunity_period)
        and not n.is_active(at, params.activity_cutoff)
        and n.stake < params.stake_pruning_min
        and output.incentive.get(n.uid, 0) == 0
    }
    return [u for u in eviction_order(registry, output, params, block=at) if u in stale]


__all__ = [
    "pruning_score",
    "score_neurons",
    "apply_pruning_scores",
    "eviction_order",
    "prune",
    "select_stale",
]
