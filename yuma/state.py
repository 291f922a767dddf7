"""
Network state & block driver
============================

Glue between the ledger and the pure components. A `NetworkState` is one
immutable snapshot of everything the core needs (registry, weights, bonds,
difficulty, last epoch output). Every operation here takes a snapshot and
returns a new one; nothing is mutated in place.

Operations
----------
- register(state, hotkey, block, params, nonce=..., block_hash=...)
- set_weights(state, uid, weights, block)
- add_stake(state, uid, amount, block)
- reset_bonds(state)
- on_block(state, block, params)      difficulty cadence + epoch cadence

Concurrency
-----------
`StateCell` holds the current snapshot for a single writer and any number of
readers. Writers compute the next snapshot off to the side and swap it in
under a lock; readers always see a complete pre- or post-update snapshot.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, Optional, Tuple

from .bonds import BondMatrix
from .difficulty import (DifficultyState, adjust_difficulty, compute_seal,
                         init_state, interval_stats, record_registration,
                         seal_meets_difficulty)
from .emission import distribute_emission
from .engine import ConsensusOutput, run_epoch
from .errors import CapacityExceeded, RegistrationError
from .logging import get_logger, trace_scope
from .params import DEFAULT_PARAMS, HyperParams
from .pruning import apply_pruning_scores, prune, select_stale
from .registry import Neuron, Registry
from .weights import WeightMatrix, check_submission
from .window import is_epoch_boundary

log = get_logger(__name__)


@dataclass(frozen=True)
class NetworkState:
    registry: Registry
    weights: WeightMatrix = field(default_factory=WeightMatrix)
    bonds: BondMatrix = field(default_factory=BondMatrix)
    difficulty: DifficultyState = field(default_factory=lambda: init_state(DEFAULT_PARAMS))
    last_output: Optional[ConsensusOutput] = None
    block: int = 0
    # Per-UID emission credited by the last epoch and the running totals.
    last_emission: Mapping[int, int] = field(default_factory=dict)
    total_emission: int = 0
    total_issuance: int = 0


def genesis(params: HyperParams = DEFAULT_PARAMS, *, block: int = 0) -> NetworkState:
    return NetworkState(
        registry=Registry(capacity=params.max_allowed_uids),
        difficulty=init_state(params, block=block),
        block=block,
    )


# ---------------------------------------------------------------------------
# Ledger-driven operations
# ---------------------------------------------------------------------------

def _evict(state: NetworkState, uid: int) -> NetworkState:
    return replace(
        state,
        registry=state.registry.remove(uid),
        weights=state.weights.clear(uid),
        bonds=state.bonds.clear(uid),
    )


def register(
    state: NetworkState,
    hotkey: str,
    block: int,
    params: HyperParams = DEFAULT_PARAMS,
    *,
    nonce: int,
    block_hash: bytes = b"",
    stake: int = 0,
) -> Tuple[NetworkState, int, Optional[int]]:
    """
    Admit a new neuron. Returns (new_state, uid, evicted_uid_or_None).

    Raises RegistrationError for a duplicate hotkey or a seal below the
    current difficulty, and CapacityExceeded when the registry is full and
    every neuron is immune.
    """
    if state.registry.by_hotkey(hotkey) is not None:
        raise RegistrationError("hotkey already registered", hotkey=hotkey, reason="duplicate-hotkey")
    seal = compute_seal(block_hash, hotkey, nonce)
    if not seal_meets_difficulty(seal, state.difficulty.current_difficulty):
        raise RegistrationError(
            "seal does not meet registration difficulty",
            hotkey=hotkey,
            reason="bad-seal",
            context={"difficulty": state.difficulty.current_difficulty},
        )

    evicted: Optional[int] = None
    if state.registry.is_full:
        output = state.last_output or ConsensusOutput.zeros(block, state.registry.uids())
        evicted = prune(state.registry, output, params, block=block)
        if evicted is None:
            raise CapacityExceeded(capacity=state.registry.capacity, block=block)
        state = _evict(state, evicted)
        uid = evicted
    else:
        uid = state.registry.next_free_uid()
        if uid is None:
            raise CapacityExceeded(capacity=state.registry.capacity, block=block)
        # A free slot may still carry matrix entries of a previous occupant.
        state = replace(state, weights=state.weights.clear(uid), bonds=state.bonds.clear(uid))

    neuron = Neuron(
        uid=uid,
        hotkey=hotkey,
        stake=stake,
        registration_block=block,
        last_update_block=block,
    )
    state = replace(
        state,
        registry=state.registry.add(neuron),
        difficulty=record_registration(state.difficulty),
    )
    log.info("neuron registered", extra={"uid": uid, "hotkey": hotkey, "evicted": evicted, "block": block})
    return state, uid, evicted


def set_weights(state: NetworkState, uid: int, weights: Mapping[int, int], block: int) -> NetworkState:
    """Record `uid`'s weight vector (replacing its previous one)."""
    clean = check_submission(uid, weights, state.registry)
    return replace(
        state,
        weights=state.weights.submit(uid, clean),
        registry=state.registry.touch(uid, block),
    )


def add_stake(state: NetworkState, uid: int, amount: int, block: int) -> NetworkState:
    """Stake (amount > 0) or unstake (amount < 0, floored at zero)."""
    n = state.registry.require(uid)
    return replace(state, registry=state.registry.set_stake(uid, max(0, n.stake + amount), block))


def reset_bonds(state: NetworkState) -> NetworkState:
    """Ledger-initiated wipe of the shared bond matrix."""
    return replace(state, bonds=state.bonds.reset())


def sweep_stale(state: NetworkState, params: HyperParams = DEFAULT_PARAMS) -> NetworkState:
    """Evict neurons below the survival thresholds after an epoch."""
    if state.last_output is None:
        return state
    for uid in select_stale(state.registry, state.last_output, params, block=state.block):
        state = _evict(state, uid)
        log.info("stale neuron evicted", extra={"uid": uid})
    return state


# ---------------------------------------------------------------------------
# Block driver
# ---------------------------------------------------------------------------

def on_block(state: NetworkState, block: int, params: HyperParams = DEFAULT_PARAMS) -> NetworkState:
    """
    Advance the core to `block`:
    - adjust registration difficulty when an interval has elapsed;
    - on an epoch boundary, run the engine, credit emission by dividend
      (recorded per UID and added to total issuance), write pruning scores
      and sweep stale neurons.
    """
    with trace_scope(block=block):
        difficulty = adjust_difficulty(interval_stats(state.difficulty, block), state.difficulty, params)
        state = replace(state, difficulty=difficulty, block=block)
        if not is_epoch_boundary(block, params.blocks_per_step):
            return state

        output, bonds = run_epoch(block, state.registry, state.weights, state.bonds, params)
        emission = distribute_emission(output, params.block_emission * params.blocks_per_step)
        registry = state.registry.credit(emission)
        registry = apply_pruning_scores(registry, output, params)
        emitted = sum(emission.values())
        state = replace(
            state,
            registry=registry,
            bonds=bonds,
            last_output=output,
            last_emission=emission,
            total_emission=emitted,
            total_issuance=state.total_issuance + emitted,
        )
        return sweep_stale(state, params)


class StateCell:
    """Single-writer holder with atomic snapshot swap."""

    def __init__(self, state: NetworkState) -> None:
        self._state = state
        self._lock = threading.Lock()

    def snapshot(self) -> NetworkState:
        return self._state

    def apply(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run `fn(snapshot, *args, **kwargs)` and swap in the resulting state.
        `fn` may return a NetworkState or a tuple whose first item is one
        (e.g. `register`); the full return value is passed back.
        """
        with self._lock:
            result = fn(self._state, *args, **kwargs)
            new_state = result[0] if isinstance(result, tuple) else result
            if not isinstance(new_state, NetworkState):
                raise TypeError("state transition must return a NetworkState")
            self._state = new_state
            return result


__all__ = [
    "NetworkState",
    "StateCell",
    "genesis",
    "register",
    "set_weights",
    "add_stake",
    "reset_bonds",
    "sweep_stale",
    "on_block",
]
