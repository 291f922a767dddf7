"""
Registration difficulty controller
==================================

Discrete control loop that steers the registration rate toward
`targetRegistrationsPerInterval`:

    state   = {current_difficulty, registrations_this_interval, last_adjustment_block}
    input   = registrations observed over the just-completed interval
    output  = next difficulty
    cadence = every `adjustmentInterval` blocks (one-interval feedback delay)

Rule
----
    observed > target   →  difficulty · 2
    otherwise           →  difficulty // 2

clamped to [minDifficulty, maxDifficulty]. A value under the floor raises
DifficultyUnderflow internally and is clamped; it never reaches the caller.

Registration work
-----------------
A registrant presents a 32-byte seal. It is accepted when

    int(seal, big-endian) · difficulty < 2**256

i.e. the expected number of attempts is `difficulty`. Seals are
sha3-256(block_hash ‖ hotkey ‖ nonce).

All functions are deterministic and side-effect free.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, replace
from typing import Optional

from .errors import DifficultyUnderflow
from .logging import get_logger
from .params import DEFAULT_PARAMS, HyperParams
from .window import interval_due

log = get_logger(__name__)

_SEAL_SPACE: int = 1 << 256


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DifficultyState:
    current_difficulty: int
    registrations_this_interval: int = 0
    last_adjustment_block: int = 0


@dataclass(frozen=True)
class IntervalStats:
    """Observation handed to the controller at an interval boundary."""
    block: int
    registrations: int


def init_state(params: HyperParams = DEFAULT_PARAMS, *, block: int = 0) -> DifficultyState:
    return DifficultyState(
        current_difficulty=params.initial_difficulty,
        registrations_this_interval=0,
        last_adjustment_block=block,
    )


def record_registration(state: DifficultyState) -> DifficultyState:
    return replace(state, registrations_this_interval=state.registrations_this_interval + 1)


def interval_stats(state: DifficultyState, block: int) -> IntervalStats:
    return IntervalStats(block=block, registrations=state.registrations_this_interval)


# ---------------------------------------------------------------------------
# Core API
# ---------------------------------------------------------------------------

def _check_floor(value: int, floor: int) -> int:
    if value < floor:
        raise DifficultyUnderflow(computed=value, floor=floor)
    return value


def next_difficulty(current: int, observed: int, params: HyperParams = DEFAULT_PARAMS) -> int:
    """Double above target, halve otherwise, clamped to [min, max]."""
    if observed > params.target_registrations_per_interval:
        proposed = current * 2
    else:
        proposed = current // 2
    try:
        proposed = _check_floor(proposed, params.min_difficulty)
    except DifficultyUnderflow as e:
        log.debug("difficulty clamped to floor", extra=e.context)
        proposed = e.floor
    return min(proposed, params.max_difficulty)


def adjust_difficulty(
    interval_stats: IntervalStats,
    difficulty_state: DifficultyState,
    params: HyperParams = DEFAULT_PARAMS,
) -> DifficultyState:
    """
    Adjust difficulty when `adjustmentInterval` blocks have elapsed since the
    last adjustment; otherwise return the state unchanged.
    """
    block = interval_stats.block
    if not interval_due(block, difficulty_state.last_adjustment_block, params.adjustment_interval):
        return difficulty_state

    prev = difficulty_state.current_difficulty
    nxt = next_difficulty(prev, interval_stats.registrations, params)
    log.info(
        "difficulty adjusted",
        extra={
            "block": block,
            "registrations": interval_stats.registrations,
            "target": params.target_registrations_per_interval,
            "difficulty_prev": prev,
            "difficulty_next": nxt,
        },
    )
    return DifficultyState(
        current_difficulty=nxt,
        registrations_this_interval=0,
        last_adjustment_block=block,
    )


# ---------------------------------------------------------------------------
# Registration seals
# ---------------------------------------------------------------------------

def compute_seal(block_hash: bytes, hotkey: str, nonce: int) -> bytes:
    h = hashlib.sha3_256()
    h.update(block_hash)
    h.update(hotkey.encode("utf-8"))
    h.update(int(nonce).to_bytes(8, "big"))
    return h.digest()


def seal_meets_difficulty(seal: bytes, difficulty: int) -> bool:
    if len(seal) != 32:
        return False
    return int.from_bytes(seal, "big") * max(1, difficulty) < _SEAL_SPACE


def solve_seal(
    block_hash: bytes,
    hotkey: str,
    difficulty: int,
    *,
    start_nonce: int = 0,
    max_attempts: int = 1_000_000,
) -> Optional[int]:
    """Brute-force the first nonce whose seal meets `difficulty` (None if not found)."""
    for nonce in range(start_nonce, start_nonce + max_attempts):
        if seal_meets_difficulty(compute_seal(block_hash, hotkey, nonce), difficulty):
            return nonce
    return None


__all__ = [
    "DifficultyState",
    "IntervalStats",
    "init_state",
    "record_registration",
    "interval_stats",
    "next_difficulty",
    "adjust_difficulty",
    "compute_seal",
    "seal_meets_difficulty",
    "solve_seal",
]
