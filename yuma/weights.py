"""
Weight matrix store
===================

Holds each neuron's most recent weight submission as a sparse row
{target_uid: raw_weight}. Raw weights are non-negative integers as submitted
to the ledger; they are normalised to fixed-point (sum ONE) only when the
engine reads a row for consensus.

Two levels of validation
------------------------
- Submission (`check_submission`): structural checks against the registry
  (known submitter, targets inside capacity, integer non-negative values,
  non-empty). Failures are raised to the submitter.
- Consensus (`consensus_row`): per-epoch checks that depend on network size
  (minimum distinct targets, registered targets only, non-zero sum). Failures
  raise `InvalidWeightVector`; the engine catches them and zeroes the row.

The store is an immutable snapshot; `submit`/`clear` return a new store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .errors import InvalidWeightVector
from .math import normalize
from .registry import Registry


def check_submission(uid: int, weights: Mapping[int, int], registry: Registry) -> Dict[int, int]:
    """
    Structural validation of a submitted weight vector. Returns a clean copy
    with zero entries dropped.
    """
    registry.require(uid)
    if not weights:
        raise InvalidWeightVector("Empty weight vector", uid=uid, reason="empty")
    clean: Dict[int, int] = {}
    for target, w in weights.items():
        if isinstance(target, bool) or not isinstance(target, int):
            raise InvalidWeightVector(
                "Weight target must be an integer uid", uid=uid, reason="bad-target",
                context={"target": repr(target)},
            )
        if not (0 <= target < registry.capacity):
            raise InvalidWeightVector(
                "Weight target outside uid range", uid=uid, reason="target-out-of-range",
                context={"target": target, "capacity": registry.capacity},
            )
        if isinstance(w, bool) or not isinstance(w, int):
            raise InvalidWeightVector(
                "Weight value must be an integer", uid=uid, reason="bad-value",
                context={"target": target},
            )
        if w < 0:
            raise InvalidWeightVector(
                "Weight value must be non-negative", uid=uid, reason="negative",
                context={"target": target, "value": w},
            )
        if w:
            clean[target] = w
    if not clean:
        raise InvalidWeightVector.zero_sum(uid=uid)
    return clean


def min_required_targets(min_allowed_weights: int, n_active: int) -> int:
    """
    `minAllowedWeights`, relaxed when the network has fewer active neurons than
    that. Self-weights never count, so a neuron can rate at most n_active - 1 peers.
    """
    return max(1, min(min_allowed_weights, n_active - 1))


@dataclass(frozen=True)
class WeightMatrix:
    rows: Mapping[int, Mapping[int, int]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.rows)

    def row(self, uid: int) -> Optional[Mapping[int, int]]:
        return self.rows.get(uid)

    def submit(self, uid: int, weights: Mapping[int, int]) -> "WeightMatrix":
        """Replace `uid`'s live vector (the latest submission wins)."""
        out = dict(self.rows)
        out[uid] = dict(weights)
        return WeightMatrix(rows=out)

    def clear(self, uid: int) -> "WeightMatrix":
        """
        Forget everything tied to `uid`: its own row and every entry that
        targets it. Used when a UID changes occupant.
        """
        out: Dict[int, Mapping[int, int]] = {}
        for src, row in self.rows.items():
            if src == uid:
                continue
            if uid in row:
                row = {t: w for t, w in row.items() if t != uid}
            out[src] = row
        return WeightMatrix(rows=out)

    def consensus_row(self, uid: int, registry: Registry, required: int) -> Dict[int, int]:
        """
        Normalised fixed-point row of `uid` for this epoch. Self-weights and
        targets that are not registered are dropped before counting.
        Raises InvalidWeightVector when the row cannot take part.
        """
        raw = self.rows.get(uid)
        if not raw:
            raise InvalidWeightVector("No weights set", uid=uid, reason="missing")
        usable = {t: w for t, w in raw.items() if t != uid and t in registry and w > 0}
        if len(usable) < required:
            raise InvalidWeightVector.too_few_targets(uid=uid, targets=len(usable), required=required)
        return normalize(dict(sorted(usable.items())))


__all__ = ["WeightMatrix", "check_submission", "min_required_targets"]
