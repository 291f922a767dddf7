"""
Neuron registry
===============

Fixed-capacity set of registered neurons and their metadata. The registry is
an immutable snapshot: every mutation returns a new `Registry`, so readers
holding the previous snapshot never observe a half-applied change.

What it tracks per neuron
-------------------------
- uid                 : slot in [0, maxAllowedUids)
- hotkey              : opaque identity of the registrant
- stake               : non-negative integer (ledger units)
- registration_block  : block at which the neuron took the slot
- last_update_block   : last weight submission or stake change
- pruning_score       : fixed-point score written after each epoch

What it doesn't do
------------------
- It does not choose eviction victims (see yuma.pruning).
- It does not check registration work (see yuma.difficulty).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, Mapping, Optional, Tuple

from .errors import RegistrationError


@dataclass(frozen=True)
class Neuron:
    uid: int
    hotkey: str
    stake: int = 0
    registration_block: int = 0
    last_update_block: int = 0
    pruning_score: int = 0

    def is_active(self, block: int, activity_cutoff: int) -> bool:
        """Active iff it set weights or changed stake within `activity_cutoff` blocks."""
        return block - self.last_update_block <= activity_cutoff

    def is_immune(self, block: int, immunity_period: int) -> bool:
        return block - self.registration_block < immunity_period


@dataclass(frozen=True)
class Registry:
    """Immutable UID → Neuron snapshot with capacity bookkeeping."""

    capacity: int
    neurons: Mapping[int, Neuron] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError("capacity must be > 0")
        if len(self.neurons) > self.capacity:
            raise ValueError("registry holds more neurons than its capacity")
        for uid in self.neurons:
            if not (0 <= uid < self.capacity):
                raise ValueError(f"uid {uid} outside [0, {self.capacity})")

    # ---------------------------- read side ----------------------------

    def __len__(self) -> int:
        return len(self.neurons)

    def __contains__(self, uid: object) -> bool:
        return uid in self.neurons

    def __iter__(self) -> Iterator[Neuron]:
        for uid in self.uids():
            yield self.neurons[uid]

    def uids(self) -> Tuple[int, ...]:
        """Registered UIDs in ascending order (the canonical iteration order)."""
        return tuple(sorted(self.neurons))

    def get(self, uid: int) -> Optional[Neuron]:
        return self.neurons.get(uid)

    def require(self, uid: int) -> Neuron:
        n = self.neurons.get(uid)
        if n is None:
            raise RegistrationError.unknown_uid(uid)
        return n

    def by_hotkey(self, hotkey: str) -> Optional[Neuron]:
        for n in self.neurons.values():
            if n.hotkey == hotkey:
                return n
        return None

    @property
    def is_full(self) -> bool:
        return len(self.neurons) >= self.capacity

    def next_free_uid(self) -> Optional[int]:
        """Lowest unoccupied UID, or None when full."""
        if self.is_full:
            return None
        for uid in range(self.capacity):
            if uid not in self.neurons:
                return uid
        return None  # pragma: no cover - guarded by is_full

    def total_stake(self) -> int:
        return sum(n.stake for n in self.neurons.values())

    def stakes(self) -> Dict[int, int]:
        return {uid: self.neurons[uid].stake for uid in self.uids()}

    # --------------------------- write side ----------------------------

    def _with(self, neurons: Dict[int, Neuron]) -> "Registry":
        return Registry(capacity=self.capacity, neurons=neurons)

    def add(self, neuron: Neuron) -> "Registry":
        if neuron.uid in self.neurons:
            raise RegistrationError(
                f"uid {neuron.uid} already occupied",
                uid=neuron.uid,
                hotkey=neuron.hotkey,
                reason="uid-occupied",
            )
        if self.by_hotkey(neuron.hotkey) is not None:
            raise RegistrationError(
                "hotkey already registered",
                hotkey=neuron.hotkey,
                reason="duplicate-hotkey",
            )
        out = dict(self.neurons)
        out[neuron.uid] = neuron
        return self._with(out)

    def remove(self, uid: int) -> "Registry":
        self.require(uid)
        out = dict(self.neurons)
        del out[uid]
        return self._with(out)

    def set_stake(self, uid: int, stake: int, block: int) -> "Registry":
        """Replace a neuron's stake. A stake change counts as activity."""
        if stake < 0:
            raise ValueError("stake must be non-negative")
        n = self.require(uid)
        out = dict(self.neurons)
        out[uid] = replace(n, stake=stake, last_update_block=max(n.last_update_block, block))
        return self._with(out)

    def touch(self, uid: int, block: int) -> "Registry":
        """Record a weight submission at `block`."""
        n = self.require(uid)
        out = dict(self.neurons)
        out[uid] = replace(n, last_update_block=max(n.last_update_block, block))
        return self._with(out)

    def with_pruning_scores(self, scores: Mapping[int, int]) -> "Registry":
        out = {
            uid: replace(n, pruning_score=scores.get(uid, n.pruning_score))
            for uid, n in self.neurons.items()
        }
        return self._with(out)

    def credit(self, amounts: Mapping[int, int]) -> "Registry":
        """Add emission to stake. Unlike `set_stake` this is not neuron activity."""
        out = dict(self.neurons)
        for uid, amount in amounts.items():
            if amount and uid in out:
                n = out[uid]
                out[uid] = replace(n, stake=n.stake + amount)
        return self._with(out)


__all__ = ["Neuron", "Registry"]
