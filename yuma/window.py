"""
Epoch & interval helpers
========================

Small, deterministic utilities used by the engine, the difficulty controller
and the block driver:

- Epoch math: index and bounds for fixed-length epochs.
- Boundary checks: when the engine and the validator reset cadence fire.
- Elapsed epochs between two heights (drives the skip-aware bond EMA).

All arithmetic is integer-only.
"""

from __future__ import annotations

from typing import Optional, Tuple

from .params import HyperParams


# ------------------------------- Epoch helpers -------------------------------

def epoch_index(height: int, epoch_len: int) -> int:
    """
    Zero-based epoch index for a given block height.

    - height >= 0
    - epoch_len > 0
    """
    if epoch_len <= 0:
        raise ValueError("epoch_len must be > 0")
    if height < 0:
        raise ValueError("height must be >= 0")
    return height // epoch_len


def epoch_bounds(index: int, epoch_len: int) -> Tuple[int, int]:
    """
    Inclusive height bounds for the given epoch index:
    returns (start_height, end_height).

    Epoch 0: [0, epoch_len-1]
    Epoch k: [k*epoch_len, (k+1)*epoch_len - 1]
    """
    if epoch_len <= 0:
        raise ValueError("epoch_len must be > 0")
    if index < 0:
        raise ValueError("index must be >= 0")
    start = index * epoch_len
    end = (index + 1) * epoch_len - 1
    return start, end


def is_epoch_boundary(height: int, blocks_per_step: int) -> bool:
    """True when the engine runs at `height` (genesis excluded)."""
    return height > 0 and height % blocks_per_step == 0


def epochs_elapsed(height: int, last_height: Optional[int], blocks_per_step: int) -> int:
    """
    Number of epochs since `last_height`, at least 1. A source that has never
    been counted (None) or is re-run at the same height counts as one epoch.
    """
    if last_height is None or height <= last_height:
        return 1
    return max(1, (height - last_height) // blocks_per_step)


def validator_reset_due(height: int, params: HyperParams) -> bool:
    """
    True when validators should reset their own scoring context. This is a
    validator-side cadence only; the shared bond matrix is never reset by it.
    """
    period = params.validator_epoch_len * params.validator_epochs_per_reset
    return height > 0 and height % period == 0


def interval_due(height: int, last_adjustment: int, interval: int) -> bool:
    """True when a difficulty adjustment interval has fully elapsed."""
    return height - last_adjustment >= interval


__all__ = [
    "epoch_index",
    "epoch_bounds",
    "is_epoch_boundary",
    "epochs_elapsed",
    "validator_reset_due",
    "interval_due",
]
