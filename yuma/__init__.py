"""
Yuma: epoch consensus for a stake-weighted neuron incentive network

This package implements the deterministic core of the network:
- weight validation, stake-weighted rank / trust / consensus
- majority clipping (kappa, rho) and max/min ratio clamping
- incentive & dividend vectors and the EMA bond matrix
- pruning scores and eviction selection
- registration difficulty retargeting
All submodules are deterministic and pure (no network I/O).

Re-exports:
    __version__
    errors, math, params, registry, weights, bonds, engine, pruning,
    difficulty, emission, state, window
    run_epoch, adjust_difficulty, prune
"""

# Re-export key submodules for ergonomic imports
from . import (bonds, difficulty, emission, engine, errors, math, params,
               pruning, registry, state, weights, window)
from .difficulty import adjust_difficulty
from .engine import ConsensusOutput, run_epoch
from .pruning import prune
from .version import __version__

__all__ = [
    "__version__",
    # submodules
    "errors",
    "math",
    "params",
    "registry",
    "weights",
    "bonds",
    "engine",
    "pruning",
    "difficulty",
    "emission",
    "state",
    "window",
    # entry points
    "ConsensusOutput",
    "run_epoch",
    "adjust_difficulty",
    "prune",
]
