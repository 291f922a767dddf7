"""
yuma.tests helpers

- Provides deterministic test defaults (RNG, Hypothesis profile).
- Convenience loaders for fixture files: load_params_example()
- Small builders for registries and weight matrices used across tests.
"""

from __future__ import annotations

import os
import random
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence

import yaml
from hypothesis import settings

from yuma.params import DEFAULT_PARAMS, HyperParams
from yuma.registry import Neuron, Registry
from yuma.weights import WeightMatrix

# ----- Paths -----
HERE = Path(__file__).resolve()
PKG_ROOT = HERE.parents[1]          # ~/yuma
FIXTURES = PKG_ROOT / "fixtures"

# ----- Determinism knobs -----
os.environ.setdefault("PYTHONHASHSEED", "0")

DEFAULT_TEST_SEED = int(os.environ.get("YUMA_TEST_SEED", "1337"))
random.seed(DEFAULT_TEST_SEED)

# Hypothesis defaults: faster local runs, deeper CI runs
settings.register_profile("local", settings(max_examples=60, deadline=None))
settings.register_profile("ci", settings(max_examples=200, deadline=None))
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE") or ("ci" if os.environ.get("CI") else "local"))


# ----- Fixture helpers -----
def params_example_path() -> Path:
    """Path to yuma/fixtures/hyperparams.example.yaml."""
    p = FIXTURES / "hyperparams.example.yaml"
    if not p.exists():
        raise FileNotFoundError(f"Fixture missing: {p}")
    return p


def load_params_example() -> Dict[str, Any]:
    with params_example_path().open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


# ----- Builders -----
def small_params(**overrides: int) -> HyperParams:
    """Defaults with minAllowedWeights relaxed to 1 (tiny test networks)."""
    base = {"min_allowed_weights": 1}
    base.update(overrides)
    return DEFAULT_PARAMS.with_overrides(**base)


def make_registry(
    stakes: Sequence[int],
    *,
    capacity: int = 4096,
    registration_block: int = 0,
    last_update_block: int = 0,
    hotkey_prefix: str = "hk",
) -> Registry:
    neurons = {
        uid: Neuron(
            uid=uid,
            hotkey=f"{hotkey_prefix}{uid}",
            stake=stake,
            registration_block=registration_block,
            last_update_block=last_update_block,
        )
        for uid, stake in enumerate(stakes)
    }
    return Registry(capacity=capacity, neurons=neurons)


def make_weights(rows: Mapping[int, Mapping[int, int]]) -> WeightMatrix:
    wm = WeightMatrix()
    for uid, row in rows.items():
        wm = wm.submit(uid, row)
    return wm


__all__ = [
    "FIXTURES",
    "DEFAULT_TEST_SEED",
    "params_example_path",
    "load_params_example",
    "small_params",
    "make_registry",
    "make_weights",
]
