"""
Hyperparameter loader & model.

Reads a YAML table of network hyperparameters and exposes a validated,
immutable `HyperParams` used by every component:

- activityCutoff               : blocks without weights/stake change before a neuron is inactive
- adjustmentInterval           : blocks between registration-difficulty adjustments
- blocksPerStep                : epoch length in blocks (engine runs at multiples)
- bondsMovingAverage           : ppm of the previous bond kept per epoch (EMA retention)
- immunityPeriod               : blocks after registration during which a neuron cannot be pruned
- incentivePruningDenominator  : divisor applied to incentive in the pruning score
- kappa                        : majority threshold is 1/kappa of active stake
- maxAllowedMaxMinRatio        : per-target max/min clipped-weight ratio
- maxAllowedUids               : registry capacity
- minAllowedWeights            : minimum distinct targets for a valid weight vector
- rho                          : steepness of the outlier attenuation logistic
- stakePruningDenominator      : divisor applied to stake share in the pruning score
- stakePruningMin              : stake below which a neuron always scores 0 for pruning
- targetRegistrationsPerInterval
- validatorBatchSize, validatorEpochLen, validatorEpochsPerReset,
  validatorSequenceLength      : validator-side cadence (consumed by the task layer)

Additional knobs of the registration/emission mechanics:

- minDifficulty, maxDifficulty, initialDifficulty
- blockEmission                : ledger units emitted per block, paid out per epoch

The YAML format is intentionally permissive; unknown keys are ignored (to allow
forward-compatible rollout). Every value is a non-negative integer.

This module is pure (no DB). A stable `params_root` (sha3-256 over canonical
JSON) lets independent executors check they run with the same table.

Example (see yuma/fixtures/hyperparams.example.yaml):

activityCutoff: 5000
adjustmentInterval: 100
blocksPerStep: 100
bondsMovingAverage: 900000
kappa: 2
rho: 10
maxAllowedUids: 4096
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional
import json
import hashlib

import yaml

from .errors import ParamsError
from .types import PPM_SCALE, U64_MAX


# ---------------------------
# Dataclass
# ---------------------------

@dataclass(frozen=True)
class HyperParams:
    """
    Canonical hyperparameter set. Attribute names are the snake_case form of
    the camelCase YAML keys (see `KEY_MAP`).
    """
    activity_cutoff: int = 5000
    adjustment_interval: int = 100
    blocks_per_step: int = 100
    bonds_moving_average: int = 900_000
    immunity_period: int = 4096
    incentive_pruning_denominator: int = 1
    kappa: int = 2
    max_allowed_max_min_ratio: int = 64
    max_allowed_uids: int = 4096
    min_allowed_weights: int = 1024
    rho: int = 10
    stake_pruning_denominator: int = 20
    stake_pruning_min: int = 1024
    target_registrations_per_interval: int = 2
    validator_batch_size: int = 10
    validator_epoch_len: int = 250
    validator_epochs_per_reset: int = 60
    validator_sequence_length: int = 20

    min_difficulty: int = 1
    max_difficulty: int = U64_MAX
    initial_difficulty: int = 10_000
    block_emission: int = 1_000_000_000

    # --------
    # Helpers
    # --------
    def to_canonical_json(self) -> bytes:
        """Canonical JSON for hashing: camelCase keys, sorted, integers only."""
        payload = {key: int(getattr(self, attr)) for key, attr in KEY_MAP.items()}
        return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")

    def params_root(self) -> bytes:
        return hashlib.sha3_256(self.to_canonical_json()).digest()

    def hex_params_root(self) -> str:
        return "0x" + self.params_root().hex()

    def with_overrides(self, **overrides: int) -> "HyperParams":
        """Return a validated copy with snake_case attributes replaced."""
        return validate(replace(self, **overrides))


KEY_MAP: Dict[str, str] = {
    "activityCutoff": "activity_cutoff",
    "adjustmentInterval": "adjustment_interval",
    "blocksPerStep": "blocks_per_step",
    "bondsMovingAverage": "bonds_moving_average",
    "immunityPeriod": "immunity_period",
    "incentivePruningDenominator": "incentive_pruning_denominator",
    "kappa": "kappa",
    "maxAllowedMaxMinRatio": "max_allowed_max_min_ratio",
    "maxAllowedUids": "max_allowed_uids",
    "minAllowedWeights": "min_allowed_weights",
    "rho": "rho",
    "stakePruningDenominator": "stake_pruning_denominator",
    "stakePruningMin": "stake_pruning_min",
    "targetRegistrationsPerInterval": "target_registrations_per_interval",
    "validatorBatchSize": "validator_batch_size",
    "validatorEpochLen": "validator_epoch_len",
    "validatorEpochsPerReset": "validator_epochs_per_reset",
    "validatorSequenceLength": "validator_sequence_length",
    "minDifficulty": "min_difficulty",
    "maxDifficulty": "max_difficulty",
    "initialDifficulty": "initial_difficulty",
    "blockEmission": "block_emission",
}

# Keys used as divisors or capacities; zero would be meaningless.
_POSITIVE = {
    "adjustmentInterval",
    "blocksPerStep",
    "incentivePruningDenominator",
    "kappa",
    "maxAllowedMaxMinRatio",
    "maxAllowedUids",
    "stakePruningDenominator",
    "validatorEpochLen",
    "validatorEpochsPerReset",
    "minDifficulty",
}

_ATTR_TO_KEY: Dict[str, str] = {v: k for k, v in KEY_MAP.items()}


# ---------------------------
# Validation
# ---------------------------

def _get_int(map_: Mapping[str, Any], key: str, default: int) -> int:
    if key not in map_:
        return default
    v = map_[key]
    # bool is an int subclass; a YAML `true` is never a valid hyperparameter.
    if isinstance(v, bool) or not isinstance(v, int):
        raise ParamsError(
            f"Expected integer for '{key}', got {type(v).__name__}",
            key=key,
            actual=v,
        )
    return v


def validate(p: HyperParams) -> HyperParams:
    """Check cross-field constraints. Returns `p` unchanged or raises ParamsError."""
    for f in fields(p):
        key = _ATTR_TO_KEY[f.name]
        v = getattr(p, f.name)
        if v < 0:
            raise ParamsError(f"Negative value for '{key}' not allowed", key=key, actual=v)
        if key in _POSITIVE and v == 0:
            raise ParamsError(f"'{key}' must be > 0", key=key, actual=v)

    if p.bonds_moving_average > PPM_SCALE:
        raise ParamsError(
            "bondsMovingAverage is a ppm retention factor and cannot exceed 1_000_000",
            key="bondsMovingAverage",
            expected=f"<= {PPM_SCALE}",
            actual=p.bonds_moving_average,
        )
    if p.max_difficulty < p.min_difficulty:
        raise ParamsError(
            "maxDifficulty below minDifficulty",
            key="maxDifficulty",
            expected=f">= {p.min_difficulty}",
            actual=p.max_difficulty,
        )
    if not (p.min_difficulty <= p.initial_difficulty <= p.max_difficulty):
        raise ParamsError(
            "initialDifficulty outside [minDifficulty, maxDifficulty]",
            key="initialDifficulty",
            actual=p.initial_difficulty,
        )
    return p


# ---------------------------
# YAML → HyperParams loader
# ---------------------------

def hyperparams_from_dict(cfg: Mapping[str, Any]) -> HyperParams:
    """
    Build HyperParams from a dict of camelCase keys (same shape as the YAML).
    Missing keys take the defaults; unknown keys are ignored.
    """
    if not isinstance(cfg, Mapping):
        raise ParamsError("hyperparameters must be a mapping at the top level")

    defaults = HyperParams()
    values = {
        attr: _get_int(cfg, key, getattr(defaults, attr))
        for key, attr in KEY_MAP.items()
    }
    return validate(HyperParams(**values))


def load_hyperparams(yaml_path: str, *, section: Optional[str] = None) -> HyperParams:
    """
    Load and validate hyperparameters from a YAML file.

    `section` selects a nested mapping (e.g. a per-network table inside a
    larger config file). Raises ParamsError on any failure.
    """
    try:
        with open(yaml_path, "rb") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ParamsError(f"hyperparameter file not found: {yaml_path}") from e
    except yaml.YAMLError as e:
        raise ParamsError(f"hyperparameter file is not valid YAML: {yaml_path}", cause=e) from e

    if not isinstance(data, dict):
        raise ParamsError("hyperparameter YAML must be a mapping at the top level")
    if section is not None:
        sub = data.get(section)
        if not isinstance(sub, dict):
            raise ParamsError(f"section '{section}' missing or not a mapping", key=section)
        data = sub
    return hyperparams_from_dict(data)


DEFAULT_PARAMS = HyperParams()


__all__ = [
    "HyperParams",
    "KEY_MAP",
    "DEFAULT_PARAMS",
    "validate",
    "hyperparams_from_dict",
    "load_hyperparams",
]
