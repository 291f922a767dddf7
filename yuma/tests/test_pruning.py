from __future__ import annotations

from dataclasses import replace

from yuma.engine import ConsensusOutput
from yuma.math import ratio
from yuma.pruning import (apply_pruning_scores, eviction_order, prune,
                          pruning_score, score_neurons, select_stale)
from yuma.registry import Neuron, Registry
from yuma.types import ONE

from . import make_registry, small_params

PARAMS = small_params()
BLOCK = 10_000


def _output(registry: Registry, incentive=None) -> ConsensusOutput:
    uids = registry.uids()
    if incentive is None:
        incentive = {u: ONE // len(uids) for u in uids}
    return ConsensusOutput(
        block=BLOCK,
        uids=uids,
        incentive={u: incentive.get(u, 0) for u in uids},
    )


def _with(registry: Registry, uid: int, **changes) -> Registry:
    neurons = dict(registry.neurons)
    neurons[uid] = replace(neurons[uid], **changes)
    return Registry(capacity=registry.capacity, neurons=neurons)


def _network() -> Registry:
    stakes = [10_000] * 8
    stakes[5] = 5
    return make_registry(stakes, capacity=8)


def test_low_stake_neuron_is_pruned_first():
    registry = _network()
    assert registry.is_full
    assert prune(registry, _output(registry), PARAMS) == 5


def test_score_formula():
    registry = _network()
    n = registry.get(0)
    total = registry.total_stake()
    expected = (ONE // 8) // PARAMS.incentive_pruning_denominator + ratio(10_000, total) // PARAMS.stake_pruning_denominator
    assert pruning_score(n, ONE // 8, total, PARAMS) == expected
    # below stakePruningMin the score is zero regardless of incentive
    assert pruning_score(registry.get(5), ONE, total, PARAMS) == 0


def test_immune_neurons_are_skipped():
    registry = _with(_network(), 5, registration_block=BLOCK - 100)
    assert registry.get(5).is_immune(BLOCK, PARAMS.immunity_period)
    victim = prune(registry, _output(registry), PARAMS)
    assert victim != 5
    # everyone else ties on score and registration block: lowest uid
    assert victim == 0


def test_all_immune_returns_none():
    registry = make_registry([10_000, 10_000], capacity=2, registration_block=BLOCK - 10)
    assert prune(registry, _output(registry), PARAMS) is None


def test_ties_go_to_oldest_registration():
    registry = make_registry([5] * 8, capacity=8, registration_block=500)
    registry = _with(registry, 2, registration_block=300)
    registry = _with(registry, 6, registration_block=100)
    out = _output(registry, incentive={})
    assert eviction_order(registry, out, PARAMS)[:3] == [6, 2, 0]
    assert prune(registry, out, PARAMS) == 6


def test_block_override():
    registry = make_registry([10_000, 10_000], capacity=2, registration_block=BLOCK - 10)
    assert prune(registry, _output(registry), PARAMS, block=BLOCK + PARAMS.immunity_period) == 0


def test_apply_pruning_scores_writes_registry():
    registry = _network()
    out = _output(registry)
    scored = apply_pruning_scores(registry, out, PARAMS)
    scores = score_neurons(registry, out, PARAMS)
    assert {n.uid: n.pruning_score for n in scored} == scores
    assert scores[5] == 0
    assert all(s > 0 for u, s in scores.items() if u != 5)


def test_select_stale():
    registry = make_registry([10_000] * 6, capacity=6)
    registry = _with(registry, 5, stake=5)
    registry = _with(registry, 3, stake=5)
    registry = _with(registry, 4, stake=5, last_update_block=BLOCK - 10)
    incentive = {0: ONE // 4, 1: ONE // 4, 2: ONE // 4, 3: ONE // 4}
    assert select_stale(registry, _output(registry, incentive), PARAMS) == [5]


def test_select_stale_respects_immunity():
    registry = Registry(capacity=2, neurons={0: Neuron(0, "a", registration_block=BLOCK - 1)})
    assert select_stale(registry, _output(registry, incentive={}), PARAMS) == []


def test_full_network_evicts_single_low_stake_neuron():
    stakes = [10_000] * 4096
    stakes[17] = 5
    registry = make_registry(stakes, capacity=4096)
    assert registry.is_full
    assert prune(registry, _output(registry), PARAMS) == 17
