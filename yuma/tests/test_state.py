from __future__ import annotations

import threading

import pytest

from yuma.difficulty import init_state
from yuma.errors import (CapacityExceeded, ErrorCode, InvalidWeightVector,
                         RegistrationError)
from yuma.registry import Registry
from yuma.state import (NetworkState, StateCell, add_stake, genesis, on_block,
                        register, reset_bonds, set_weights, sweep_stale)
from yuma.types import U64_MAX

from . import make_registry, small_params

# Difficulty 1 accepts every seal.
EASY = small_params(initial_difficulty=1)


def _three_neurons(params=EASY):
    state = genesis(params)
    for i, (hk, stake) in enumerate((("alice", 100), ("bob", 50), ("carol", 10)), start=1):
        state, _, _ = register(state, hk, i, params, nonce=0, stake=stake)
    return state


def test_genesis():
    state = genesis(EASY, block=7)
    assert len(state.registry) == 0
    assert state.registry.capacity == EASY.max_allowed_uids
    assert state.difficulty.current_difficulty == 1
    assert state.difficulty.last_adjustment_block == 7
    assert state.last_output is None


def test_register_assigns_lowest_free_uid():
    state, uid, evicted = register(genesis(EASY), "alice", 10, EASY, nonce=0, stake=5)
    assert (uid, evicted) == (0, None)
    n = state.registry.get(0)
    assert (n.hotkey, n.stake, n.registration_block, n.last_update_block) == ("alice", 5, 10, 10)
    assert state.difficulty.registrations_this_interval == 1


def test_register_duplicate_hotkey():
    state, _, _ = register(genesis(EASY), "alice", 10, EASY, nonce=0)
    with pytest.raises(RegistrationError) as ei:
        register(state, "alice", 11, EASY, nonce=1)
    assert ei.value.context["reason"] == "duplicate-hotkey"


def test_register_rejects_weak_seal():
    hard = small_params(initial_difficulty=U64_MAX)
    with pytest.raises(RegistrationError) as ei:
        register(genesis(hard), "alice", 10, hard, nonce=0, block_hash=b"\x07" * 32)
    assert ei.value.code == ErrorCode.REGISTRATION
    assert ei.value.context["reason"] == "bad-seal"


def test_full_registry_of_immune_neurons():
    params = small_params(initial_difficulty=1, max_allowed_uids=2)
    state = genesis(params)
    state, _, _ = register(state, "a", 10, params, nonce=0)
    state, _, _ = register(state, "b", 11, params, nonce=0)
    with pytest.raises(CapacityExceeded):
        register(state, "c", 20, params, nonce=0)


def test_full_registry_evicts_and_clears_matrices():
    params = small_params(initial_difficulty=1, max_allowed_uids=2, immunity_period=10)
    state = genesis(params)
    state, _, _ = register(state, "a", 0, params, nonce=0)
    state, _, _ = register(state, "b", 5, params, nonce=0)
    state = set_weights(state, 0, {1: 5}, 6)
    state = set_weights(state, 1, {0: 5}, 6)

    state, uid, evicted = register(state, "c", 100, params, nonce=0)
    # both score 0; the older registration goes
    assert (uid, evicted) == (0, 0)
    assert state.registry.get(0).hotkey == "c"
    assert state.weights.row(0) is None
    assert state.weights.row(1) == {}


def test_set_weights_and_stake():
    state = _three_neurons()
    state = set_weights(state, 0, {1: 3, 2: 0}, 40)
    assert state.weights.row(0) == {1: 3}
    assert state.registry.get(0).last_update_block == 40

    with pytest.raises(InvalidWeightVector):
        set_weights(state, 0, {}, 41)
    with pytest.raises(RegistrationError):
        set_weights(state, 9, {1: 1}, 41)

    state = add_stake(state, 2, -1_000, 42)
    assert state.registry.get(2).stake == 0
    assert add_stake(state, 2, 7, 43).registry.get(2).stake == 7


def test_on_block_between_boundaries_only_advances():
    state = _three_neurons()
    nxt = on_block(state, 50, EASY)
    assert nxt.block == 50
    assert nxt.last_output is None
    assert nxt.difficulty is state.difficulty


def test_on_block_runs_epoch_and_difficulty():
    state = _three_neurons()
    state = set_weights(state, 0, {2: 1}, 10)
    state = set_weights(state, 1, {2: 1}, 10)
    state = set_weights(state, 2, {0: 1}, 10)
    before = state.registry.total_stake()

    state = on_block(state, 100, EASY)
    # three registrations against a target of two
    assert state.difficulty.current_difficulty == 2
    assert state.difficulty.registrations_this_interval == 0
    assert state.last_output is not None and state.last_output.block == 100
    assert state.registry.total_stake() == before + EASY.block_emission * EASY.blocks_per_step
    assert state.bonds.bond(0, 2) > 0
    # a well-staked neuron scores at least its incentive
    assert state.registry.get(0).pruning_score >= state.last_output.incentive[0]
    assert state.registry.get(0).pruning_score > 0


def test_reset_bonds_and_sweep_without_output():
    state = _three_neurons()
    state = set_weights(state, 0, {2: 1}, 10)
    state = on_block(state, 100, EASY)
    assert reset_bonds(state).bonds.nnz() == 0
    fresh = _three_neurons()
    assert sweep_stale(fresh, EASY) is fresh


def test_state_cell_swaps_snapshots():
    cell = StateCell(genesis(EASY))
    before = cell.snapshot()
    state, uid, _ = cell.apply(register, "alice", 1, EASY, nonce=0, stake=10)
    assert uid == 0
    assert cell.snapshot() is state
    assert len(before.registry) == 0

    with pytest.raises(RegistrationError):
        cell.apply(register, "alice", 2, EASY, nonce=0)
    assert cell.snapshot() is state

    with pytest.raises(TypeError):
        cell.apply(lambda s: 42)
    assert cell.snapshot() is state


def test_state_cell_serialises_writers():
    cell = StateCell(genesis(EASY))
    cell.apply(register, "alice", 1, EASY, nonce=0)

    def worker():
        for _ in range(50):
            cell.apply(add_stake, 0, 1, 2)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert cell.snapshot().registry.get(0).stake == 200


def test_register_into_full_network_takes_pruned_slot():
    stakes = [10_000] * 4096
    stakes[17] = 5
    params = EASY
    state = NetworkState(
        registry=make_registry(stakes, capacity=4096),
        difficulty=init_state(params),
        block=10_000,
    )
    state, uid, evicted = register(state, "newcomer", 10_000, params, nonce=0)
    assert (uid, evicted) == (17, 17)
    assert state.registry.get(17).hotkey == "newcomer"
    assert len(state.registry) == 4096


def test_epoch_emission_is_recorded_and_issuance_accumulates():
    state = _three_neurons()
    state = set_weights(state, 0, {2: 1}, 10)
    state = set_weights(state, 1, {2: 1}, 10)
    state = set_weights(state, 2, {0: 1}, 10)
    per_epoch = EASY.block_emission * EASY.blocks_per_step
    assert (state.total_emission, state.total_issuance) == (0, 0)

    state = on_block(state, 100, EASY)
    assert sum(state.last_emission.values()) == per_epoch
    assert state.total_emission == per_epoch
    assert state.total_issuance == per_epoch
    # emission follows dividends, with the larger stake behind the same vote earning more
    assert state.last_emission[0] > state.last_emission[1] > 0

    state = on_block(state, 200, EASY)
    assert state.total_emission == per_epoch
    assert state.total_issuance == 2 * per_epoch


class _NoFreeSlot(Registry):
    def next_free_uid(self):
        return None


def test_register_without_free_slot_raises_capacity_error():
    state = NetworkState(registry=_NoFreeSlot(capacity=4), difficulty=init_state(EASY))
    assert not state.registry.is_full
    with pytest.raises(CapacityExceeded):
        register(state, "alice", 1, EASY, nonce=0)
