from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from yuma.emission import distribute_emission, split_proportional
from yuma.engine import ConsensusOutput
from yuma.types import ONE


def test_largest_remainder_goes_to_lowest_uid():
    assert split_proportional(10, {2: 1, 0: 1, 1: 1}) == {0: 4, 1: 3, 2: 3}


def test_zero_weights_or_amount():
    assert split_proportional(10, {0: 0, 1: 0}) == {0: 0, 1: 0}
    assert split_proportional(0, {0: 1}) == {0: 0}
    with pytest.raises(ValueError):
        split_proportional(-1, {0: 1})


@given(
    st.integers(min_value=0, max_value=10**20),
    st.dictionaries(st.integers(0, 4095), st.integers(0, ONE), min_size=1, max_size=32),
)
def test_split_is_exact(amount, weights):
    parts = split_proportional(amount, weights)
    denom = sum(weights.values())
    if denom == 0:
        assert sum(parts.values()) == 0
        return
    assert sum(parts.values()) == amount
    for k, w in weights.items():
        floor = amount * w // denom
        assert floor <= parts[k] <= floor + 1


def test_distribute_by_dividend():
    out = ConsensusOutput(block=100, uids=(0, 1), dividend={0: ONE // 4, 1: 3 * ONE // 4})
    assert distribute_emission(out, 100) == {0: 25, 1: 75}
    assert distribute_emission(ConsensusOutput.zeros(100, (0, 1)), 100) == {0: 0, 1: 0}
