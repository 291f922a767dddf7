from __future__ import annotations

import pytest

from yuma.params import DEFAULT_PARAMS
from yuma.window import (epoch_bounds, epoch_index, epochs_elapsed,
                         interval_due, is_epoch_boundary, validator_reset_due)


def test_epoch_index_and_bounds():
    assert epoch_index(0, 100) == 0
    assert epoch_index(199, 100) == 1
    assert epoch_bounds(2, 100) == (200, 299)
    with pytest.raises(ValueError):
        epoch_index(-1, 100)
    with pytest.raises(ValueError):
        epoch_bounds(0, 0)


def test_epoch_boundary_skips_genesis():
    assert not is_epoch_boundary(0, 100)
    assert is_epoch_boundary(100, 100)
    assert not is_epoch_boundary(150, 100)


def test_epochs_elapsed():
    assert epochs_elapsed(500, None, 100) == 1
    assert epochs_elapsed(500, 500, 100) == 1
    assert epochs_elapsed(500, 200, 100) == 3
    assert epochs_elapsed(250, 200, 100) == 1


def test_validator_reset_cadence():
    period = DEFAULT_PARAMS.validator_epoch_len * DEFAULT_PARAMS.validator_epochs_per_reset
    assert not validator_reset_due(0, DEFAULT_PARAMS)
    assert validator_reset_due(period, DEFAULT_PARAMS)
    assert not validator_reset_due(period + 1, DEFAULT_PARAMS)


def test_interval_due():
    assert interval_due(100, 0, 100)
    assert not interval_due(99, 0, 100)
