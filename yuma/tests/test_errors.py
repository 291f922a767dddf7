from __future__ import annotations

from yuma.errors import (ErrorCode, InsufficientStakeError, InvalidWeightVector,
                         YumaError, ZeroStakeEpoch)


def test_codes_are_stable():
    assert [int(c) for c in ErrorCode] == list(range(3000, 3007))


def test_to_dict_and_cause():
    cause = ValueError("boom")
    e = YumaError("generic", context={"k": 1}, cause=cause)
    assert e.to_dict() == {"code": 3000, "message": "generic", "context": {"k": 1}}
    assert e.__cause__ is cause


def test_weight_vector_factories():
    e = InvalidWeightVector.too_few_targets(uid=3, targets=1, required=4)
    assert e.code == ErrorCode.INVALID_WEIGHTS
    assert e.context == {"uid": 3, "reason": "too-few-targets", "targets": 1, "required": 4}
    assert InvalidWeightVector.zero_sum(uid=3).context["reason"] == "zero-sum"


def test_insufficient_stake_alias():
    assert InsufficientStakeError is ZeroStakeEpoch
    assert isinstance(ZeroStakeEpoch(block=5), YumaError)
