"""
Yuma Errors

Structured exceptions used across the epoch engine and its controllers. They
carry machine-readable error codes so callers (ledger glue, tests, monitoring)
can classify failures without string-matching.

Design goals
------------
- Stable, integer error codes (see `ErrorCode`).
- Human-friendly messages with optional rich context.
- Safe to log: context is shallow-copied and can be redacted upstream.
- Play nicely with `raise ... from cause` and `__cause__`.

Subclasses
----------
- ParamsError          : hyperparameter loading/validation issues.
- InvalidWeightVector  : too few targets / malformed weights. The engine
                         recovers by zeroing the row; submission surfaces it.
- CapacityExceeded     : registry full and nobody eligible for eviction.
- ZeroStakeEpoch       : no active stake this epoch; recovered with a zero output.
- DifficultyUnderflow  : difficulty below the floor; always clamped, never surfaced.
- RegistrationError    : duplicate hotkey, bad seal, unknown UID.

NOTE: Keep this module free of heavy imports so it can be used in hot paths.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Mapping, Optional


class ErrorCode(IntEnum):
    """Stable error codes for yuma exceptions."""
    YUMA_GENERIC          = 3000
    PARAMS                = 3001
    INVALID_WEIGHTS       = 3002
    CAPACITY_EXCEEDED     = 3003
    ZERO_STAKE_EPOCH      = 3004
    DIFFICULTY_UNDERFLOW  = 3005
    REGISTRATION          = 3006


class YumaError(Exception):
    """
    Base class for yuma exceptions.

    Parameters
    ----------
    message : str
        Human-readable description.
    code : ErrorCode | int
        Stable code for programmatic handling (default: YUMA_GENERIC).
    context : Mapping[str, Any] | None
        Optional structured fields (small dict).
    cause : BaseException | None
        Optional underlying exception; also set via `raise ... from ...`.
    """

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | int = ErrorCode.YUMA_GENERIC,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.code: int = int(code)
        self.context: Dict[str, Any] = dict(context) if context else {}
        if cause is not None:
            self.__cause__ = cause  # type: ignore[attr-defined]

    def __str__(self) -> str:  # pragma: no cover - trivial
        tail = f" context={self.context}" if self.context else ""
        return f"[{self.code}] {self.message}{tail}"

    def to_dict(self) -> Dict[str, Any]:
        """Structured view suitable for logs."""
        out = {
            "code": self.code,
            "message": self.message,
        }
        if self.context:
            out["context"] = self.context
        return out


class ParamsError(YumaError):
    """
    Raised when hyperparameters fail to load or validate.

    Context fields
    --------------
    - key      : camelCase key that failed
    - expected, actual : for validation mismatches
    """

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        expected: Any = None,
        actual: Any = None,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        base: Dict[str, Any] = {}
        if key is not None:
            base["key"] = key
        if expected is not None:
            base["expected"] = expected
        if actual is not None:
            base["actual"] = actual
        if context:
            base.update(context)
        super().__init__(message, code=ErrorCode.PARAMS, context=base, cause=cause)


class InvalidWeightVector(YumaError):
    """
    A neuron's weight vector cannot take part in consensus.

    Context fields
    --------------
    - uid      : the submitting neuron
    - reason   : 'too-few-targets', 'zero-sum', 'unknown-uid', 'negative', ...
    - targets  : number of distinct usable targets
    - required : minimum number of targets this epoch
    """

    def __init__(
        self,
        message: str,
        *,
        uid: Optional[int] = None,
        reason: Optional[str] = None,
        targets: Optional[int] = None,
        required: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        base: Dict[str, Any] = {}
        if uid is not None:
            base["uid"] = uid
        if reason is not None:
            base["reason"] = reason
        if targets is not None:
            base["targets"] = targets
        if required is not None:
            base["required"] = required
        if context:
            base.update(context)
        super().__init__(message, code=ErrorCode.INVALID_WEIGHTS, context=base, cause=cause)

    @classmethod
    def too_few_targets(cls, *, uid: int, targets: int, required: int) -> "InvalidWeightVector":
        return cls(
            "Weight vector sets too few targets",
            uid=uid,
            reason="too-few-targets",
            targets=targets,
            required=required,
        )

    @classmethod
    def zero_sum(cls, *, uid: int) -> "InvalidWeightVector":
        return cls("Weight vector sums to zero", uid=uid, reason="zero-sum")


class CapacityExceeded(YumaError):
    """Registry is full and no neuron is eligible for eviction."""

    def __init__(
        self,
        message: str = "Registry at capacity and no neuron is eligible for pruning",
        *,
        capacity: Optional[int] = None,
        block: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        base: Dict[str, Any] = {}
        if capacity is not None:
            base["capacity"] = capacity
        if block is not None:
            base["block"] = block
        if context:
            base.update(context)
        super().__init__(message, code=ErrorCode.CAPACITY_EXCEEDED, context=base)


class ZeroStakeEpoch(YumaError):
    """Total active stake is zero; the epoch degrades to an all-zero output."""

    def __init__(
        self,
        message: str = "No active stake in epoch",
        *,
        block: Optional[int] = None,
        active: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        base: Dict[str, Any] = {}
        if block is not None:
            base["block"] = block
        if active is not None:
            base["active"] = active
        if context:
            base.update(context)
        super().__init__(message, code=ErrorCode.ZERO_STAKE_EPOCH, context=base)


# Name used by the external interface description.
InsufficientStakeError = ZeroStakeEpoch


class DifficultyUnderflow(YumaError):
    """Computed difficulty fell below the floor. Callers clamp; never surfaced."""

    def __init__(
        self,
        *,
        computed: int,
        floor: int,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        base: Dict[str, Any] = {"computed": computed, "floor": floor}
        if context:
            base.update(context)
        super().__init__(
            "Difficulty below floor",
            code=ErrorCode.DIFFICULTY_UNDERFLOW,
            context=base,
        )
        self.computed = computed
        self.floor = floor


class RegistrationError(YumaError):
    """
    A registration (or a state change tied to a registered neuron) was rejected.

    Context fields
    --------------
    - hotkey : identity of the registrant
    - uid    : neuron uid if known
    - reason : 'duplicate-hotkey', 'bad-seal', 'unknown-uid'
    """

    def __init__(
        self,
        message: str,
        *,
        hotkey: Optional[str] = None,
        uid: Optional[int] = None,
        reason: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        base: Dict[str, Any] = {}
        if hotkey is not None:
            base["hotkey"] = hotkey
        if uid is not None:
            base["uid"] = uid
        if reason is not None:
            base["reason"] = reason
        if context:
            base.update(context)
        super().__init__(message, code=ErrorCode.REGISTRATION, context=base)

    @classmethod
    def unknown_uid(cls, uid: int) -> "RegistrationError":
        return cls(f"No neuron registered at uid {uid}", uid=uid, reason="unknown-uid")


__all__ = [
    "ErrorCode",
    "YumaError",
    "ParamsError",
    "InvalidWeightVector",
    "CapacityExceeded",
    "ZeroStakeEpoch",
    "InsufficientStakeError",
    "DifficultyUnderflow",
    "RegistrationError",
]
