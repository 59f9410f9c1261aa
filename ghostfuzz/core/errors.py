"""Error taxonomy for the ghostfuzz engine.

Every engine error carries an ``ErrorCode`` so reports and logs can
classify failures without string matching:

    InvalidRange        bound() called with low > high (action bug)
    EmptyRegistry       actor selection with no registered actors
    ActionFailed        the system under test rejected the call (revert)
    PaymentFailed       the environment refused to fund an action
    InvariantViolation  a registered predicate returned False

``ActionFailed`` and ``PaymentFailed`` are expected fuzz outcomes and are
absorbed by the Handler; the other errors propagate.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes attached to every engine error."""

    INVALID_RANGE = "INVALID_RANGE"
    EMPTY_REGISTRY = "EMPTY_REGISTRY"
    ACTION_FAILED = "ACTION_FAILED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"


class GhostFuzzError(Exception):
    """Base class for engine errors with a structured code + message."""

    code: ErrorCode = ErrorCode.ACTION_FAILED

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidRange(GhostFuzzError):
    """Bounding was requested with ``low > high``."""

    code = ErrorCode.INVALID_RANGE

    def __init__(self, low: int, high: int) -> None:
        super().__init__(
            f"bound(): max {high} is less than min {low}",
            {"low": low, "high": high},
        )
        self.low = low
        self.high = high


class EmptyRegistry(GhostFuzzError):
    """Actor selection attempted before any actor was registered."""

    code = ErrorCode.EMPTY_REGISTRY

    def __init__(self) -> None:
        super().__init__("cannot pick an actor from an empty registry")


class ActionFailed(GhostFuzzError):
    """The system under test rejected a call (the equivalent of a revert)."""

    code = ErrorCode.ACTION_FAILED

    def __init__(self, action: str, reason: str) -> None:
        super().__init__(f"{action} reverted: {reason}", {"action": action, "reason": reason})
        self.action = action
        self.reason = reason


class PaymentFailed(GhostFuzzError):
    """An environment-level value transfer funding an action failed."""

    code = ErrorCode.PAYMENT_FAILED

    def __init__(self, payer: str, recipient: str, amount: int) -> None:
        super().__init__(
            f"payment of {amount} from {payer} to {recipient} failed",
            {"payer": payer, "recipient": recipient, "amount": amount},
        )
        self.payer = payer
        self.recipient = recipient
        self.amount = amount


class InvariantViolation(GhostFuzzError):
    """A registered invariant predicate returned False.

    The runner reports violations as data (``FailureReport``); this
    exception exists for callers that prefer to fail loudly, e.g. a pytest
    test calling ``CampaignResult.raise_for_failures()``.
    """

    code = ErrorCode.INVARIANT_VIOLATION

    def __init__(self, predicate_name: str, run_index: int, call_index: int) -> None:
        super().__init__(
            f"invariant {predicate_name!r} violated in run {run_index} at call {call_index}",
            {"predicate": predicate_name, "run_index": run_index, "call_index": call_index},
        )
        self.predicate_name = predicate_name
        self.run_index = run_index
        self.call_index = call_index
