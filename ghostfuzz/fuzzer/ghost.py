"""Ghost state — accounting tracked alongside the system under test.

Counters only grow. Net quantities (deposits minus withdrawals) are
computed by invariants from several monotone counters, never stored.
"""

from __future__ import annotations

from collections import defaultdict
from enum import Enum
from typing import Any


class GhostCounter(str, Enum):
    """Well-known ghost counter names used by the ledger Handler."""

    DEPOSIT_SUM = "deposit_sum"
    WITHDRAW_SUM = "withdraw_sum"
    FORCE_INJECTED_SUM = "force_injected_sum"
    ZERO_DEPOSITS = "zero_deposits"
    ZERO_WITHDRAWALS = "zero_withdrawals"
    ZERO_TRANSFERS = "zero_transfers"
    ZERO_TRANSFER_FROMS = "zero_transfer_froms"
    ZERO_FORCE_INJECTIONS = "zero_force_injections"


def _key(counter: str | GhostCounter) -> str:
    return counter.value if isinstance(counter, GhostCounter) else counter


class GhostState:
    """Named monotone accumulators plus per-action call counters."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._calls: dict[str, int] = defaultdict(int)

    def increment(self, counter: str | GhostCounter, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError(f"ghost counter {_key(counter)!r} cannot decrease (amount={amount})")
        self._counters[_key(counter)] += amount

    def increment_call_count(self, action: str) -> None:
        self._calls[action] += 1

    def get(self, counter: str | GhostCounter) -> int:
        return self._counters.get(_key(counter), 0)

    def call_count(self, action: str) -> int:
        return self._calls.get(action, 0)

    @property
    def total_calls(self) -> int:
        return sum(self._calls.values())

    def snapshot(self) -> dict[str, Any]:
        return {"counters": dict(self._counters), "calls": dict(self._calls)}
