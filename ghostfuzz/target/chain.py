"""Simulated chain environment.

The engine only needs a handful of cheat-code style capabilities from its
environment: set a balance, move ether, run one call as a given identity
and push ether into an account without running its code. ``SimulatedChain``
provides them over plain dicts, with snapshot/restore so a failed action
can be rolled back the way a reverted transaction would be.
"""

from __future__ import annotations

import copy
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Protocol, TypeVar

from ghostfuzz.core.errors import ActionFailed, PaymentFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class CallContext:
    """Caller identity and attached value for a single call."""
    sender: str
    value: int = 0


class Environment(Protocol):
    """Capabilities the Handler requires from its execution environment."""

    def set_balance(self, identity: str, amount: int) -> None: ...

    def balance_of(self, identity: str) -> int: ...

    def transfer(self, src: str, dst: str, amount: int) -> bool: ...

    def act_as(
        self,
        identity: str,
        call: Callable[[CallContext], T],
        value: int = 0,
        target: str | None = None,
    ) -> T: ...

    def inject_out_of_band(self, amount: int, target: str, source: str | None = None) -> None: ...

    def snapshot(self) -> Any: ...

    def restore(self, token: Any) -> None: ...

    def storage(self, address: str) -> dict[str, Any]: ...


class SimulatedChain:
    """Dict-backed ``Environment`` implementation."""

    def __init__(self) -> None:
        self._balances: dict[str, int] = defaultdict(int)
        self._storage: dict[str, dict[str, Any]] = {}
        self._rejecting: set[str] = set()

    # ── Ether ────────────────────────────────────────────────────────

    def set_balance(self, identity: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"balance cannot be negative: {amount}")
        self._balances[identity] = amount

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def reject_payments(self, identity: str) -> None:
        """Make ``identity`` refuse incoming ether (a reverting receive hook)."""
        self._rejecting.add(identity)

    def transfer(self, src: str, dst: str, amount: int) -> bool:
        if amount < 0 or self._balances.get(src, 0) < amount:
            return False
        if dst in self._rejecting:
            return False
        self._balances[src] -= amount
        self._balances[dst] += amount
        return True

    def inject_out_of_band(self, amount: int, target: str, source: str | None = None) -> None:
        """Credit ``target`` without running any of its code.

        Models a self-destruct push: the target's own accounting never sees
        the ether arrive, and rejecting receivers cannot refuse it.
        """
        if amount < 0:
            raise ValueError(f"injection amount cannot be negative: {amount}")
        if source is not None:
            if self._balances.get(source, 0) < amount:
                raise PaymentFailed(source, target, amount)
            self._balances[source] -= amount
        self._balances[target] += amount
        logger.debug("Injected %d wei into %s", amount, target)

    # ── Calls ────────────────────────────────────────────────────────

    def act_as(
        self,
        identity: str,
        call: Callable[[CallContext], T],
        value: int = 0,
        target: str | None = None,
    ) -> T:
        """Run ``call`` once as ``identity``, sending ``value`` to ``target``.

        The call is atomic: if it raises, every balance and storage change
        it made is rolled back before the exception propagates.
        """
        token = self.snapshot()
        if value:
            if target is None:
                raise ValueError("a call carrying value needs a target")
            if value < 0 or self._balances.get(identity, 0) < value:
                raise ActionFailed("call", "insufficient ether for call value")
            self._balances[identity] -= value
            self._balances[target] += value
        try:
            return call(CallContext(sender=identity, value=value))
        except Exception:
            self.restore(token)
            raise

    # ── State ────────────────────────────────────────────────────────

    def storage(self, address: str) -> dict[str, Any]:
        return self._storage.setdefault(address, {})

    def snapshot(self) -> Any:
        return copy.deepcopy((dict(self._balances), self._storage))

    def restore(self, token: Any) -> None:
        balances, storage = copy.deepcopy(token)
        self._balances = defaultdict(int, balances)
        self._storage = storage
