"""Wrapped-ether token ledger, the system under test.

A direct model of WETH9: ether in, tokens out, one token per wei. Total
supply is the ledger's own ether balance, which is exactly why ether pushed
in out-of-band breaks ``total_supply == sum(balances)``.
"""

from __future__ import annotations

from typing import Any, Protocol

from ghostfuzz.core.errors import ActionFailed
from ghostfuzz.fuzzer.bounding import UINT256_MAX
from ghostfuzz.target.chain import CallContext, Environment

WETH_ADDRESS = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"


class TokenLedger(Protocol):
    """Read-only queries the engine's invariants depend on."""

    address: str

    def balance_of(self, owner: str) -> int: ...

    def total_supply(self) -> int: ...

    def allowance(self, owner: str, spender: str) -> int: ...


class WrappedEther:
    """WETH9 semantics over ``Environment`` storage."""

    name = "Wrapped Ether"
    symbol = "WETH"
    decimals = 18

    def __init__(self, env: Environment, address: str = WETH_ADDRESS) -> None:
        self._env = env
        self.address = address
        store = env.storage(address)
        store.setdefault("balance_of", {})
        store.setdefault("allowance", {})

    # Storage is re-read on every access; a restore swaps the dicts out.
    @property
    def _balances(self) -> dict[str, int]:
        return self._env.storage(self.address)["balance_of"]

    @property
    def _allowances(self) -> dict[str, dict[str, int]]:
        return self._env.storage(self.address)["allowance"]

    # ── Queries ──────────────────────────────────────────────────────

    def balance_of(self, owner: str) -> int:
        return self._balances.get(owner, 0)

    def total_supply(self) -> int:
        return self._env.balance_of(self.address)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get(owner, {}).get(spender, 0)

    # ── Mutations ────────────────────────────────────────────────────

    def deposit(self, ctx: CallContext) -> None:
        self._balances[ctx.sender] = self.balance_of(ctx.sender) + ctx.value

    def receive(self, ctx: CallContext) -> None:
        """Plain ether sends are deposits."""
        self.deposit(ctx)

    def withdraw(self, ctx: CallContext, wad: int) -> None:
        _require_amount("withdraw", wad)
        if self.balance_of(ctx.sender) < wad:
            raise ActionFailed("withdraw", "insufficient balance")
        self._balances[ctx.sender] = self.balance_of(ctx.sender) - wad
        if not self._env.transfer(self.address, ctx.sender, wad):
            raise ActionFailed("withdraw", "ether transfer failed")

    def approve(self, ctx: CallContext, spender: str, wad: int) -> bool:
        _require_amount("approve", wad)
        self._allowances.setdefault(ctx.sender, {})[spender] = wad
        return True

    def transfer(self, ctx: CallContext, dst: str, wad: int) -> bool:
        return self._move("transfer", ctx, ctx.sender, dst, wad)

    def transfer_from(self, ctx: CallContext, src: str, dst: str, wad: int) -> bool:
        return self._move("transfer_from", ctx, src, dst, wad)

    def _move(self, action: str, ctx: CallContext, src: str, dst: str, wad: int) -> bool:
        _require_amount(action, wad)
        if self.balance_of(src) < wad:
            raise ActionFailed(action, "insufficient balance")

        if src != ctx.sender:
            allowed = self.allowance(src, ctx.sender)
            if allowed != UINT256_MAX:
                if allowed < wad:
                    raise ActionFailed(action, "insufficient allowance")
                self._allowances.setdefault(src, {})[ctx.sender] = allowed - wad

        self._balances[src] = self.balance_of(src) - wad
        self._balances[dst] = self.balance_of(dst) + wad
        return True

    def state(self) -> dict[str, Any]:
        return {
            "total_supply": self.total_supply(),
            "balances": dict(self._balances),
        }


def _require_amount(action: str, wad: int) -> None:
    if wad < 0 or wad > UINT256_MAX:
        raise ActionFailed(action, f"amount out of uint256 range: {wad}")
