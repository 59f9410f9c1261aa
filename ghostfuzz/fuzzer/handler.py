"""Handler — the action catalog the fuzzer is restricted to.

Every interaction between the runner and the system under test goes
through ``Handler.execute``. Each action follows the same shape:

  1. resolve the acting identity (capture the caller, or pick a known actor)
  2. bound every numeric argument against live state
  3. fund the identity from the Handler's own ether when value is attached
  4. run the ledger operation as that identity
  5. on success, update ghost counters
  6. register new counterparties

A call is a transaction: if the ledger or the environment rejects it, the
environment is restored to the state before the call and nothing is
written to the ghost state or the actor registry.

Catalog
-------
::

    deposit(amount)                              CALLER   amount <= handler ether
    send_fallback(amount)                        CALLER   amount <= handler ether
    withdraw(amount)                             SEEDED   amount <= token balance
    approve(spender, amount)                     SEEDED   amount unbounded
    transfer(to, amount)                         SEEDED   amount <= actor balance
    transfer_from(owner, to, approve_first, amount)
                                                 SEEDED   amount <= owner balance
    force_inject(amount)                         handler  amount <= handler ether
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from ghostfuzz.core.errors import ActionFailed, EmptyRegistry, PaymentFailed
from ghostfuzz.core.types import ActionStats, CallOutcome, CallRecord, CallStep
from ghostfuzz.fuzzer.actors import ActorRegistry
from ghostfuzz.fuzzer.bounding import UINT256_MAX, Bounder
from ghostfuzz.fuzzer.ghost import GhostCounter, GhostState

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "0x00000000000000000000000000000000000d3fa1"


# ── Configuration ────────────────────────────────────────────────────────────


class IdentityPolicy(str, Enum):
    """How an action resolves its acting identity."""
    CALLER = "caller"    # register and act as the record's caller
    SEEDED = "seeded"    # pick a registered actor with the record's actor seed


class CounterpartyPolicy(str, Enum):
    """How an action resolves spender / owner / destination arguments."""
    SEEDED = "seeded"    # uint seed into the actor registry
    ADDRESS = "address"  # explicit address, registered on success


class WithdrawSource(str, Enum):
    """Whose token balance a withdrawal is bounded against."""
    ACTOR = "actor"      # actor withdraws its own tokens, forwards ether to the handler
    HANDLER = "handler"  # handler withdraws its own tokens to itself


class ParamKind(str, Enum):
    UINT = "uint"
    ADDRESS = "address"
    BOOL = "bool"


@dataclass(frozen=True)
class Param:
    name: str
    kind: ParamKind = ParamKind.UINT


@dataclass(frozen=True)
class ActionSpec:
    """Name and raw parameter layout of one fuzzable action."""
    name: str
    params: tuple[Param, ...] = ()
    uses_actor: bool = True


@dataclass(frozen=True)
class ActionPolicy:
    identity: IdentityPolicy = IdentityPolicy.SEEDED
    counterparties: CounterpartyPolicy = CounterpartyPolicy.SEEDED


def _default_policies() -> dict[str, ActionPolicy]:
    return {
        "deposit": ActionPolicy(IdentityPolicy.CALLER),
        "send_fallback": ActionPolicy(IdentityPolicy.CALLER),
        "withdraw": ActionPolicy(IdentityPolicy.SEEDED),
        "approve": ActionPolicy(IdentityPolicy.SEEDED, CounterpartyPolicy.SEEDED),
        "transfer": ActionPolicy(IdentityPolicy.SEEDED, CounterpartyPolicy.ADDRESS),
        "transfer_from": ActionPolicy(IdentityPolicy.SEEDED, CounterpartyPolicy.SEEDED),
    }


@dataclass
class HandlerConfig:
    """Per-action identity policies and optional bookkeeping."""
    policies: dict[str, ActionPolicy] = field(default_factory=_default_policies)
    withdraw_source: WithdrawSource = WithdrawSource.ACTOR
    track_zero_amounts: bool = True
    track_call_counts: bool = True
    enable_force_inject: bool = True
    default_actor: str = DEFAULT_ACTOR

    def policy(self, action: str) -> ActionPolicy:
        return self.policies.get(action, ActionPolicy())


# ── Execution record ─────────────────────────────────────────────────────────


@dataclass
class ExecutedCall:
    """A call as it actually ran: resolved actor and bounded arguments."""
    record: CallRecord
    actor: str
    args: dict[str, Any] = field(default_factory=dict)
    outcome: CallOutcome = CallOutcome.SUCCESS
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome == CallOutcome.SUCCESS

    def to_step(self) -> CallStep:
        return CallStep(
            actor=self.actor,
            action=self.record.action,
            args=dict(self.args),
            outcome=self.outcome,
            reason=self.reason,
            record=self.record,
        )


# ── Handler ──────────────────────────────────────────────────────────────────


class Handler:
    """Action catalog over a token ledger and its environment.

    The Handler owns the ghost state and the actor registry; nothing
    outside it writes to either.
    """

    def __init__(
        self,
        env: Any,
        ledger: Any,
        address: str,
        config: HandlerConfig | None = None,
    ) -> None:
        self.env = env
        self.ledger = ledger
        self.address = address
        self.config = config or HandlerConfig()

        self.ghost = GhostState()
        self.actors = ActorRegistry()
        self.bound = Bounder()
        self.stats: dict[str, ActionStats] = {}

        self.current_actor: str = ""
        self._pending_actors: list[str] = []
        self._concrete: dict[str, Any] = {}

        self._specs = {spec.name: spec for spec in self._build_catalog()}
        self._actions: dict[str, Callable[..., None]] = {
            name: getattr(self, name) for name in self._specs
        }

    # ── Catalog ──────────────────────────────────────────────────────

    def _counterparty_kind(self, action: str) -> ParamKind:
        policy = self.config.policy(action)
        return ParamKind.ADDRESS if policy.counterparties == CounterpartyPolicy.ADDRESS else ParamKind.UINT

    def _build_catalog(self) -> list[ActionSpec]:
        amount = Param("amount")
        specs = [
            ActionSpec("deposit", (amount,)),
            ActionSpec("send_fallback", (amount,)),
            ActionSpec("withdraw", (amount,)),
            ActionSpec("approve", (Param("spender", self._counterparty_kind("approve")), amount)),
            ActionSpec("transfer", (Param("to", self._counterparty_kind("transfer")), amount)),
            ActionSpec(
                "transfer_from",
                (
                    Param("owner", self._counterparty_kind("transfer_from")),
                    Param("to", self._counterparty_kind("transfer_from")),
                    Param("approve_first", ParamKind.BOOL),
                    amount,
                ),
            ),
        ]
        if self.config.enable_force_inject:
            specs.append(ActionSpec("force_inject", (amount,), uses_actor=False))
        return specs

    def catalog(self) -> list[ActionSpec]:
        return list(self._specs.values())

    def action_names(self) -> list[str]:
        return list(self._specs)

    # ── Entry point ──────────────────────────────────────────────────

    def execute(self, record: CallRecord) -> ExecutedCall:
        """Run one recorded call as a single transaction."""
        spec = self._specs.get(record.action)
        if spec is None:
            raise ValueError(f"unknown action {record.action!r}; available: {', '.join(self._specs)}")

        stats = self.stats.setdefault(record.action, ActionStats())
        stats.calls += 1

        checkpoint = self.env.snapshot()
        self._pending_actors = []
        self._concrete = {}
        self.current_actor = self._resolve_actor(record, spec)

        try:
            self._actions[record.action](**record.args)
        except (ActionFailed, PaymentFailed) as exc:
            self.env.restore(checkpoint)
            if isinstance(exc, PaymentFailed):
                stats.payment_failures += 1
                outcome = CallOutcome.PAYMENT_FAILED
            else:
                stats.reverts += 1
                outcome = CallOutcome.REVERTED
            stats.reasons[exc.message] = stats.reasons.get(exc.message, 0) + 1
            logger.debug(
                "%s as %s failed: %s", record.action, self.current_actor, exc.message,
                extra={"action": record.action},
            )
            return ExecutedCall(record, self.current_actor, dict(self._concrete), outcome, exc.message)

        for actor in self._pending_actors:
            self.actors.add(actor)
        if self.config.track_call_counts:
            self.ghost.increment_call_count(record.action)

        logger.debug(
            "%s as %s: %s", record.action, self.current_actor, self._concrete,
            extra={"action": record.action},
        )
        return ExecutedCall(record, self.current_actor, dict(self._concrete))

    def call(self, action: str, caller: str = DEFAULT_ACTOR, actor_seed: int = 0, **args: Any) -> ExecutedCall:
        """Convenience wrapper building the ``CallRecord`` for ``execute``."""
        return self.execute(CallRecord(action=action, caller=caller, actor_seed=actor_seed, args=args))

    # ── Identity resolution ──────────────────────────────────────────

    def _resolve_actor(self, record: CallRecord, spec: ActionSpec) -> str:
        if not spec.uses_actor:
            return self.address
        if spec.name == "withdraw" and self.config.withdraw_source == WithdrawSource.HANDLER:
            return self.address

        policy = self.config.policy(spec.name)
        if policy.identity == IdentityPolicy.CALLER:
            self._pending_actors.append(record.caller)
            return record.caller
        return self._pick(record.actor_seed)

    def _pick(self, seed: Any) -> str:
        try:
            return self.actors.pick(_as_seed(seed))
        except EmptyRegistry:
            logger.debug("No actors registered yet, falling back to %s", self.config.default_actor)
            self._pending_actors.append(self.config.default_actor)
            return self.config.default_actor

    def _counterparty(self, action: str, raw: Any) -> str:
        if self.config.policy(action).counterparties == CounterpartyPolicy.ADDRESS:
            address = _as_address(raw)
            self._pending_actors.append(address)
            return address
        return self._pick(raw)

    # ── Payments ─────────────────────────────────────────────────────

    def _pay(self, payer: str, recipient: str, amount: int) -> None:
        if not self.env.transfer(payer, recipient, amount):
            raise PaymentFailed(payer, recipient, amount)

    def _record(self, counter: GhostCounter, amount: int, zero_counter: GhostCounter | None = None) -> None:
        self.ghost.increment(counter, amount)
        if zero_counter is not None and amount == 0 and self.config.track_zero_amounts:
            self.ghost.increment(zero_counter)

    # ── Actions ──────────────────────────────────────────────────────

    def deposit(self, amount: int) -> None:
        actor = self.current_actor
        amount = self.bound(amount, 0, self.env.balance_of(self.address))
        self._concrete["amount"] = amount

        self._pay(self.address, actor, amount)
        self.env.act_as(actor, self.ledger.deposit, value=amount, target=self.ledger.address)
        self._record(GhostCounter.DEPOSIT_SUM, amount, GhostCounter.ZERO_DEPOSITS)

    def send_fallback(self, amount: int) -> None:
        actor = self.current_actor
        amount = self.bound(amount, 0, self.env.balance_of(self.address))
        self._concrete["amount"] = amount

        self._pay(self.address, actor, amount)
        self.env.act_as(actor, self.ledger.receive, value=amount, target=self.ledger.address)
        self._record(GhostCounter.DEPOSIT_SUM, amount, GhostCounter.ZERO_DEPOSITS)

    def withdraw(self, amount: int) -> None:
        actor = self.current_actor
        amount = self.bound(amount, 0, self.ledger.balance_of(actor))
        self._concrete["amount"] = amount

        self.env.act_as(actor, lambda ctx: self.ledger.withdraw(ctx, amount))
        if actor != self.address:
            self._pay(actor, self.address, amount)
        self._record(GhostCounter.WITHDRAW_SUM, amount, GhostCounter.ZERO_WITHDRAWALS)

    def approve(self, spender: Any, amount: int) -> None:
        actor = self.current_actor
        spender = self._counterparty("approve", spender)
        amount = self.bound(amount, 0, UINT256_MAX)
        self._concrete.update(spender=spender, amount=amount)

        self.env.act_as(actor, lambda ctx: self.ledger.approve(ctx, spender, amount))

    def transfer(self, to: Any, amount: int) -> None:
        actor = self.current_actor
        to = self._counterparty("transfer", to)
        amount = self.bound(amount, 0, self.ledger.balance_of(actor))
        self._concrete.update(to=to, amount=amount)

        self.env.act_as(actor, lambda ctx: self.ledger.transfer(ctx, to, amount))
        if amount == 0 and self.config.track_zero_amounts:
            self.ghost.increment(GhostCounter.ZERO_TRANSFERS)

    def transfer_from(self, owner: Any, to: Any, approve_first: Any, amount: int) -> None:
        actor = self.current_actor
        owner = self._counterparty("transfer_from", owner)
        to = self._counterparty("transfer_from", to)
        approve_first = bool(approve_first)
        amount = self.bound(amount, 0, self.ledger.balance_of(owner))

        if approve_first:
            self.env.act_as(owner, lambda ctx: self.ledger.approve(ctx, actor, amount))
        else:
            amount = self.bound(amount, 0, self.ledger.allowance(owner, actor))
        self._concrete.update(owner=owner, to=to, approve_first=approve_first, amount=amount)

        self.env.act_as(actor, lambda ctx: self.ledger.transfer_from(ctx, owner, to, amount))
        if amount == 0 and self.config.track_zero_amounts:
            self.ghost.increment(GhostCounter.ZERO_TRANSFER_FROMS)

    def force_inject(self, amount: int) -> None:
        amount = self.bound(amount, 0, self.env.balance_of(self.address))
        self._concrete["amount"] = amount

        self.env.inject_out_of_band(amount, self.ledger.address, source=self.address)
        self._record(GhostCounter.FORCE_INJECTED_SUM, amount, GhostCounter.ZERO_FORCE_INJECTIONS)

    # ── Statistics ───────────────────────────────────────────────────

    def revert_count(self) -> int:
        return sum(s.reverts + s.payment_failures for s in self.stats.values())


def _as_seed(raw: Any) -> int:
    if isinstance(raw, str):
        return int(raw, 16)
    return int(raw)


def _as_address(raw: Any) -> str:
    if isinstance(raw, str):
        return raw.lower()
    return f"0x{int(raw) % 2**160:040x}"
