"""Invariant predicates and the registry the runner evaluates.

A predicate is a pure function of a ``StateView``, a read-only facade over
the ledger, the environment, the ghost state and the actor registry. The
runner checks the registered set once after setup and again after every
call; the first predicate to return False halts the run.

Ledger invariants
-----------------
::

    deposits_equal_total_supply   deposit_sum == total supply (deposit-only flows)
    solvency_deposits             ledger ether == deposits + injected - withdrawals
    solvency_balances_naive       total supply == sum(actor balances)
    solvency_balances             total supply - injected == sum(actor balances)
    depositor_balances            every actor balance <= total supply
    ether_conservation            ether held by handler, ledger, actors == funding
    no_negative_state             no negative balance or allowance

``solvency_balances_naive`` ignores out-of-band injections on purpose: it
is the broken form of ``solvency_balances`` and fails once force injection
runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from ghostfuzz.fuzzer.actors import ActorRegistry
from ghostfuzz.fuzzer.ghost import GhostCounter, GhostState
from ghostfuzz.target.weth import TokenLedger

logger = logging.getLogger(__name__)


class StateView:
    """Read-only queries over everything an invariant may inspect."""

    def __init__(
        self,
        ledger: TokenLedger,
        env: Any,
        ghost: GhostState,
        actors: ActorRegistry,
        handler_address: str,
        initial_funds: int = 0,
    ) -> None:
        self._ledger = ledger
        self._env = env
        self._ghost = ghost
        self._actors = actors
        self.handler_address = handler_address
        self.initial_funds = initial_funds

    # ── System under test ────────────────────────────────────────────

    @property
    def ledger_address(self) -> str:
        return self._ledger.address

    def balance_of(self, actor: str) -> int:
        return self._ledger.balance_of(actor)

    def total_supply(self) -> int:
        return self._ledger.total_supply()

    def allowance(self, owner: str, spender: str) -> int:
        return self._ledger.allowance(owner, spender)

    # ── Environment ──────────────────────────────────────────────────

    def ether_of(self, identity: str) -> int:
        return self._env.balance_of(identity)

    # ── Ghost state & actors ─────────────────────────────────────────

    def ghost(self, counter: str | GhostCounter) -> int:
        return self._ghost.get(counter)

    def call_count(self, action: str) -> int:
        return self._ghost.call_count(action)

    def actors(self) -> tuple[str, ...]:
        return self._actors.snapshot()

    def reduce_actors(self, initial: Any, combiner: Callable[[Any, str], Any]) -> Any:
        return self._actors.reduce(initial, combiner)

    def sum_of_balances(self) -> int:
        return self._actors.reduce(0, lambda acc, actor: acc + self.balance_of(actor))


Predicate = Callable[[StateView], bool]


@dataclass(frozen=True)
class Invariant:
    """A named predicate expected to hold after every call."""
    name: str
    predicate: Predicate
    description: str = ""

    def holds(self, view: StateView) -> bool:
        return bool(self.predicate(view))


@dataclass(frozen=True)
class Violation:
    """The first failing predicate after a call."""
    name: str
    error: str = ""


@dataclass
class InvariantSet:
    """Ordered collection of invariants, evaluated in registration order."""
    _invariants: dict[str, Invariant] = field(default_factory=dict)

    def add(self, invariant: Invariant) -> Invariant:
        if invariant.name in self._invariants:
            raise ValueError(f"duplicate invariant name: {invariant.name!r}")
        self._invariants[invariant.name] = invariant
        return invariant

    def register(self, name: str | None = None, description: str = "") -> Callable[[Predicate], Predicate]:
        """Decorator form of ``add``."""

        def decorator(fn: Predicate) -> Predicate:
            self.add(Invariant(name or fn.__name__, fn, description or (fn.__doc__ or "").strip()))
            return fn

        return decorator

    def first_violation(self, view: StateView) -> Violation | None:
        for inv in self._invariants.values():
            try:
                ok = inv.holds(view)
            except Exception as exc:
                logger.warning("Invariant %s raised %s: %s", inv.name, type(exc).__name__, exc)
                return Violation(inv.name, f"{type(exc).__name__}: {exc}")
            if not ok:
                return Violation(inv.name)
        return None

    @property
    def names(self) -> list[str]:
        return list(self._invariants)

    def __contains__(self, name: object) -> bool:
        return name in self._invariants

    def __len__(self) -> int:
        return len(self._invariants)

    def __iter__(self) -> Iterator[Invariant]:
        return iter(list(self._invariants.values()))


# ── Ledger invariants ────────────────────────────────────────────────────────


def deposits_equal_total_supply(view: StateView) -> bool:
    return view.ghost(GhostCounter.DEPOSIT_SUM) == view.total_supply()


def solvency_deposits(view: StateView) -> bool:
    expected = (
        view.ghost(GhostCounter.DEPOSIT_SUM)
        + view.ghost(GhostCounter.FORCE_INJECTED_SUM)
        - view.ghost(GhostCounter.WITHDRAW_SUM)
    )
    return view.ether_of(view.ledger_address) == expected


def solvency_balances_naive(view: StateView) -> bool:
    return view.total_supply() == view.sum_of_balances()


def solvency_balances(view: StateView) -> bool:
    injected = view.ghost(GhostCounter.FORCE_INJECTED_SUM)
    return view.total_supply() - injected == view.sum_of_balances()


def depositor_balances(view: StateView) -> bool:
    supply = view.total_supply()
    return all(view.balance_of(actor) <= supply for actor in view.actors())


def ether_conservation(view: StateView) -> bool:
    holders = {view.handler_address, view.ledger_address, *view.actors()}
    return sum(view.ether_of(h) for h in holders) == view.initial_funds


def no_negative_state(view: StateView) -> bool:
    actors = view.actors()
    for owner in actors:
        if view.balance_of(owner) < 0:
            return False
        for spender in actors:
            if view.allowance(owner, spender) < 0:
                return False
    return True


LEDGER_INVARIANTS: dict[str, Invariant] = {
    inv.name: inv
    for inv in (
        Invariant("deposits_equal_total_supply", deposits_equal_total_supply,
                  "Ghost deposit sum equals total supply (deposit-only flows)"),
        Invariant("solvency_deposits", solvency_deposits,
                  "Ledger ether equals deposits plus injections minus withdrawals"),
        Invariant("solvency_balances_naive", solvency_balances_naive,
                  "Total supply equals the sum of actor balances"),
        Invariant("solvency_balances", solvency_balances,
                  "Total supply minus injected ether equals the sum of actor balances"),
        Invariant("depositor_balances", depositor_balances,
                  "No actor holds more than the total supply"),
        Invariant("ether_conservation", ether_conservation,
                  "Ether is neither created nor destroyed by the handler"),
        Invariant("no_negative_state", no_negative_state,
                  "Balances and allowances are never negative"),
    )
}

DEFAULT_INVARIANTS = (
    "solvency_deposits",
    "solvency_balances",
    "depositor_balances",
    "ether_conservation",
    "no_negative_state",
)


def build_invariant_set(names: list[str] | tuple[str, ...] | None = None) -> InvariantSet:
    """Build an ``InvariantSet`` from ledger invariant names."""
    invariants = InvariantSet()
    for name in names or DEFAULT_INVARIANTS:
        try:
            invariants.add(LEDGER_INVARIANTS[name])
        except KeyError:
            raise ValueError(
                f"unknown invariant {name!r}; available: {', '.join(LEDGER_INVARIANTS)}"
            ) from None
    return invariants
