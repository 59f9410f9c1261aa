"""Fixture wiring: a funded Handler in front of a freshly deployed ledger."""

from __future__ import annotations

from dataclasses import dataclass

from ghostfuzz.core.config import Settings
from ghostfuzz.fuzzer.handler import Handler, HandlerConfig, WithdrawSource
from ghostfuzz.fuzzer.invariants import StateView
from ghostfuzz.target.chain import SimulatedChain
from ghostfuzz.target.weth import WETH_ADDRESS, WrappedEther

HANDLER_ADDRESS = "0x2e234dae75c793f67a35089c9d99245e1c58470b"


@dataclass
class Fixture:
    """Everything one run needs, constructed fresh per run and per replay."""
    env: SimulatedChain
    ledger: WrappedEther
    handler: Handler
    initial_funds: int

    def view(self) -> StateView:
        return StateView(
            ledger=self.ledger,
            env=self.env,
            ghost=self.handler.ghost,
            actors=self.handler.actors,
            handler_address=self.handler.address,
            initial_funds=self.initial_funds,
        )


def build_weth_fixture(
    initial_funds: int = 10_000_000 * 10**18,
    config: HandlerConfig | None = None,
    handler_cls: type[Handler] = Handler,
) -> Fixture:
    env = SimulatedChain()
    ledger = WrappedEther(env, WETH_ADDRESS)
    handler = handler_cls(env, ledger, HANDLER_ADDRESS, config)
    env.set_balance(HANDLER_ADDRESS, initial_funds)
    return Fixture(env=env, ledger=ledger, handler=handler, initial_funds=initial_funds)


def handler_config_from_settings(settings: Settings) -> HandlerConfig:
    return HandlerConfig(
        withdraw_source=WithdrawSource(settings.handler_withdraw_source),
        track_zero_amounts=settings.handler_track_zero_amounts,
        track_call_counts=settings.handler_track_call_counts,
        enable_force_inject=settings.handler_enable_force_inject,
    )


def weth_fixture_factory(settings: Settings):
    """Return a zero-argument factory building fixtures from ``settings``.

    Each fixture gets its own ``HandlerConfig``; nothing mutable is shared
    between runs or replays.
    """

    def factory() -> Fixture:
        return build_weth_fixture(settings.handler_initial_funds, handler_config_from_settings(settings))

    return factory
