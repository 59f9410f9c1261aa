"""Shared fixtures for the ghostfuzz test suite."""

from __future__ import annotations

import logging
from typing import Callable

import pytest

from ghostfuzz.core.config import ETHER, get_settings
from ghostfuzz.core.logging import DevFormatter, JSONFormatter
from ghostfuzz.core.types import CallRecord
from ghostfuzz.fuzzer.handler import Handler, HandlerConfig
from ghostfuzz.fuzzer.invariants import build_invariant_set
from ghostfuzz.fuzzer.runner import CampaignConfig, InvariantRunner
from ghostfuzz.target.fixtures import Fixture, build_weth_fixture

ALICE = "0x00000000000000000000000000000000000a11ce"
BOB = "0x0000000000000000000000000000000000000b0b"
CAROL = "0x00000000000000000000000000000000000ca201"

INITIAL_FUNDS = 1_000 * ETHER


def record(action: str, caller: str = ALICE, actor_seed: int = 0, **args) -> CallRecord:
    """Build a CallRecord with keyword arguments as raw args."""
    return CallRecord(action=action, caller=caller, actor_seed=actor_seed, args=args)


def make_runner(
    invariants: list[str],
    config: CampaignConfig | None = None,
    handler_cls: type[Handler] = Handler,
    handler_config: HandlerConfig | None = None,
    sinks: list | None = None,
) -> InvariantRunner:
    def factory() -> Fixture:
        return build_weth_fixture(INITIAL_FUNDS, handler_config, handler_cls)

    return InvariantRunner(factory, build_invariant_set(invariants), config, sinks)


# ── Settings ─────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Every test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """Drop handlers installed by setup_logging during CLI tests."""
    root = logging.getLogger()
    level = root.level
    yield
    for log_handler in list(root.handlers):
        if isinstance(log_handler.formatter, (DevFormatter, JSONFormatter)):
            root.removeHandler(log_handler)
    root.setLevel(level)


# ── Harness Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def weth_fixture() -> Fixture:
    """Return a freshly deployed ledger with a funded Handler in front of it."""
    return build_weth_fixture(INITIAL_FUNDS)


@pytest.fixture
def handler(weth_fixture: Fixture) -> Handler:
    return weth_fixture.handler


@pytest.fixture
def fixture_factory() -> Callable[..., Fixture]:
    """Return a builder for fixtures with a custom handler config or class."""

    def build(config: HandlerConfig | None = None, handler_cls: type[Handler] = Handler) -> Fixture:
        return build_weth_fixture(INITIAL_FUNDS, config, handler_cls)

    return build
