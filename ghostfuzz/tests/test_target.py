"""Tests for the simulated chain and the wrapped-ether ledger."""

from __future__ import annotations

import pytest

from conftest import ALICE, BOB, CAROL
from ghostfuzz.core.errors import ActionFailed, PaymentFailed
from ghostfuzz.fuzzer.bounding import UINT256_MAX
from ghostfuzz.target.chain import SimulatedChain
from ghostfuzz.target.weth import WETH_ADDRESS, WrappedEther


@pytest.fixture
def chain() -> SimulatedChain:
    env = SimulatedChain()
    env.set_balance(ALICE, 1_000)
    return env


@pytest.fixture
def weth(chain: SimulatedChain) -> WrappedEther:
    return WrappedEther(chain, WETH_ADDRESS)


def _deposit(chain: SimulatedChain, weth: WrappedEther, who: str, amount: int) -> None:
    chain.act_as(who, weth.deposit, value=amount, target=weth.address)


class TestSimulatedChain:

    def test_set_balance_rejects_negative(self, chain):
        with pytest.raises(ValueError):
            chain.set_balance(BOB, -1)

    def test_transfer(self, chain):
        assert chain.transfer(ALICE, BOB, 400) is True
        assert chain.balance_of(ALICE) == 600
        assert chain.balance_of(BOB) == 400

    def test_transfer_insufficient(self, chain):
        assert chain.transfer(ALICE, BOB, 1_001) is False
        assert chain.balance_of(ALICE) == 1_000

    def test_transfer_to_rejecting_receiver(self, chain):
        chain.reject_payments(BOB)
        assert chain.transfer(ALICE, BOB, 1) is False
        assert chain.balance_of(BOB) == 0

    def test_inject_ignores_rejecting_receiver(self, chain):
        chain.reject_payments(BOB)
        chain.inject_out_of_band(50, BOB, source=ALICE)
        assert chain.balance_of(BOB) == 50
        assert chain.balance_of(ALICE) == 950

    def test_inject_without_source_mints(self, chain):
        chain.inject_out_of_band(7, BOB)
        assert chain.balance_of(BOB) == 7
        assert chain.balance_of(ALICE) == 1_000

    def test_inject_short_source_raises(self, chain):
        with pytest.raises(PaymentFailed):
            chain.inject_out_of_band(5_000, BOB, source=ALICE)

    def test_act_as_passes_context(self, chain):
        seen = []
        chain.act_as(ALICE, seen.append, value=10, target=BOB)
        assert seen[0].sender == ALICE
        assert seen[0].value == 10
        assert chain.balance_of(BOB) == 10

    def test_act_as_insufficient_value(self, chain):
        with pytest.raises(ActionFailed, match="insufficient ether"):
            chain.act_as(BOB, lambda ctx: None, value=1, target=ALICE)

    def test_act_as_rolls_back_on_failure(self, chain):
        def failing(ctx):
            chain.storage("0xc0de")["touched"] = True
            raise ActionFailed("call", "boom")

        with pytest.raises(ActionFailed):
            chain.act_as(ALICE, failing, value=100, target=BOB)
        assert chain.balance_of(ALICE) == 1_000
        assert chain.balance_of(BOB) == 0
        assert "touched" not in chain.storage("0xc0de")

    def test_snapshot_restore(self, chain):
        token = chain.snapshot()
        chain.transfer(ALICE, BOB, 500)
        chain.storage("0xc0de")["x"] = 1
        chain.restore(token)
        assert chain.balance_of(ALICE) == 1_000
        assert chain.storage("0xc0de") == {}


class TestWrappedEther:

    def test_deposit_mints_one_to_one(self, chain, weth):
        _deposit(chain, weth, ALICE, 300)
        assert weth.balance_of(ALICE) == 300
        assert weth.total_supply() == 300
        assert chain.balance_of(ALICE) == 700

    def test_receive_is_deposit(self, chain, weth):
        chain.act_as(ALICE, weth.receive, value=25, target=weth.address)
        assert weth.balance_of(ALICE) == 25

    def test_withdraw(self, chain, weth):
        _deposit(chain, weth, ALICE, 300)
        chain.act_as(ALICE, lambda ctx: weth.withdraw(ctx, 100))
        assert weth.balance_of(ALICE) == 200
        assert chain.balance_of(ALICE) == 800
        assert weth.total_supply() == 200

    def test_withdraw_more_than_balance(self, chain, weth):
        _deposit(chain, weth, ALICE, 10)
        with pytest.raises(ActionFailed, match="insufficient balance"):
            chain.act_as(ALICE, lambda ctx: weth.withdraw(ctx, 11))
        assert weth.balance_of(ALICE) == 10

    def test_withdraw_to_rejecting_receiver_reverts(self, chain, weth):
        _deposit(chain, weth, ALICE, 10)
        chain.reject_payments(ALICE)
        with pytest.raises(ActionFailed, match="ether transfer failed"):
            chain.act_as(ALICE, lambda ctx: weth.withdraw(ctx, 10))
        assert weth.balance_of(ALICE) == 10
        assert weth.total_supply() == 10

    def test_transfer(self, chain, weth):
        _deposit(chain, weth, ALICE, 100)
        chain.act_as(ALICE, lambda ctx: weth.transfer(ctx, BOB, 40))
        assert weth.balance_of(ALICE) == 60
        assert weth.balance_of(BOB) == 40

    def test_transfer_from_requires_allowance(self, chain, weth):
        _deposit(chain, weth, ALICE, 100)
        with pytest.raises(ActionFailed, match="insufficient allowance"):
            chain.act_as(BOB, lambda ctx: weth.transfer_from(ctx, ALICE, CAROL, 1))

    def test_transfer_from_spends_allowance(self, chain, weth):
        _deposit(chain, weth, ALICE, 100)
        chain.act_as(ALICE, lambda ctx: weth.approve(ctx, BOB, 50))
        chain.act_as(BOB, lambda ctx: weth.transfer_from(ctx, ALICE, CAROL, 30))
        assert weth.balance_of(CAROL) == 30
        assert weth.allowance(ALICE, BOB) == 20

    def test_infinite_allowance_not_decremented(self, chain, weth):
        _deposit(chain, weth, ALICE, 100)
        chain.act_as(ALICE, lambda ctx: weth.approve(ctx, BOB, UINT256_MAX))
        chain.act_as(BOB, lambda ctx: weth.transfer_from(ctx, ALICE, CAROL, 30))
        assert weth.allowance(ALICE, BOB) == UINT256_MAX

    def test_self_transfer_from_needs_no_allowance(self, chain, weth):
        _deposit(chain, weth, ALICE, 100)
        chain.act_as(ALICE, lambda ctx: weth.transfer_from(ctx, ALICE, BOB, 100))
        assert weth.balance_of(BOB) == 100

    def test_forced_ether_inflates_total_supply(self, chain, weth):
        _deposit(chain, weth, ALICE, 100)
        chain.inject_out_of_band(5, weth.address)
        assert weth.total_supply() == 105
        assert weth.balance_of(ALICE) == 100

    def test_storage_survives_restore(self, chain, weth):
        token = chain.snapshot()
        _deposit(chain, weth, ALICE, 100)
        chain.restore(token)
        assert weth.balance_of(ALICE) == 0
        _deposit(chain, weth, ALICE, 5)
        assert weth.balance_of(ALICE) == 5

    def test_state(self, chain, weth):
        _deposit(chain, weth, ALICE, 9)
        assert weth.state() == {"total_supply": 9, "balances": {ALICE: 9}}
