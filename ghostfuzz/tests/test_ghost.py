"""Tests for ghostfuzz.fuzzer.ghost — monotone ghost accounting."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ghostfuzz.fuzzer.ghost import GhostCounter, GhostState


class TestGhostState:

    def test_unknown_counter_reads_zero(self):
        assert GhostState().get("nothing") == 0

    def test_enum_and_string_names_share_storage(self):
        ghost = GhostState()
        ghost.increment(GhostCounter.DEPOSIT_SUM, 10)
        ghost.increment("deposit_sum", 5)
        assert ghost.get(GhostCounter.DEPOSIT_SUM) == 15
        assert ghost.get("deposit_sum") == 15

    def test_default_increment_is_one(self):
        ghost = GhostState()
        ghost.increment(GhostCounter.ZERO_DEPOSITS)
        ghost.increment(GhostCounter.ZERO_DEPOSITS)
        assert ghost.get(GhostCounter.ZERO_DEPOSITS) == 2

    def test_negative_increment_rejected(self):
        ghost = GhostState()
        ghost.increment(GhostCounter.WITHDRAW_SUM, 3)
        with pytest.raises(ValueError, match="cannot decrease"):
            ghost.increment(GhostCounter.WITHDRAW_SUM, -1)
        assert ghost.get(GhostCounter.WITHDRAW_SUM) == 3

    def test_zero_increment_allowed(self):
        ghost = GhostState()
        ghost.increment(GhostCounter.DEPOSIT_SUM, 0)
        assert ghost.get(GhostCounter.DEPOSIT_SUM) == 0

    def test_call_counts(self):
        ghost = GhostState()
        ghost.increment_call_count("deposit")
        ghost.increment_call_count("deposit")
        ghost.increment_call_count("withdraw")
        assert ghost.call_count("deposit") == 2
        assert ghost.call_count("transfer") == 0
        assert ghost.total_calls == 3

    def test_snapshot_is_a_copy(self):
        ghost = GhostState()
        ghost.increment("x", 1)
        snap = ghost.snapshot()
        ghost.increment("x", 1)
        assert snap == {"counters": {"x": 1}, "calls": {}}

    @given(amounts=st.lists(st.integers(min_value=0, max_value=2**256), max_size=30))
    def test_counter_never_decreases(self, amounts):
        ghost = GhostState()
        previous = 0
        for amount in amounts:
            ghost.increment(GhostCounter.DEPOSIT_SUM, amount)
            current = ghost.get(GhostCounter.DEPOSIT_SUM)
            assert current >= previous
            previous = current
        assert previous == sum(amounts)
