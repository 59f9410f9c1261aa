"""Tests for ghostfuzz.fuzzer.shrinker — failing-sequence minimization."""

from __future__ import annotations

from dataclasses import dataclass

from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import INITIAL_FUNDS, make_runner, record
from ghostfuzz.fuzzer.shrinker import SequenceShrinker


@dataclass
class _Outcome:
    violation: str | None = None
    violation_index: int | None = None


def _boom_replay(threshold: int = 10):
    """Fails at the first ``boom`` call whose ``x`` is at least ``threshold``."""
    calls = []

    def replay(records):
        calls.append(list(records))
        for index, rec in enumerate(records):
            if rec.action == "boom" and rec.args["x"] >= threshold:
                return _Outcome("boom_invariant", index)
        return _Outcome()

    replay.calls = calls
    return replay


class TestSequenceShrinker:

    def test_removes_irrelevant_calls_and_minimizes_args(self):
        records = [
            record("noop", x=5),
            record("noop", x=6),
            record("boom", actor_seed=99, x=12345),
            record("noop", x=7),
        ]
        shrunk = SequenceShrinker(_boom_replay()).shrink(records, "boom_invariant")

        assert len(shrunk) == 1
        assert shrunk[0].action == "boom"
        assert shrunk[0].args["x"] == 10
        assert shrunk[0].actor_seed == 0

    def test_keeps_failing_prefix_only(self):
        records = [record("boom", x=10), record("noop", x=1), record("noop", x=2)]
        shrunk = SequenceShrinker(_boom_replay()).shrink(records, "boom_invariant")
        assert shrunk == [record("boom", x=10)]

    def test_non_reproducing_input_returned_unchanged(self):
        records = [record("noop", x=1)]
        assert SequenceShrinker(_boom_replay()).shrink(records, "boom_invariant") == records

    def test_different_predicate_is_not_a_reproduction(self):
        records = [record("boom", x=50)]
        assert SequenceShrinker(_boom_replay()).shrink(records, "other") == records

    def test_zero_budget_returns_input(self):
        records = [record("noop", x=1), record("boom", x=50)]
        shrinker = SequenceShrinker(_boom_replay(), max_replays=0)
        assert shrinker.shrink(records, "boom_invariant") == records
        assert shrinker.replays == 0

    def test_budget_respected(self):
        records = [record("noop", x=i) for i in range(40)] + [record("boom", x=2**200)]
        replay = _boom_replay()
        shrinker = SequenceShrinker(replay, max_replays=25)
        shrunk = shrinker.shrink(records, "boom_invariant")

        assert shrinker.replays <= 25
        assert len(replay.calls) == shrinker.replays
        assert len(shrunk) <= len(records)
        assert replay(shrunk).violation == "boom_invariant"

    def test_bool_args_driven_to_false(self):
        def replay(records):
            for index, rec in enumerate(records):
                if rec.action == "boom":
                    return _Outcome("p", index)
            return _Outcome()

        shrunk = SequenceShrinker(replay).shrink([record("boom", flag=True, x=3)], "p")
        assert shrunk[0].args == {"flag": False, "x": 0}

    def test_non_numeric_args_left_alone(self):
        def replay(records):
            return _Outcome("p", 0) if records else _Outcome()

        shrunk = SequenceShrinker(replay).shrink([record("boom", to="0xabc", x=3)], "p")
        assert shrunk[0].args == {"to": "0xabc", "x": 0}


class TestShrinkingAgainstLedger:
    """Shrunk sequences are never longer and always reproduce on a fresh fixture."""

    @settings(max_examples=25, deadline=None)
    @given(
        steps=st.lists(
            st.tuples(
                st.sampled_from(["deposit", "withdraw", "transfer", "force_inject"]),
                st.integers(min_value=0, max_value=INITIAL_FUNDS * 2),
                st.integers(min_value=0, max_value=8),
            ),
            min_size=1,
            max_size=12,
        )
    )
    def test_shrunk_sequence_reproduces(self, steps):
        runner = make_runner(["solvency_balances_naive"])
        records = []
        for action, amount, seed in steps:
            args = {"amount": amount}
            if action == "transfer":
                args["to"] = "0x0000000000000000000000000000000000000b0b"
            records.append(record(action, actor_seed=seed, **args))

        original = runner.replay(records)
        if original.violation is None:
            return

        shrunk = SequenceShrinker(runner.replay).shrink(records, original.violation)
        assert len(shrunk) <= len(records)
        assert runner.replay(shrunk).reproduces(original.violation)
