"""Tests for ghostfuzz.fuzzer.actors — the actor registry."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ghostfuzz.core.errors import EmptyRegistry, ErrorCode
from ghostfuzz.fuzzer.actors import ActorRegistry

addresses = st.integers(min_value=0, max_value=2**160 - 1).map(lambda n: f"0x{n:040x}")


class TestActorRegistry:
    """Insertion order, deduplication and deterministic selection."""

    def test_empty(self):
        reg = ActorRegistry()
        assert reg.count() == 0
        assert len(reg) == 0
        assert reg.snapshot() == ()

    def test_pick_empty_raises(self):
        with pytest.raises(EmptyRegistry) as exc_info:
            ActorRegistry().pick(0)
        assert exc_info.value.code == ErrorCode.EMPTY_REGISTRY

    def test_add_is_idempotent(self):
        reg = ActorRegistry()
        reg.add("0xa")
        reg.add("0xb")
        reg.add("0xa")
        assert reg.count() == 2
        assert reg.snapshot() == ("0xa", "0xb")

    def test_contains(self):
        reg = ActorRegistry()
        reg.add("0xa")
        assert reg.contains("0xa")
        assert "0xa" in reg
        assert not reg.contains("0xb")

    def test_pick_is_seed_mod_count(self):
        reg = ActorRegistry()
        for actor in ("0xa", "0xb", "0xc"):
            reg.add(actor)
        assert reg.pick(0) == "0xa"
        assert reg.pick(4) == "0xb"
        assert reg.pick(2**256 - 1) == ("0xa", "0xb", "0xc")[(2**256 - 1) % 3]

    def test_for_each_visits_in_order(self):
        reg = ActorRegistry()
        for actor in ("0xc", "0xa", "0xb"):
            reg.add(actor)
        seen: list[str] = []
        reg.for_each(seen.append)
        assert seen == ["0xc", "0xa", "0xb"]

    def test_reduce(self):
        reg = ActorRegistry()
        for actor in ("0xa", "0xbb", "0xccc"):
            reg.add(actor)
        assert reg.reduce(0, lambda acc, actor: acc + len(actor)) == 3 + 4 + 5

    def test_iteration_is_isolated_from_additions(self):
        reg = ActorRegistry()
        reg.add("0xa")
        it = iter(reg)
        reg.add("0xb")
        assert list(it) == ["0xa"]

    @given(actors=st.lists(addresses, min_size=1, max_size=20), seed=st.integers(min_value=0, max_value=2**256 - 1))
    def test_pick_always_returns_member(self, actors, seed):
        reg = ActorRegistry()
        for actor in actors:
            reg.add(actor)
        picked = reg.pick(seed)
        assert picked in reg
        assert picked == reg.pick(seed)

    @given(actors=st.lists(addresses, max_size=20))
    def test_count_matches_distinct_actors(self, actors):
        reg = ActorRegistry()
        for actor in actors:
            reg.add(actor)
            reg.add(actor)
        assert reg.count() == len(set(actors))
        assert list(reg) == list(dict.fromkeys(actors))
