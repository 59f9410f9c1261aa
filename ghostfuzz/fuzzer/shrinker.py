"""Failing-sequence minimization.

Two passes, repeated until neither makes progress or the replay budget
runs out:

  1. chunk removal (delta debugging): drop halves, quarters, ... of the
     sequence while the same invariant still fails
  2. argument minimization: drive every raw uint argument and actor seed
     toward zero, trying 0 first and then binary-searching

Every candidate is replayed from a fresh fixture. A candidate is accepted
only when its replay violates the same predicate, and it is cut down to
the prefix ending at the violating call, so the result always reproduces
and is never longer than the input.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from ghostfuzz.core.types import CallRecord

logger = logging.getLogger(__name__)


class ReplayResult(Protocol):
    violation: str | None
    violation_index: int | None


Replay = Callable[[list[CallRecord]], ReplayResult]


class SequenceShrinker:
    """Minimize a failing call sequence under a replay budget."""

    def __init__(self, replay: Replay, max_replays: int = 5_000) -> None:
        self._replay = replay
        self.max_replays = max_replays
        self.replays = 0

    @property
    def exhausted(self) -> bool:
        return self.replays >= self.max_replays

    def shrink(self, records: list[CallRecord], predicate: str) -> list[CallRecord]:
        best = self._attempt(list(records), predicate)
        if best is None:
            logger.warning(
                "Sequence of %d calls does not reproduce %s, leaving it unshrunk",
                len(records), predicate,
            )
            return list(records)

        progress = True
        while progress and not self.exhausted:
            progress = False

            reduced = self._remove_chunks(best, predicate)
            if len(reduced) < len(best):
                best = reduced
                progress = True

            minimized = self._minimize_args(best, predicate)
            if minimized != best:
                best = minimized
                progress = True

        logger.info(
            "Shrunk %s reproducer: %d -> %d calls in %d replays",
            predicate, len(records), len(best), self.replays,
        )
        return best

    # ── Replay ───────────────────────────────────────────────────────

    def _attempt(self, candidate: list[CallRecord], predicate: str) -> list[CallRecord] | None:
        """Replay ``candidate``; return its failing prefix if it reproduces."""
        if self.exhausted:
            return None
        self.replays += 1
        outcome = self._replay(candidate)
        if outcome.violation != predicate or outcome.violation_index is None:
            return None
        return candidate[: outcome.violation_index + 1]

    # ── Pass 1: chunk removal ────────────────────────────────────────

    def _remove_chunks(self, records: list[CallRecord], predicate: str) -> list[CallRecord]:
        seq = list(records)
        chunk = len(seq) // 2
        while chunk >= 1 and not self.exhausted:
            i = 0
            while i < len(seq) and not self.exhausted:
                candidate = seq[:i] + seq[i + chunk:]
                reproduced = self._attempt(candidate, predicate)
                if reproduced is not None:
                    seq = reproduced
                else:
                    i += chunk
            chunk //= 2
        return seq

    # ── Pass 2: argument minimization ────────────────────────────────

    def _minimize_args(self, records: list[CallRecord], predicate: str) -> list[CallRecord]:
        seq = list(records)
        for index in range(len(seq)):
            fields = ["actor_seed", *seq[index].args]
            for name in fields:
                if self.exhausted:
                    return seq
                shrunk = self._minimize_field(seq, index, name, predicate)
                if shrunk is None:
                    continue
                if len(shrunk) < len(seq):
                    # the violation moved earlier; start over on the shorter sequence
                    return shrunk
                seq = shrunk
        return seq

    def _minimize_field(
        self, seq: list[CallRecord], index: int, name: str, predicate: str
    ) -> list[CallRecord] | None:
        record = seq[index]
        current = record.actor_seed if name == "actor_seed" else record.args[name]

        if isinstance(current, bool):
            if not current:
                return None
            return self._attempt(_replace(seq, index, name, False), predicate)
        if not isinstance(current, int) or current <= 0:
            return None

        found = self._attempt(_replace(seq, index, name, 0), predicate)
        if found is not None:
            return found

        # 0 fails and ``current`` reproduces: search (lo, hi] for the smallest
        lo, hi = 0, current
        best: list[CallRecord] | None = None
        while hi - lo > 1 and not self.exhausted:
            mid = (lo + hi) // 2
            found = self._attempt(_replace(seq, index, name, mid), predicate)
            if found is not None:
                hi = mid
                best = found
                if len(found) < len(seq):
                    return found
            else:
                lo = mid
        return best


def _replace(seq: list[CallRecord], index: int, name: str, value: Any) -> list[CallRecord]:
    record = seq[index]
    if name == "actor_seed":
        updated = record.with_actor_seed(value)
    else:
        updated = record.with_args(**{name: value})
    return [*seq[:index], updated, *seq[index + 1:]]
