"""Invariant runner — sequence generation, checking, shrinking, reporting.

Architecture
------------
::

    InvariantRunner
      │
      ├── Setup        fresh fixture per run, invariants checked before any call
      ├── Generation   `runs` sequences of up to `depth` calls each
      ├── Checking     every invariant after every call, first failure halts
      ├── Shrinking    SequenceShrinker, each candidate on a fresh fixture
      └── Reporting    FailureReport handed to every sink

Runs are independent and strictly sequential; each run's RNG is seeded from
the campaign seed and the run index so any run can be regenerated.
"""

from __future__ import annotations

import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol

from ghostfuzz.core.config import Settings, default_senders
from ghostfuzz.core.errors import InvariantViolation
from ghostfuzz.core.types import ActionStats, CallRecord, FailureReport
from ghostfuzz.fuzzer.handler import ExecutedCall, Handler
from ghostfuzz.fuzzer.invariants import InvariantSet, StateView, Violation
from ghostfuzz.fuzzer.sequence import SequenceGenerator
from ghostfuzz.fuzzer.shrinker import SequenceShrinker

logger = logging.getLogger(__name__)

SETUP_CALL_INDEX = -1


class HarnessFixture(Protocol):
    handler: Handler

    def view(self) -> StateView: ...


class ReportSink(Protocol):
    def report(self, failure: FailureReport) -> None: ...


FixtureFactory = Callable[[], HarnessFixture]


# ── Configuration & results ──────────────────────────────────────────────────


@dataclass
class CampaignConfig:
    """Configuration for an invariant campaign."""
    runs: int = 256
    depth: int = 15
    seed: int | None = None
    allowed_actions: list[str] | None = None
    shrink: bool = True
    max_shrink_replays: int = 5_000
    stop_on_first_failure: bool = True
    senders: list[str] = field(default_factory=default_senders)

    @classmethod
    def from_settings(cls, settings: Settings) -> CampaignConfig:
        return cls(
            runs=settings.fuzz_runs,
            depth=settings.fuzz_depth,
            seed=settings.fuzz_seed,
            shrink=settings.fuzz_shrink,
            max_shrink_replays=settings.fuzz_max_shrink_replays,
            stop_on_first_failure=settings.fuzz_stop_on_first_failure,
            senders=list(settings.fuzz_senders),
        )


@dataclass
class ReplayOutcome:
    """Result of replaying a sequence against a fresh fixture."""
    calls: list[ExecutedCall] = field(default_factory=list)
    violation: str | None = None
    violation_index: int | None = None
    error: str = ""

    def reproduces(self, predicate: str) -> bool:
        return self.violation == predicate


@dataclass
class CampaignResult:
    """Results from an invariant campaign."""
    campaign_id: str
    seed: int
    runs_executed: int = 0
    total_calls: int = 0
    total_reverts: int = 0
    action_stats: dict[str, ActionStats] = field(default_factory=dict)
    ghost: dict[str, Any] = field(default_factory=dict)
    failures: list[FailureReport] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def passed(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            first = self.failures[0]
            raise InvariantViolation(first.predicate_name, first.run_index, first.call_index)

    def summary(self) -> dict[str, Any]:
        return {
            "campaign_id": self.campaign_id,
            "seed": self.seed,
            "runs": self.runs_executed,
            "calls": self.total_calls,
            "reverts": self.total_reverts,
            "failures": len(self.failures),
            "duration_seconds": round(self.duration_seconds, 3),
        }


# ── Runner ───────────────────────────────────────────────────────────────────


class InvariantRunner:
    """Drive Handler actions and check invariants after every call."""

    def __init__(
        self,
        fixture_factory: FixtureFactory,
        invariants: InvariantSet,
        config: CampaignConfig | None = None,
        sinks: Iterable[ReportSink] | None = None,
    ) -> None:
        if not len(invariants):
            raise ValueError("at least one invariant is required")
        self._factory = fixture_factory
        self._invariants = invariants
        self._config = config or CampaignConfig()
        self._sinks = list(sinks or [])

    def run(self) -> CampaignResult:
        """Execute the full campaign."""
        seed = self._config.seed if self._config.seed is not None else random.SystemRandom().getrandbits(64)
        result = CampaignResult(campaign_id=uuid.uuid4().hex[:12], seed=seed)
        campaign_rng = random.Random(seed)
        start = time.monotonic()

        logger.info(
            "Invariant campaign %s: %d runs x %d calls, %d invariants, seed %d",
            result.campaign_id, self._config.runs, self._config.depth, len(self._invariants), seed,
        )

        for run_index in range(self._config.runs):
            run_seed = campaign_rng.getrandbits(64)
            failure = self._run_once(run_index, run_seed, result)
            result.runs_executed += 1
            if failure is None:
                continue

            result.failures.append(failure)
            for sink in self._sinks:
                sink.report(failure)
            if self._config.stop_on_first_failure or failure.call_index == SETUP_CALL_INDEX:
                break

        result.duration_seconds = time.monotonic() - start
        logger.info(
            "Invariant campaign %s complete: %d runs, %d calls, %d reverts, %d failures in %.2fs",
            result.campaign_id, result.runs_executed, result.total_calls,
            result.total_reverts, len(result.failures), result.duration_seconds,
        )
        return result

    def replay(self, records: list[CallRecord]) -> ReplayOutcome:
        """Replay ``records`` from a fresh fixture, stopping at the first violation."""
        fixture = self._factory()
        view = fixture.view()
        outcome = ReplayOutcome()

        violation = self._invariants.first_violation(view)
        if violation is not None:
            outcome.violation, outcome.violation_index, outcome.error = (
                violation.name, SETUP_CALL_INDEX, violation.error,
            )
            return outcome

        for index, record in enumerate(records):
            outcome.calls.append(fixture.handler.execute(record))
            violation = self._invariants.first_violation(view)
            if violation is not None:
                outcome.violation, outcome.violation_index, outcome.error = (
                    violation.name, index, violation.error,
                )
                break
        return outcome

    # ── Internals ────────────────────────────────────────────────────

    def _run_once(self, run_index: int, run_seed: int, result: CampaignResult) -> FailureReport | None:
        fixture = self._factory()
        view = fixture.view()
        extra = {"campaign_id": result.campaign_id, "run_index": run_index}

        violation = self._invariants.first_violation(view)
        if violation is not None:
            logger.error(
                "Invariant %s fails right after setup, before any call",
                violation.name, extra=extra,
            )
            return FailureReport(
                predicate_name=violation.name,
                run_index=run_index,
                call_index=SETUP_CALL_INDEX,
                error=violation.error,
                seed=run_seed,
            )

        generator = SequenceGenerator(
            random.Random(run_seed),
            fixture.handler.catalog(),
            self._config.senders,
            self._config.allowed_actions,
        )

        records: list[CallRecord] = []
        executed: list[ExecutedCall] = []
        violation: Violation | None = None
        try:
            for call_index in range(self._config.depth):
                record = generator.next_call()
                records.append(record)
                executed.append(fixture.handler.execute(record))
                violation = self._invariants.first_violation(view)
                if violation is not None:
                    break
        finally:
            self._merge_stats(fixture.handler, result)

        if violation is None:
            logger.debug("Run %d passed (%d calls)", run_index, len(records), extra=extra)
            return None

        logger.warning(
            "Invariant %s violated after %d calls (%s)",
            violation.name, len(records), executed[-1].record.signature,
            extra={**extra, "call_index": len(records) - 1, "predicate": violation.name},
        )
        return self._build_report(violation, records, executed, run_index, run_seed)

    def _build_report(
        self,
        violation: Violation,
        records: list[CallRecord],
        executed: list[ExecutedCall],
        run_index: int,
        run_seed: int,
    ) -> FailureReport:
        steps = executed
        shrunk = False
        error = violation.error

        if self._config.shrink and len(records) > 0:
            shrinker = SequenceShrinker(self.replay, self._config.max_shrink_replays)
            minimal = shrinker.shrink(records, violation.name)
            confirmed = self.replay(minimal)
            if confirmed.reproduces(violation.name):
                steps = confirmed.calls
                error = confirmed.error
                shrunk = minimal != records
            else:
                logger.error(
                    "Shrunk sequence for %s did not reproduce on replay; reporting the original",
                    violation.name,
                )

        return FailureReport(
            predicate_name=violation.name,
            sequence=[call.to_step() for call in steps],
            run_index=run_index,
            call_index=len(steps) - 1,
            original_length=len(records),
            shrunk=shrunk,
            error=error,
            seed=run_seed,
        )

    @staticmethod
    def _merge_stats(handler: Handler, result: CampaignResult) -> None:
        for action, stats in handler.stats.items():
            merged = result.action_stats.setdefault(action, ActionStats())
            merged.calls += stats.calls
            merged.reverts += stats.reverts
            merged.payment_failures += stats.payment_failures
            for reason, count in stats.reasons.items():
                merged.reasons[reason] = merged.reasons.get(reason, 0) + count
            result.total_calls += stats.calls
        result.total_reverts += handler.revert_count()
        result.ghost = handler.ghost.snapshot()
