"""Shared enums and report schemas used across the engine."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ────────────────────────────────────────────────────────────────────


class CallOutcome(str, enum.Enum):
    """Outcome of one Handler call."""

    SUCCESS = "success"
    REVERTED = "reverted"
    PAYMENT_FAILED = "payment_failed"


# ── Sequence Schemas ─────────────────────────────────────────────────────────


class CallRecord(BaseModel):
    """One generated step: raw seeds only, nothing derived from state.

    Records are what gets replayed and shrunk, so everything the Handler
    needs to re-derive the concrete call must live here.
    """

    model_config = ConfigDict(frozen=True)

    action: str
    caller: str
    actor_seed: int = 0
    args: dict[str, Any] = Field(default_factory=dict)

    def with_args(self, **changes: Any) -> "CallRecord":
        """Return a copy with some raw arguments replaced."""
        return self.model_copy(update={"args": {**self.args, **changes}})

    def with_actor_seed(self, actor_seed: int) -> "CallRecord":
        return self.model_copy(update={"actor_seed": actor_seed})

    @property
    def signature(self) -> str:
        arg_str = ", ".join(f"{k}={v}" for k, v in self.args.items())
        return f"{self.action}({arg_str})"


class CallStep(BaseModel):
    """One executed step as it appears in a failure report."""

    actor: str
    action: str
    args: dict[str, Any] = Field(default_factory=dict)
    outcome: CallOutcome = CallOutcome.SUCCESS
    reason: str = ""
    record: CallRecord

    @property
    def signature(self) -> str:
        arg_str = ", ".join(f"{k}={v}" for k, v in self.args.items())
        return f"{self.action}({arg_str})"


class FailureReport(BaseModel):
    """Structured report handed to every reporting sink on a violation."""

    predicate_name: str
    sequence: list[CallStep] = Field(default_factory=list)
    run_index: int
    call_index: int
    original_length: int = 0
    shrunk: bool = False
    error: str = ""
    seed: int | None = None

    @property
    def records(self) -> list[CallRecord]:
        return [step.record for step in self.sequence]


class ActionStats(BaseModel):
    """Per-action call statistics."""

    calls: int = 0
    reverts: int = 0
    payment_failures: int = 0
    reasons: dict[str, int] = Field(default_factory=dict)
