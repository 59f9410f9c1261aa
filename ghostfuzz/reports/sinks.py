"""Reporting sinks for invariant failures."""

from __future__ import annotations

import sys
from typing import Any, TextIO

from ghostfuzz.core.types import CallOutcome, FailureReport

# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"


def _c(text: str, code: str, enabled: bool = True) -> str:
    return f"{code}{text}{_RESET}" if enabled else text


def _fmt_arg(value: Any) -> str:
    if isinstance(value, int) and not isinstance(value, bool) and value > 10**12:
        return f"{value} ({value:.3e})"
    return str(value)


def format_report(report: FailureReport, color: bool = False) -> str:
    """Render a failure report as plain (optionally coloured) text."""
    lines = [
        _c(f"Invariant violated: {report.predicate_name}", _RED + _BOLD, color),
        f"  run {report.run_index}, seed {report.seed}",
    ]
    if report.call_index < 0:
        lines.append("  the invariant fails immediately after setup, before any call")
    else:
        shrunk = (
            f"shrunk from {report.original_length} calls"
            if report.shrunk else "not shrunk"
        )
        lines.append(f"  {len(report.sequence)} call(s), {shrunk}")
    if report.error:
        lines.append(f"  error: {report.error}")
    lines.append("")

    for i, step in enumerate(report.sequence):
        args = ", ".join(f"{k}={_fmt_arg(v)}" for k, v in step.args.items())
        marker = _c("->", _RED, color) if i == len(report.sequence) - 1 else "  "
        line = f"  {marker} {i:>3}. {_c(step.actor, _CYAN, color)} {_c(step.action, _BOLD, color)}({args})"
        if step.outcome != CallOutcome.SUCCESS:
            line += _c(f"  [{step.outcome.value}: {step.reason}]", _YELLOW, color)
        lines.append(line)
    return "\n".join(lines)


class ConsoleSink:
    """Print each failure to a text stream as it is found."""

    def __init__(self, stream: TextIO | None = None, color: bool | None = None) -> None:
        self._stream = stream or sys.stdout
        if color is None:
            color = hasattr(self._stream, "isatty") and self._stream.isatty()
        self._color = color

    def report(self, failure: FailureReport) -> None:
        print(format_report(failure, self._color), file=self._stream)
        print(file=self._stream)


class JsonSink:
    """Write each failure as one JSON line."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def report(self, failure: FailureReport) -> None:
        self._stream.write(failure.model_dump_json() + "\n")
        self._stream.flush()


class CollectingSink:
    """Keep failures in memory (tests, programmatic use)."""

    def __init__(self) -> None:
        self.reports: list[FailureReport] = []

    def report(self, failure: FailureReport) -> None:
        self.reports.append(failure)


def summary_line(summary: dict[str, Any], color: bool = False) -> str:
    status = (
        _c("PASS", _GREEN + _BOLD, color) if not summary.get("failures")
        else _c("FAIL", _RED + _BOLD, color)
    )
    return (
        f"{status}  runs: {summary['runs']}  calls: {summary['calls']}  "
        f"reverts: {summary['reverts']}  failures: {summary['failures']}  "
        f"seed: {summary['seed']}  ({summary['duration_seconds']:.2f}s)"
    )
