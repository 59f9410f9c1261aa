"""ghostfuzz CLI — run invariant campaigns against the wrapped-ether ledger.

Usage:
    ghostfuzz run                      Run a campaign with settings from the environment
    ghostfuzz replay <report.json>     Replay a saved failure report
    ghostfuzz config                   Show current configuration
    ghostfuzz --version                Print version

Examples:
    ghostfuzz run --runs 512 --depth 30 --seed 42
    ghostfuzz run --actions deposit,withdraw --invariants solvency_deposits
    ghostfuzz run --invariants solvency_balances_naive --format json -o failures.jsonl
    ghostfuzz replay failures.jsonl
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from ghostfuzz import __version__
from ghostfuzz.core.config import Settings, get_settings
from ghostfuzz.core.logging import setup_logging
from ghostfuzz.core.types import FailureReport
from ghostfuzz.fuzzer.invariants import DEFAULT_INVARIANTS, LEDGER_INVARIANTS, build_invariant_set
from ghostfuzz.fuzzer.runner import CampaignConfig, InvariantRunner
from ghostfuzz.reports.forge import render_forge_test
from ghostfuzz.reports.sinks import CollectingSink, ConsoleSink, JsonSink, format_report, summary_line
from ghostfuzz.target.fixtures import weth_fixture_factory

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


def _csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# ── CLI argument parser ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ghostfuzz",
        description="ghostfuzz — stateful invariant fuzzing for token ledgers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")
    parser.add_argument("--log-level", help="Override GHOSTFUZZ_LOG_LEVEL")

    sub = parser.add_subparsers(dest="command")

    # ── run ──────────────────────────────────────────────────────────────────
    run_p = sub.add_parser("run", help="Run an invariant campaign")
    run_p.add_argument("--runs", type=int, help="Number of independent sequences")
    run_p.add_argument("--depth", type=int, help="Calls per sequence")
    run_p.add_argument("--seed", type=int, help="Campaign seed (random when omitted)")
    run_p.add_argument("--actions", type=_csv, help="Comma-separated allow-list of actions")
    run_p.add_argument(
        "--invariants",
        type=_csv,
        help=f"Comma-separated invariants (default: {','.join(DEFAULT_INVARIANTS)})",
    )
    run_p.add_argument("--no-shrink", action="store_true", help="Report failing sequences unshrunk")
    run_p.add_argument(
        "--format",
        "-f",
        choices=["table", "json"],
        help="Failure output format (default: GHOSTFUZZ_REPORT_FORMAT)",
    )
    run_p.add_argument("--output", "-o", help="Write failures to file instead of stdout")
    run_p.add_argument("--forge", help="Write a Foundry reproducer for the first failure to this file")

    # ── replay ───────────────────────────────────────────────────────────────
    replay_p = sub.add_parser("replay", help="Replay a saved failure report")
    replay_p.add_argument("report", help="JSON report file (first line of a JSON-lines file is used)")

    # ── config ───────────────────────────────────────────────────────────────
    sub.add_parser("config", help="Show current configuration")

    return parser


# ── Run command ──────────────────────────────────────────────────────────────


def _campaign_config(args: argparse.Namespace, settings: Settings) -> CampaignConfig:
    config = CampaignConfig.from_settings(settings)
    if args.runs is not None:
        config.runs = args.runs
    if args.depth is not None:
        config.depth = args.depth
    if args.seed is not None:
        config.seed = args.seed
    if args.actions:
        config.allowed_actions = args.actions
    if args.no_shrink:
        config.shrink = False
    return config


def _run_campaign(args: argparse.Namespace, settings: Settings) -> int:
    try:
        invariants = build_invariant_set(args.invariants)
    except ValueError as exc:
        print(_c(f"Error: {exc}", _RED), file=sys.stderr)
        return 2

    fmt = args.format or settings.report_format
    collector = CollectingSink()
    sinks: list = [collector]
    out_file = None
    if args.output:
        out_file = open(args.output, "w", encoding="utf-8")
    if fmt == "json":
        sinks.append(JsonSink(out_file or sys.stdout))
    elif out_file is not None:
        sinks.append(ConsoleSink(out_file, color=False))
    else:
        sinks.append(ConsoleSink(sys.stdout))

    runner = InvariantRunner(
        weth_fixture_factory(settings),
        invariants,
        _campaign_config(args, settings),
        sinks,
    )
    try:
        result = runner.run()
    except ValueError as exc:
        print(_c(f"Error: {exc}", _RED), file=sys.stderr)
        return 2
    finally:
        if out_file is not None:
            out_file.close()

    if args.forge and collector.reports:
        Path(args.forge).write_text(render_forge_test(collector.reports[0]))
        if not args.quiet:
            print(f"  Reproducer written to {_c(args.forge, _CYAN)}", file=sys.stderr)

    if not args.quiet:
        print(summary_line(result.summary(), color=sys.stderr.isatty()), file=sys.stderr)

    return 0 if result.passed else 1


# ── Replay command ───────────────────────────────────────────────────────────


def _load_report(path: str) -> FailureReport:
    text = Path(path).read_text(encoding="utf-8").strip()
    first = text.splitlines()[0] if text.startswith("{") and "\n{" in text else text
    return FailureReport.model_validate_json(first)


def _run_replay(args: argparse.Namespace, settings: Settings) -> int:
    try:
        report = _load_report(args.report)
    except (OSError, ValueError) as exc:
        print(_c(f"Error: cannot load report: {exc}", _RED), file=sys.stderr)
        return 2

    if report.predicate_name not in LEDGER_INVARIANTS:
        print(_c(f"Error: unknown invariant {report.predicate_name!r} in report", _RED), file=sys.stderr)
        return 2
    names = [report.predicate_name]
    runner = InvariantRunner(weth_fixture_factory(settings), build_invariant_set(names))

    outcome = runner.replay(report.records)
    if outcome.reproduces(report.predicate_name):
        replayed = report.model_copy(update={"sequence": [c.to_step() for c in outcome.calls]})
        print(format_report(replayed, color=sys.stdout.isatty()))
        print(_c(f"\nReproduced {report.predicate_name}", _GREEN + _BOLD))
        return 0

    found = outcome.violation or "no violation"
    print(_c(f"Did not reproduce {report.predicate_name} (replay found: {found})", _RED + _BOLD))
    return 1


# ── Config command ───────────────────────────────────────────────────────────


def _run_config(settings: Settings) -> int:
    """Print current settings."""
    print(f"\n{_BOLD}ghostfuzz configuration{_RESET}\n")
    for field_name in sorted(type(settings).model_fields.keys()):
        val = getattr(settings, field_name, "")
        print(f"  {_DIM}{field_name}:{_RESET}  {json.dumps(val) if isinstance(val, list) else val}")
    print()
    return 0


# ── Entrypoint ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"ghostfuzz {__version__}")
        return 0

    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    setup_logging(settings.app_env, args.log_level or ("WARNING" if args.quiet else settings.log_level))

    if args.command == "config":
        return _run_config(settings)

    if args.command == "run":
        return _run_campaign(args, settings)

    if args.command == "replay":
        return _run_replay(args, settings)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
