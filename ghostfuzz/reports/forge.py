"""Foundry reproducer text for a failure report.

Emits a ``forge-std`` test that replays the (shrunk) sequence with
``vm.prank``/``vm.deal``. Only source text is produced.
"""

from __future__ import annotations

from ghostfuzz.core.types import CallOutcome, CallStep, FailureReport


def _addr(value: str) -> str:
    return f"address({value})"


def _step_lines(step: CallStep) -> list[str]:
    a = step.args
    actor = _addr(step.actor)
    action = step.action

    if action == "deposit":
        return [
            f"vm.deal({actor}, {a['amount']});",
            f"vm.prank({actor});",
            f"weth.deposit{{value: {a['amount']}}}();",
        ]
    if action == "send_fallback":
        return [
            f"vm.deal({actor}, {a['amount']});",
            f"vm.prank({actor});",
            f'{{ (bool ok,) = address(weth).call{{value: {a["amount"]}}}(""); require(ok); }}',
        ]
    if action == "withdraw":
        return [f"vm.prank({actor});", f"weth.withdraw({a['amount']});"]
    if action == "approve":
        return [f"vm.prank({actor});", f"weth.approve({_addr(a['spender'])}, {a['amount']});"]
    if action == "transfer":
        return [f"vm.prank({actor});", f"weth.transfer({_addr(a['to'])}, {a['amount']});"]
    if action == "transfer_from":
        lines = []
        if a.get("approve_first"):
            lines += [f"vm.prank({_addr(a['owner'])});", f"weth.approve({actor}, {a['amount']});"]
        lines += [
            f"vm.prank({actor});",
            f"weth.transferFrom({_addr(a['owner'])}, {_addr(a['to'])}, {a['amount']});",
        ]
        return lines
    if action == "force_inject":
        # out-of-band ether, as a self-destructing contract would push it
        return [f"vm.deal(address(weth), address(weth).balance + {a['amount']});"]
    return [f"// unsupported action {action}({a})"]


def render_forge_test(report: FailureReport, contract_name: str = "WETH9") -> str:
    """Generate a Foundry test that replays a failure report."""
    suffix = f"{report.predicate_name}_run{report.run_index}"
    lines = [
        "// SPDX-License-Identifier: MIT",
        "pragma solidity ^0.8.20;",
        "",
        'import "forge-std/Test.sol";',
        f'import "../src/{contract_name}.sol";',
        "",
        f"contract Reproducer_{suffix} is Test {{",
        f"    {contract_name} weth;",
        "",
        "    function setUp() public {",
        f"        weth = new {contract_name}();",
        "    }",
        "",
        f"    function test_reproduce_{suffix}() public {{",
    ]

    for i, step in enumerate(report.sequence):
        args = ", ".join(f"{k}={v}" for k, v in step.args.items())
        lines.append(f"        // Step {i}: {step.action}({args}) as {step.actor}")
        if step.outcome != CallOutcome.SUCCESS:
            lines.append(f"        // reverted during fuzzing ({step.reason}); no state change")
            lines.append("")
            continue
        lines.extend(f"        {line}" for line in _step_lines(step))
        lines.append("")

    lines.append(f"        // invariant {report.predicate_name} is violated here")
    lines.append("    }")
    lines.append("}")
    lines.append("")
    return "\n".join(lines)
