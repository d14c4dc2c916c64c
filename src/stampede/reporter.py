# SPDX-License-Identifier: AGPL-3.0

"""
Counterexample reporter.

`report` turns a run outcome into the exact lines shown to the user, each
tagged with the channel it belongs to. It does no I/O: `emit` sends the lines
to a radio.
"""

from dataclasses import dataclass

from .engine import (
    Failure,
    InvariantRunCase,
    PropertyRunCase,
    RunOutcome,
    Success,
)
from .radio import Channel, Radio, send
from .statistics import StatisticsTracker
from .types import contract_name
from .utils import indent_text
from .values import dumps, to_json


@dataclass(frozen=True)
class ReportLine:
    channel: Channel
    text: str


def failure(text: str) -> ReportLine:
    return ReportLine(Channel.FAILURE, text)


def info(text: str) -> ReportLine:
    return ReportLine(Channel.INFO, text)


def invariant_counterexample(case: InvariantRunCase) -> list[ReportLine]:
    functions = [call.function for call in case.calls]
    return [
        failure("\nCounterexample:"),
        failure(f"- Contract : {contract_name(case.contract_id)}"),
        failure(
            f"- Functions: {', '.join(fn.name for fn in functions)} "
            f"({', '.join(fn.access.value for fn in functions)})"
        ),
        failure(
            "- Arguments: "
            + dumps([[to_json(arg) for arg in call.args] for call in case.calls])
        ),
        failure(f"- Callers  : {', '.join(call.caller.label for call in case.calls)}"),
        failure(f"- Outputs  : {dumps([fn.outputs_json for fn in functions])}"),
        failure(f"- Invariant: {case.invariant.name} ({case.invariant.access.value})"),
        failure(f"- Arguments: {dumps([to_json(arg) for arg in case.invariant_args])}"),
        failure(f"- Caller   : {case.invariant_caller.label}"),
    ]


def property_counterexample(case: PropertyRunCase) -> list[ReportLine]:
    return [
        failure("\nCounterexample:"),
        failure(f"- Test Contract : {contract_name(case.contract_id)}"),
        failure(f"- Test Function : {case.test.name} ({case.test.access.value})"),
        failure(f"- Arguments     : {dumps([to_json(arg) for arg in case.args])}"),
        failure(f"- Caller        : {case.caller.label}"),
        failure(f"- Outputs       : {dumps(case.test.outputs_json)}"),
    ]


def report(
    outcome: RunOutcome, statistics: StatisticsTracker, mode: str
) -> list[ReportLine]:
    lines = []

    if isinstance(outcome, Failure):
        cex = outcome.counterexample
        lines.append(failure(f"\nError: Property failed after {cex.runs} tests."))
        lines.append(failure(f"Seed : {cex.seed}"))
        if cex.path:
            lines.append(failure(f"Path : {cex.path}"))

        case = cex.case
        if isinstance(case, InvariantRunCase):
            lines.extend(invariant_counterexample(case))
            subject = f'The invariant "{case.invariant.name}"'
        elif isinstance(case, PropertyRunCase):
            lines.extend(property_counterexample(case))
            subject = f'The test function "{case.test.name}"'
        else:
            raise ValueError(case)

        lines.append(
            failure(
                "\nWhat happened? Stampede went on a rampage and found a weak spot:\n"
            )
        )
        lines.append(
            failure(f"{subject} returned:\n\n{indent_text(str(cex.error), 4)}\n")
        )

    elif isinstance(outcome, Success):
        kind = "invariants" if mode == "invariant" else "properties"
        lines.append(info(f"\nOK, {kind} passed after {outcome.runs} runs.\n"))

    else:
        raise ValueError(outcome)

    lines.extend(info(line) for line in statistics.render())
    lines.append(info(""))

    return lines


def emit(lines: list[ReportLine], radio: Radio) -> None:
    for line in lines:
        send(radio, line.channel, line.text)
