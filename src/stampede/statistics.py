# SPDX-License-Identifier: AGPL-3.0

import io
from dataclasses import dataclass, field

from rich.console import Console
from rich.tree import Tree

NO_STATISTICS = "No statistics available for this run."


@dataclass
class CounterTable:
    """
    Counters for one group of functions, e.g. the public function calls.

    Every name is registered with all its counters at zero before the run
    starts; counters only ever increase afterwards.
    """

    title: str
    outcomes: tuple[str, ...]
    counts: dict[str, dict[str, int]] = field(default_factory=dict)

    def __post_init__(self):
        for outcome in self.outcomes:
            self.counts.setdefault(outcome, {})

    def register(self, name: str) -> None:
        for outcome in self.outcomes:
            self.counts[outcome].setdefault(name, 0)

    def increment(self, outcome: str, name: str) -> None:
        if name not in self.counts[outcome]:
            raise KeyError(f"{name} is not registered in {self.title}")
        self.counts[outcome][name] += 1

    def get(self, outcome: str, name: str) -> int:
        return self.counts[outcome].get(name, 0)

    def total(self, name: str) -> int:
        return sum(self.get(outcome, name) for outcome in self.outcomes)

    @property
    def names(self) -> list[str]:
        return list(self.counts[self.outcomes[0]]) if self.outcomes else []

    def to_tree(self) -> Tree:
        tree = Tree(self.title)
        for outcome in self.outcomes:
            branch = tree.add(outcome.upper())
            for name, count in self.counts[outcome].items():
                branch.add(f"{name}: {count}")
        return tree


class StatisticsTracker:
    """
    Per-function call statistics of a run.

    Invariant mode tracks public function calls (successful / ignored) and
    invariant checks (passed / failed). Property mode tracks property test
    calls (passed / discarded / failed).
    """

    def __init__(self, mode: str):
        self.mode = mode
        self.tables: list[CounterTable] = []

        if mode == "invariant":
            self.sut = self._table("PUBLIC FUNCTION CALLS", "successful", "ignored")
            self.invariant = self._table("INVARIANT CHECKS", "passed", "failed")
        elif mode == "test":
            self.test = self._table(
                "PROPERTY TEST CALLS", "passed", "discarded", "failed"
            )
        else:
            raise ValueError(f"unknown mode: {mode}")

    def _table(self, title: str, *outcomes: str) -> CounterTable:
        table = CounterTable(title, outcomes)
        self.tables.append(table)
        return table

    def is_empty(self) -> bool:
        return not any(table.names for table in self.tables)

    def to_json(self) -> dict:
        return {
            table.title.lower().replace(" ", "_"): table.counts for table in self.tables
        }

    def render(self) -> list[str]:
        """Render the statistics as plain text lines, without styling."""

        if self.is_empty():
            return [NO_STATISTICS]

        root = Tree("STATISTICS", hide_root=True)
        for table in self.tables:
            root.children.append(table.to_tree())

        buffer = io.StringIO()
        console = Console(file=buffer, color_system=None, width=120)
        console.print(root)

        return [line.rstrip() for line in buffer.getvalue().splitlines()]
