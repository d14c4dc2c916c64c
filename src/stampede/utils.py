# SPDX-License-Identifier: AGPL-3.0

from timeit import default_timer as timer


def indent_text(text: str, n: int = 4) -> str:
    return "\n".join(" " * n + line for line in text.splitlines())


class NamedTimer:
    """Wall clock time of a named phase, started on creation."""

    def __init__(self, name: str):
        self.name = name
        self.start_time = timer()
        self.end_time: float | None = None

    def stop(self) -> None:
        # keep the first end time
        if self.end_time is None:
            self.end_time = timer()

    def elapsed(self) -> float:
        end_time = timer() if self.end_time is None else self.end_time
        return end_time - self.start_time

    def report(self) -> str:
        return f"{self.name}: {format_time(self.elapsed())}"


def format_time(seconds: float) -> str:
    """
    62.003 -> 1m02s
    1.000000001 -> 1.000s
    0.123456789 -> 123.457ms
    """
    if seconds >= 60:
        minutes = int(seconds / 60)
        return f"{minutes}m{int(seconds - 60 * minutes):02}s"
    if seconds >= 1:
        return f"{seconds:.3f}s"
    return f"{seconds * 1e3:.3f}ms"
