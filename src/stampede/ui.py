# SPDX-License-Identifier: AGPL-3.0

from dataclasses import dataclass, field

from rich import get_console
from rich.console import Console
from rich.status import Status


@dataclass(frozen=True, eq=False, order=False, slots=True)
class UI:
    """Console output with an optional spinner while a run is in progress."""

    status: Status
    console: Console = field(default_factory=get_console)

    def start_status(self, status: str = ""):
        # clear any remaining live display before starting a new instance
        self.console.clear_live()
        if status:
            self.status.update(status)
        self.status.start()

    def start_run(self, contract: str, mode: str, seed: int | None = None):
        text = f"Fuzzing {contract} ({mode} mode)"
        if seed is not None:
            text += f", seed {seed}"
        self.start_status(f"{text}...")

    def stop_status(self):
        self.status.stop()

    def print(self, *args, **kwargs):
        self.console.print(*args, **kwargs)


ui: UI = UI(Status(""))
