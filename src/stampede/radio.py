# SPDX-License-Identifier: AGPL-3.0

"""
Two-channel output for a run.

The engine and the reporter never print: they hand lines to a radio, either on
the failure channel or on the informational channel, and the radio decides
where they go.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from rich.text import Text

from .ui import ui


class Channel(Enum):
    FAILURE = "failure"
    INFO = "info"


class Radio(Protocol):
    def on_failure(self, text: str) -> None: ...

    def on_message(self, text: str) -> None: ...


def send(radio: Radio, channel: Channel, text: str) -> None:
    if channel == Channel.FAILURE:
        radio.on_failure(text)
    else:
        radio.on_message(text)


@dataclass
class RecordingRadio:
    """Keeps every line in order, tagged with its channel."""

    lines: list[tuple[Channel, str]] = field(default_factory=list)

    def on_failure(self, text: str) -> None:
        self.lines.append((Channel.FAILURE, text))

    def on_message(self, text: str) -> None:
        self.lines.append((Channel.INFO, text))

    @property
    def failures(self) -> list[str]:
        return [text for channel, text in self.lines if channel == Channel.FAILURE]

    @property
    def messages(self) -> list[str]:
        return [text for channel, text in self.lines if channel == Channel.INFO]

    def text(self) -> str:
        return "\n".join(text for _, text in self.lines)


MARKER_STYLES = {
    "[PASS]": "green",
    "[FAIL]": "red",
    "[WARN]": "yellow",
}


class ConsoleRadio:
    """Prints failure lines in red and informational lines as they are."""

    def on_failure(self, text: str) -> None:
        ui.print(Text(text, style="red"), highlight=False)

    def on_message(self, text: str) -> None:
        rich_text = Text(text)
        for marker, style in MARKER_STYLES.items():
            rich_text.highlight_words([marker], style)
        ui.print(rich_text, highlight=False)
