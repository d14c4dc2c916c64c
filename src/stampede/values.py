# SPDX-License-Identifier: AGPL-3.0

"""Generated argument values.

These are the values drawn by the strategies in `stampede.arbitrary`. They
mirror the parameter type grammar one to one and are encoded into wire values
right before a call (see `stampede.encoder`).
"""

import json
from dataclasses import dataclass
from typing import Any


class GeneratedValue:
    pass


@dataclass(frozen=True)
class IntValue(GeneratedValue):
    value: int


@dataclass(frozen=True)
class UIntValue(GeneratedValue):
    value: int


@dataclass(frozen=True)
class BoolValue(GeneratedValue):
    value: bool


@dataclass(frozen=True)
class PrincipalValue(GeneratedValue):
    value: str


@dataclass(frozen=True)
class BytesValue(GeneratedValue):
    # lowercase hex digits, without 0x prefix; may have odd length
    hex: str

    def to_bytes(self) -> bytes:
        digits = self.hex if len(self.hex) % 2 == 0 else f"0{self.hex}"
        return bytes.fromhex(digits)


@dataclass(frozen=True)
class StrValue(GeneratedValue):
    value: str


@dataclass(frozen=True)
class ListValue(GeneratedValue):
    items: tuple[GeneratedValue, ...]


@dataclass(frozen=True)
class TupleValue(GeneratedValue):
    fields: tuple[tuple[str, GeneratedValue], ...]


@dataclass(frozen=True)
class OptionalValue(GeneratedValue):
    value: GeneratedValue | None = None


@dataclass(frozen=True)
class ResponseValue(GeneratedValue):
    status: str  # "ok" or "error"
    value: GeneratedValue


def to_json(value: GeneratedValue) -> Any:
    """Plain JSON-compatible view of a generated value, used in reports."""

    if isinstance(value, IntValue | UIntValue | BoolValue | PrincipalValue | StrValue):
        return value.value

    if isinstance(value, BytesValue):
        return value.hex

    if isinstance(value, ListValue):
        return [to_json(item) for item in value.items]

    if isinstance(value, TupleValue):
        return {name: to_json(item) for name, item in value.fields}

    if isinstance(value, OptionalValue):
        return None if value.value is None else to_json(value.value)

    if isinstance(value, ResponseValue):
        return {"status": value.status, "value": to_json(value.value)}

    raise ValueError(value)


def dumps(obj: Any) -> str:
    """Compact JSON, the format used for arguments and outputs in reports."""
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def rendered_args(values: tuple[GeneratedValue, ...]) -> str:
    """Space separated arguments for progress lines."""

    def render(value: GeneratedValue) -> str:
        plain = to_json(value)
        if isinstance(plain, dict | list) or plain is None:
            return dumps(plain)
        if isinstance(plain, bool):
            return str(plain).lower()
        return str(plain)

    return " ".join(render(v) for v in values)
