# SPDX-License-Identifier: AGPL-3.0

"""Values exchanged with the execution backend.

A wire value is what a contract call actually receives and returns. The
canonical text form produced by `to_string` is used in progress lines and in
the error message of a counterexample, e.g. `(ok true)` or `(err u101)`.
"""

import json
from dataclasses import dataclass


class WireValue:
    pass


@dataclass(frozen=True)
class IntCV(WireValue):
    value: int


@dataclass(frozen=True)
class UIntCV(WireValue):
    value: int


@dataclass(frozen=True)
class BoolCV(WireValue):
    value: bool


@dataclass(frozen=True)
class PrincipalCV(WireValue):
    address: str


@dataclass(frozen=True)
class BufferCV(WireValue):
    data: bytes


@dataclass(frozen=True)
class StringAsciiCV(WireValue):
    data: str


@dataclass(frozen=True)
class StringUtf8CV(WireValue):
    data: str


@dataclass(frozen=True)
class ListCV(WireValue):
    items: tuple[WireValue, ...]


@dataclass(frozen=True)
class TupleCV(WireValue):
    data: tuple[tuple[str, WireValue], ...]


@dataclass(frozen=True)
class NoneCV(WireValue):
    pass


@dataclass(frozen=True)
class SomeCV(WireValue):
    value: WireValue


@dataclass(frozen=True)
class ResponseOkCV(WireValue):
    value: WireValue


@dataclass(frozen=True)
class ResponseErrCV(WireValue):
    value: WireValue


TRUE = BoolCV(True)
FALSE = BoolCV(False)


def ok(value: WireValue) -> ResponseOkCV:
    return ResponseOkCV(value)


def err(value: WireValue) -> ResponseErrCV:
    return ResponseErrCV(value)


def to_string(cv: WireValue) -> str:
    if isinstance(cv, IntCV):
        return str(cv.value)

    if isinstance(cv, UIntCV):
        return f"u{cv.value}"

    if isinstance(cv, BoolCV):
        return "true" if cv.value else "false"

    if isinstance(cv, PrincipalCV):
        return f"'{cv.address}"

    if isinstance(cv, BufferCV):
        return f"0x{cv.data.hex()}"

    if isinstance(cv, StringAsciiCV):
        return json.dumps(cv.data)

    if isinstance(cv, StringUtf8CV):
        return f"u{json.dumps(cv.data, ensure_ascii=False)}"

    if isinstance(cv, ListCV):
        items = " ".join(to_string(item) for item in cv.items)
        return f"(list {items})" if items else "(list)"

    if isinstance(cv, TupleCV):
        fields = " ".join(f"({name} {to_string(value)})" for name, value in cv.data)
        return f"(tuple {fields})"

    if isinstance(cv, NoneCV):
        return "none"

    if isinstance(cv, SomeCV):
        return f"(some {to_string(cv.value)})"

    if isinstance(cv, ResponseOkCV):
        return f"(ok {to_string(cv.value)})"

    if isinstance(cv, ResponseErrCV):
        return f"(err {to_string(cv.value)})"

    raise ValueError(cv)


def is_true(cv: WireValue | None) -> bool:
    return cv == TRUE


def is_ok_true(cv: WireValue | None) -> bool:
    return cv == ResponseOkCV(TRUE)
