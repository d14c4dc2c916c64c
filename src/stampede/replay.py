# SPDX-License-Identifier: AGPL-3.0

"""
Replay paths.

A replay path is a compact token holding the minimal failing case of a run:
the selected functions, their callers and arguments, and the block advance.
It is reported next to the seed and stored with every failure. Passing it back
with `--path` executes that case directly instead of searching for it.

The token is URL-safe base64 of zlib-compressed JSON. Argument values are
stored without their types; the function signatures give them back on decode:

    u5                       5
    (some 0x0a)              ["0a"]
    none                     []
    (err u1)                 ["error", 1]
    (tuple (a 1) (b true))   [1, true]
"""

import base64
import binascii
import json
import zlib
from typing import Any

from .exceptions import ConfigurationError
from .types import (
    Bool,
    Buffer,
    Int128,
    List,
    Optional,
    ParameterType,
    Principal,
    Response,
    StringAscii,
    StringUtf8,
    TraitReference,
    Tuple,
    UInt128,
)
from .values import (
    BoolValue,
    BytesValue,
    GeneratedValue,
    IntValue,
    ListValue,
    OptionalValue,
    PrincipalValue,
    ResponseValue,
    StrValue,
    TupleValue,
    UIntValue,
    dumps,
)


class InvalidPath(ConfigurationError):
    def __init__(self, reason: str):
        super().__init__(f"invalid replay path: {reason}")


def value_data(value: GeneratedValue) -> Any:
    if isinstance(value, IntValue | UIntValue | BoolValue | PrincipalValue | StrValue):
        return value.value

    if isinstance(value, BytesValue):
        return value.hex

    if isinstance(value, ListValue):
        return [value_data(item) for item in value.items]

    if isinstance(value, TupleValue):
        return [value_data(item) for _, item in value.fields]

    if isinstance(value, OptionalValue):
        return [] if value.value is None else [value_data(value.value)]

    if isinstance(value, ResponseValue):
        return [value.status, value_data(value.value)]

    raise ValueError(value)


def value_from_data(data: Any, typ: ParameterType) -> GeneratedValue:
    """Inverse of `value_data`, guided by the parameter type."""

    # bool is an int subclass
    if isinstance(typ, Int128 | UInt128):
        if not isinstance(data, int) or isinstance(data, bool):
            raise InvalidPath(f"expected an integer, got {data!r}")
        return IntValue(data) if isinstance(typ, Int128) else UIntValue(data)

    if isinstance(typ, Bool):
        if not isinstance(data, bool):
            raise InvalidPath(f"expected a bool, got {data!r}")
        return BoolValue(data)

    if isinstance(typ, Principal | TraitReference | Buffer | StringAscii | StringUtf8):
        if not isinstance(data, str):
            raise InvalidPath(f"expected a string, got {data!r}")
        if isinstance(typ, Buffer):
            return BytesValue(data)
        if isinstance(typ, StringAscii | StringUtf8):
            return StrValue(data)
        return PrincipalValue(data)

    if not isinstance(data, list):
        raise InvalidPath(f"expected a list, got {data!r}")

    if isinstance(typ, List):
        return ListValue(tuple(value_from_data(item, typ.elem) for item in data))

    if isinstance(typ, Tuple):
        if len(data) != len(typ.fields):
            raise InvalidPath(f"expected {len(typ.fields)} tuple fields, got {len(data)}")
        return TupleValue(
            tuple(
                (name, value_from_data(item, field_type))
                for (name, field_type), item in zip(typ.fields, data, strict=True)
            )
        )

    if isinstance(typ, Optional):
        if len(data) > 1:
            raise InvalidPath(f"expected at most one optional value, got {data!r}")
        return OptionalValue(value_from_data(data[0], typ.inner) if data else None)

    if isinstance(typ, Response):
        if len(data) != 2 or data[0] not in ("ok", "error"):
            raise InvalidPath(f"expected a response, got {data!r}")
        status, inner = data
        return ResponseValue(status, value_from_data(inner, typ.ok if status == "ok" else typ.err))

    raise InvalidPath(f"unsupported type {typ}")


def pack(data: Any) -> str:
    compressed = zlib.compress(dumps(data).encode("utf-8"), 9)
    return base64.urlsafe_b64encode(compressed).decode("ascii").rstrip("=")


def unpack(path: str) -> Any:
    padded = path + "=" * (-len(path) % 4)
    try:
        raw = zlib.decompress(base64.urlsafe_b64decode(padded.encode("ascii")))
        return json.loads(raw.decode("utf-8"))
    except (binascii.Error, zlib.error, UnicodeError, ValueError) as err:
        raise InvalidPath(str(err)) from err
