# SPDX-License-Identifier: AGPL-3.0

from .exceptions import ConfigurationError
from .types import (
    Bool,
    Buffer,
    FunctionSignature,
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
)
from .wire import (
    BoolCV,
    BufferCV,
    IntCV,
    ListCV,
    NoneCV,
    PrincipalCV,
    ResponseErrCV,
    ResponseOkCV,
    SomeCV,
    StringAsciiCV,
    StringUtf8CV,
    TupleCV,
    UIntCV,
    WireValue,
)


def mismatch(value, typ: ParameterType) -> ConfigurationError:
    return ConfigurationError(f"cannot encode {value!r} as {typ!r}")


def encode(value: GeneratedValue, typ: ParameterType) -> WireValue:
    """
    Convert a generated value into the wire value passed to the backend.

    Mirrors the branches of `stampede.arbitrary.strategy_for`, so it is total
    over anything the strategies produce.
    """

    if isinstance(typ, Int128) and isinstance(value, IntValue):
        return IntCV(value.value)

    if isinstance(typ, UInt128) and isinstance(value, UIntValue):
        return UIntCV(value.value)

    if isinstance(typ, Bool) and isinstance(value, BoolValue):
        return BoolCV(value.value)

    if isinstance(typ, Principal | TraitReference) and isinstance(
        value, PrincipalValue
    ):
        return PrincipalCV(value.value)

    if isinstance(typ, Buffer) and isinstance(value, BytesValue):
        return BufferCV(value.to_bytes())

    if isinstance(typ, StringAscii) and isinstance(value, StrValue):
        return StringAsciiCV(value.value)

    if isinstance(typ, StringUtf8) and isinstance(value, StrValue):
        return StringUtf8CV(value.value)

    if isinstance(typ, List) and isinstance(value, ListValue):
        return ListCV(tuple(encode(item, typ.elem) for item in value.items))

    if isinstance(typ, Tuple) and isinstance(value, TupleValue):
        if [name for name, _ in value.fields] != [name for name, _ in typ.fields]:
            raise mismatch(value, typ)
        return TupleCV(
            tuple(
                (name, encode(item, field_type))
                for (name, item), (_, field_type) in zip(
                    value.fields, typ.fields, strict=True
                )
            )
        )

    if isinstance(typ, Optional) and isinstance(value, OptionalValue):
        if value.value is None:
            return NoneCV()
        return SomeCV(encode(value.value, typ.inner))

    if isinstance(typ, Response) and isinstance(value, ResponseValue):
        if value.status == "ok":
            return ResponseOkCV(encode(value.value, typ.ok))
        if value.status == "error":
            return ResponseErrCV(encode(value.value, typ.err))

    raise mismatch(value, typ)


def encode_arguments(
    fn: FunctionSignature, values: tuple[GeneratedValue, ...]
) -> tuple[WireValue, ...]:
    if len(values) != len(fn.args):
        raise ConfigurationError(
            f"{fn.name} expects {len(fn.args)} arguments, got {len(values)}"
        )

    return tuple(
        encode(value, param.typ) for value, param in zip(values, fn.args, strict=True)
    )


def decode(cv: WireValue, typ: ParameterType) -> GeneratedValue:
    """Inverse of `encode`."""

    if isinstance(typ, Int128) and isinstance(cv, IntCV):
        return IntValue(cv.value)

    if isinstance(typ, UInt128) and isinstance(cv, UIntCV):
        return UIntValue(cv.value)

    if isinstance(typ, Bool) and isinstance(cv, BoolCV):
        return BoolValue(cv.value)

    if isinstance(typ, Principal | TraitReference) and isinstance(cv, PrincipalCV):
        return PrincipalValue(cv.address)

    if isinstance(typ, Buffer) and isinstance(cv, BufferCV):
        return BytesValue(cv.data.hex())

    if isinstance(typ, StringAscii) and isinstance(cv, StringAsciiCV):
        return StrValue(cv.data)

    if isinstance(typ, StringUtf8) and isinstance(cv, StringUtf8CV):
        return StrValue(cv.data)

    if isinstance(typ, List) and isinstance(cv, ListCV):
        return ListValue(tuple(decode(item, typ.elem) for item in cv.items))

    if isinstance(typ, Tuple) and isinstance(cv, TupleCV):
        types = dict(typ.fields)
        if [name for name, _ in cv.data] != list(types):
            raise mismatch(cv, typ)
        return TupleValue(tuple((name, decode(item, types[name])) for name, item in cv.data))

    if isinstance(typ, Optional) and isinstance(cv, NoneCV):
        return OptionalValue(None)

    if isinstance(typ, Optional) and isinstance(cv, SomeCV):
        return OptionalValue(decode(cv.value, typ.inner))

    if isinstance(typ, Response) and isinstance(cv, ResponseOkCV):
        return ResponseValue("ok", decode(cv.value, typ.ok))

    if isinstance(typ, Response) and isinstance(cv, ResponseErrCV):
        return ResponseValue("error", decode(cv.value, typ.err))

    raise mismatch(cv, typ)
