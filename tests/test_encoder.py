import pytest
from hypothesis import given
from hypothesis import strategies as st

from stampede.arbitrary import GenerationContext, strategy_for
from stampede.encoder import decode, encode, encode_arguments
from stampede.exceptions import ConfigurationError
from stampede.types import (
    Bool,
    Buffer,
    Int128,
    List,
    Optional,
    Principal,
    Response,
    StringAscii,
    StringUtf8,
    TraitReference,
    Tuple,
    UInt128,
)
from stampede.values import (
    BoolValue,
    BytesValue,
    IntValue,
    ListValue,
    OptionalValue,
    PrincipalValue,
    ResponseValue,
    StrValue,
    TupleValue,
    UIntValue,
)
from stampede.wire import (
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
)
from test_fixtures import ACCOUNTS, DEPLOYER, TRAIT_ID, parameter_types, public

CONTEXT = GenerationContext.create(
    list(ACCOUNTS.values()), {TRAIT_ID: [f"{DEPLOYER}.token"]}
)

POSITION = Tuple((("x", Int128()), ("label", StringAscii(8))))


def test_encode_base_values():
    assert encode(IntValue(-5), Int128()) == IntCV(-5)
    assert encode(UIntValue(5), UInt128()) == UIntCV(5)
    assert encode(BoolValue(True), Bool()) == BoolCV(True)
    assert encode(PrincipalValue(DEPLOYER), Principal()) == PrincipalCV(DEPLOYER)


def test_encode_trait_reference_as_principal():
    token = f"{DEPLOYER}.token"
    assert encode(PrincipalValue(token), TraitReference(TRAIT_ID)) == PrincipalCV(token)


def test_encode_strings():
    assert encode(StrValue("hi"), StringAscii(4)) == StringAsciiCV("hi")
    assert encode(StrValue("żółw"), StringUtf8(4)) == StringUtf8CV("żółw")


@pytest.mark.parametrize(
    "digits, expected",
    [
        ("", b""),
        ("00ff", b"\x00\xff"),
        # odd length is left padded with a zero nibble
        ("abc", b"\x0a\xbc"),
        ("f", b"\x0f"),
    ],
)
def test_encode_buffer(digits, expected):
    assert encode(BytesValue(digits), Buffer(4)) == BufferCV(expected)


def test_encode_nested_values():
    typ = List(Optional(POSITION), 3)
    value = ListValue(
        (
            OptionalValue(None),
            OptionalValue(TupleValue((("x", IntValue(1)), ("label", StrValue("a"))))),
        )
    )

    assert encode(value, typ) == ListCV(
        (
            NoneCV(),
            SomeCV(TupleCV((("x", IntCV(1)), ("label", StringAsciiCV("a"))))),
        )
    )


def test_encode_response():
    typ = Response(Bool(), UInt128())

    assert encode(ResponseValue("ok", BoolValue(False)), typ) == ResponseOkCV(BoolCV(False))
    assert encode(ResponseValue("error", UIntValue(3)), typ) == ResponseErrCV(UIntCV(3))


@pytest.mark.parametrize(
    "value, typ",
    [
        (UIntValue(1), Int128()),
        (IntValue(1), UInt128()),
        (StrValue("a"), Buffer(1)),
        (ListValue(()), Optional(Bool())),
        (ResponseValue("maybe", BoolValue(True)), Response(Bool(), Bool())),
        # field names must line up with the declared tuple
        (TupleValue((("label", StrValue("a")), ("x", IntValue(1)))), POSITION),
        (TupleValue((("x", IntValue(1)),)), POSITION),
    ],
)
def test_encode_mismatch(value, typ):
    with pytest.raises(ConfigurationError):
        encode(value, typ)


def test_encode_arguments():
    fn = public("transfer", ("amount", UInt128()), ("memo", Optional(Buffer(2))))

    assert encode_arguments(fn, (UIntValue(7), OptionalValue(BytesValue("beef")))) == (
        UIntCV(7),
        SomeCV(BufferCV(b"\xbe\xef")),
    )


def test_encode_arguments_arity():
    fn = public("transfer", ("amount", UInt128()))

    with pytest.raises(ConfigurationError, match="expects 1 arguments, got 2"):
        encode_arguments(fn, (UIntValue(1), UIntValue(2)))


def test_decode_buffer_is_even_length_hex():
    assert decode(BufferCV(b"\x0a\xbc"), Buffer(2)) == BytesValue("0abc")


def test_decode_mismatch():
    with pytest.raises(ConfigurationError):
        decode(IntCV(1), UInt128())


def padded(value):
    """The value as it comes back from the wire: buffer hex has even length."""

    if isinstance(value, BytesValue):
        return BytesValue(value.to_bytes().hex())
    if isinstance(value, ListValue):
        return ListValue(tuple(padded(item) for item in value.items))
    if isinstance(value, TupleValue):
        return TupleValue(tuple((name, padded(item)) for name, item in value.fields))
    if isinstance(value, OptionalValue) and value.value is not None:
        return OptionalValue(padded(value.value))
    if isinstance(value, ResponseValue):
        return ResponseValue(value.status, padded(value.value))
    return value


def test_padded():
    assert padded(ListValue((BytesValue("abc"), BytesValue("")))) == ListValue(
        (BytesValue("0abc"), BytesValue(""))
    )


@given(parameter_types, st.data())
def test_decode_inverts_encode(typ, data):
    value = data.draw(strategy_for(typ, CONTEXT))
    cv = encode(value, typ)

    assert decode(cv, typ) == padded(value)
    assert encode(decode(cv, typ), typ) == cv
