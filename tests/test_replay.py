import pytest
from hypothesis import given
from hypothesis import strategies as st

from stampede.arbitrary import GenerationContext, strategy_for
from stampede.exceptions import ConfigurationError
from stampede.replay import InvalidPath, pack, unpack, value_data, value_from_data
from stampede.types import Bool, Buffer, Int128, Optional, Response, Tuple, UInt128
from stampede.values import (
    BoolValue,
    BytesValue,
    IntValue,
    OptionalValue,
    ResponseValue,
    TupleValue,
    UIntValue,
)
from test_fixtures import ACCOUNTS, DEPLOYER, TRAIT_ID, parameter_types

CONTEXT = GenerationContext.create(
    list(ACCOUNTS.values()), {TRAIT_ID: [f"{DEPLOYER}.token"]}
)


@given(parameter_types, st.data())
def test_values_survive_a_path(typ, data):
    value = data.draw(strategy_for(typ, CONTEXT))

    assert value_from_data(unpack(pack(value_data(value))), typ) == value


def test_nested_optionals_are_kept_apart():
    typ = Optional(Optional(Bool()))
    values = [
        OptionalValue(),
        OptionalValue(OptionalValue()),
        OptionalValue(OptionalValue(BoolValue(True))),
    ]

    data = [value_data(v) for v in values]
    assert data == [[], [[]], [[True]]]
    assert [value_from_data(d, typ) for d in data] == values


def test_value_data():
    assert value_data(ResponseValue("error", UIntValue(1))) == ["error", 1]
    assert value_data(TupleValue((("a", IntValue(-1)), ("b", BytesValue("0a"))))) == [-1, "0a"]


@pytest.mark.parametrize(
    "data, typ",
    [
        (True, UInt128()),
        ("1", Int128()),
        (1, Bool()),
        (10, Buffer(2)),
        ([1], Tuple((("a", Int128()), ("b", Int128())))),
        (["maybe", 1], Response(UInt128(), UInt128())),
        ([1, 2], Optional(UInt128())),
    ],
)
def test_value_from_bad_data(data, typ):
    with pytest.raises(InvalidPath):
        value_from_data(data, typ)


def test_pack_is_url_safe():
    path = pack({"mode": "test", "test": ["test-foo", "wallet_1", ["ż" * 40]], "burn": None})

    assert set(path) <= set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_")
    assert unpack(path)["test"][2] == ["ż" * 40]


@pytest.mark.parametrize("path", ["", "0:1", "żółw", pack([1])[:-3] + "!!"])
def test_unpack_rejects_garbage(path):
    with pytest.raises(ConfigurationError, match="^invalid replay path"):
        unpack(path)
