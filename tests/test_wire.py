import pytest

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
    dumps,
    rendered_args,
    to_json,
)
from stampede.wire import (
    FALSE,
    TRUE,
    BufferCV,
    IntCV,
    ListCV,
    NoneCV,
    PrincipalCV,
    SomeCV,
    StringAsciiCV,
    StringUtf8CV,
    TupleCV,
    UIntCV,
    err,
    is_ok_true,
    is_true,
    ok,
    to_string,
)


@pytest.mark.parametrize(
    "cv, expected",
    [
        (IntCV(-3), "-3"),
        (UIntCV(101), "u101"),
        (TRUE, "true"),
        (PrincipalCV("ST1.token"), "'ST1.token"),
        (BufferCV(b"\x0a\xbc"), "0x0abc"),
        (StringAsciiCV('say "hi"'), '"say \\"hi\\""'),
        (StringUtf8CV("żółw"), 'u"żółw"'),
        (ListCV(()), "(list)"),
        (ListCV((UIntCV(1), UIntCV(2))), "(list u1 u2)"),
        (TupleCV((("a", IntCV(1)), ("b", FALSE))), "(tuple (a 1) (b false))"),
        (NoneCV(), "none"),
        (SomeCV(UIntCV(1)), "(some u1)"),
        (ok(TRUE), "(ok true)"),
        (err(UIntCV(100)), "(err u100)"),
    ],
)
def test_to_string(cv, expected):
    assert to_string(cv) == expected


def test_truthiness():
    assert is_true(TRUE)
    assert not is_true(FALSE)
    assert not is_true(ok(TRUE))
    assert not is_true(None)

    assert is_ok_true(ok(TRUE))
    assert not is_ok_true(ok(FALSE))
    assert not is_ok_true(err(TRUE))
    assert not is_ok_true(TRUE)


def test_to_json():
    value = TupleValue(
        (
            ("owner", PrincipalValue("ST1")),
            ("memo", OptionalValue(BytesValue("ff"))),
            ("tags", ListValue((StrValue("a"),))),
            ("result", ResponseValue("error", UIntValue(3))),
            ("none", OptionalValue()),
        )
    )

    assert to_json(value) == {
        "owner": "ST1",
        "memo": "ff",
        "tags": ["a"],
        "result": {"status": "error", "value": 3},
        "none": None,
    }


def test_dumps_is_compact():
    assert dumps([[1, "ż"], {"a": True}]) == '[[1,"ż"],{"a":true}]'


def test_rendered_args():
    args = (
        UIntValue(5),
        IntValue(-1),
        BoolValue(False),
        StrValue("hi"),
        ListValue((UIntValue(1),)),
        OptionalValue(),
    )

    assert rendered_args(args) == '5 -1 false hi [1] null'
    assert rendered_args(()) == ""
