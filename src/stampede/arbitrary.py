# SPDX-License-Identifier: AGPL-3.0

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from hypothesis import strategies as st
from hypothesis.strategies import SearchStrategy

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

INT128_MIN = -(2**127)
INT128_MAX = 2**127 - 1
UINT128_MAX = 2**128 - 1

HEX_CHARSET = "0123456789abcdef"

# buffers are generated as hex strings, two characters per byte
HEX_CHARS_PER_BYTE = 2

# printable ASCII, 95 characters
ASCII_CHARSET = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
    " !\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~"
)

# unicode scalar values: everything except the surrogate block
UTF8_ALPHABET = st.characters(exclude_categories=["Cs"])


@dataclass(frozen=True)
class GenerationContext:
    """
    Everything a strategy may draw from besides the type itself.

    addresses: the principals that may appear as principal arguments
    trait_candidates: trait id -> contract ids implementing the trait
    """

    addresses: tuple[str, ...] = ()
    trait_candidates: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @staticmethod
    def create(
        addresses: Sequence[str], trait_candidates: Mapping[str, Sequence[str]]
    ) -> "GenerationContext":
        return GenerationContext(
            tuple(addresses),
            MappingProxyType({k: tuple(v) for k, v in trait_candidates.items()}),
        )


def strategy_for(
    typ: ParameterType, ctx: GenerationContext
) -> SearchStrategy[GeneratedValue]:
    """Return a hypothesis strategy generating values of the given type.

    The mapping is a pure function of its arguments. Recursion follows the type
    tree, which is finite, so no depth limit is needed.
    """

    # base types

    if isinstance(typ, Int128):
        return st.integers(INT128_MIN, INT128_MAX).map(IntValue)

    if isinstance(typ, UInt128):
        return st.integers(0, UINT128_MAX).map(UIntValue)

    if isinstance(typ, Bool):
        return st.booleans().map(BoolValue)

    if isinstance(typ, Principal):
        if not ctx.addresses:
            raise ConfigurationError(
                "No addresses could be retrieved from the execution backend!"
            )
        return st.sampled_from(ctx.addresses).map(PrincipalValue)

    if isinstance(typ, TraitReference):
        candidates = ctx.trait_candidates.get(typ.trait_id, ())
        if not candidates:
            raise ConfigurationError(
                f"No contracts implementing trait {typ.trait_id} were found."
            )
        return st.sampled_from(candidates).map(PrincipalValue)

    # complex types

    if isinstance(typ, Buffer):
        return st.text(
            alphabet=HEX_CHARSET, max_size=HEX_CHARS_PER_BYTE * typ.max_len
        ).map(BytesValue)

    if isinstance(typ, StringAscii):
        return st.text(alphabet=ASCII_CHARSET, max_size=typ.max_len).map(StrValue)

    if isinstance(typ, StringUtf8):
        return st.text(alphabet=UTF8_ALPHABET, max_size=typ.max_len).map(StrValue)

    if isinstance(typ, List):
        return st.lists(strategy_for(typ.elem, ctx), max_size=typ.max_len).map(
            lambda items: ListValue(tuple(items))
        )

    if isinstance(typ, Tuple):
        names = [name for name, _ in typ.fields]
        return st.tuples(
            *[strategy_for(field_type, ctx) for _, field_type in typ.fields]
        ).map(lambda values: TupleValue(tuple(zip(names, values, strict=True))))

    if isinstance(typ, Optional):
        # absent and present are equally likely; shrinks towards absent
        return st.one_of(
            st.just(OptionalValue(None)),
            strategy_for(typ.inner, ctx).map(OptionalValue),
        )

    if isinstance(typ, Response):
        # ok and error are equally likely; shrinks towards ok
        return st.one_of(
            strategy_for(typ.ok, ctx).map(lambda v: ResponseValue("ok", v)),
            strategy_for(typ.err, ctx).map(lambda v: ResponseValue("error", v)),
        )

    raise ConfigurationError(f"Unsupported parameter type: {typ!r}")


def arguments_strategy(
    fn: FunctionSignature, ctx: GenerationContext
) -> SearchStrategy[tuple[GeneratedValue, ...]]:
    """Strategy for the full argument tuple of a function, in parameter order."""
    return st.tuples(*[strategy_for(param.typ, ctx) for param in fn.args])
