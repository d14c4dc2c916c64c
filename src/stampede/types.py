# SPDX-License-Identifier: AGPL-3.0

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import ConfigurationError

# reserved function names and role prefixes
UPDATE_CONTEXT = "update-context"
INVARIANT_PREFIX = "invariant-"
TEST_PREFIX = "test-"
DISCARD_PREFIX = "can-"


class ParameterType:
    """Base class of the closed parameter type grammar."""

    pass


@dataclass(frozen=True)
class Int128(ParameterType):
    pass


@dataclass(frozen=True)
class UInt128(ParameterType):
    pass


@dataclass(frozen=True)
class Bool(ParameterType):
    pass


@dataclass(frozen=True)
class Principal(ParameterType):
    pass


@dataclass(frozen=True)
class TraitReference(ParameterType):
    trait_id: str


@dataclass(frozen=True)
class Buffer(ParameterType):
    max_len: int


@dataclass(frozen=True)
class StringAscii(ParameterType):
    max_len: int


@dataclass(frozen=True)
class StringUtf8(ParameterType):
    max_len: int


@dataclass(frozen=True)
class List(ParameterType):
    elem: ParameterType
    max_len: int


@dataclass(frozen=True)
class Tuple(ParameterType):
    fields: tuple[tuple[str, ParameterType], ...]


@dataclass(frozen=True)
class Optional(ParameterType):
    inner: ParameterType


@dataclass(frozen=True)
class Response(ParameterType):
    ok: ParameterType
    err: ParameterType


BASE_TYPES = {
    "int128": Int128(),
    "uint128": UInt128(),
    "bool": Bool(),
    "principal": Principal(),
}


def parse_type(typ: Any) -> ParameterType:
    """Parse a parameter type from the contract interface JSON shape"""

    # int128, uint128, bool, principal
    if isinstance(typ, str):
        if typ in BASE_TYPES:
            return BASE_TYPES[typ]
        if typ == "trait_reference":
            raise ConfigurationError(
                "unresolved trait reference: the contract interface must name the trait"
            )
        raise ConfigurationError(f"Unsupported base parameter type: {typ}")

    if not isinstance(typ, dict) or len(typ) != 1:
        raise ConfigurationError(f"Unsupported complex parameter type: {typ!r}")

    ((kind, body),) = typ.items()

    if kind == "buffer":
        return Buffer(body["length"])

    if kind == "string-ascii":
        return StringAscii(body["length"])

    if kind == "string-utf8":
        return StringUtf8(body["length"])

    if kind == "list":
        return List(parse_type(body["type"]), body["length"])

    if kind == "tuple":
        return Tuple(tuple((item["name"], parse_type(item["type"])) for item in body))

    if kind == "optional":
        return Optional(parse_type(body))

    if kind == "response":
        return Response(parse_type(body["ok"]), parse_type(body["error"]))

    if kind == "trait_reference":
        return TraitReference(parse_trait_id(body))

    raise ConfigurationError(f"Unsupported complex parameter type: {typ!r}")


def parse_trait_id(body: Any) -> str:
    """
    Return the trait identifier of a trait reference.

    Accepts either a plain identifier string or the enriched AST form:
    {"name": ..., "import": {"Imported": {"name": ..., "contract_identifier": {...}}}}
    """

    if isinstance(body, str):
        return body

    try:
        imported = body["import"]["Imported"]
        contract = imported["contract_identifier"]
        issuer = contract["issuer"]
    except (KeyError, TypeError) as err:
        raise ConfigurationError(f"malformed trait reference: {body!r}") from err

    # the issuer is either an address string or the raw [version, bytes] pair
    issuer_str = issuer if isinstance(issuer, str) else "-".join(map(str, issuer))
    return f"{issuer_str}.{contract['name']}.{imported['name']}"


def unparse_type(typ: ParameterType) -> Any:
    """Inverse of parse_type, used to render function outputs in reports"""

    for name, base in BASE_TYPES.items():
        if typ == base:
            return name

    if isinstance(typ, TraitReference):
        return {"trait_reference": typ.trait_id}

    if isinstance(typ, Buffer):
        return {"buffer": {"length": typ.max_len}}

    if isinstance(typ, StringAscii):
        return {"string-ascii": {"length": typ.max_len}}

    if isinstance(typ, StringUtf8):
        return {"string-utf8": {"length": typ.max_len}}

    if isinstance(typ, List):
        return {"list": {"type": unparse_type(typ.elem), "length": typ.max_len}}

    if isinstance(typ, Tuple):
        return {
            "tuple": [
                {"name": name, "type": unparse_type(field_type)}
                for name, field_type in typ.fields
            ]
        }

    if isinstance(typ, Optional):
        return {"optional": unparse_type(typ.inner)}

    if isinstance(typ, Response):
        return {"response": {"ok": unparse_type(typ.ok), "error": unparse_type(typ.err)}}

    raise ValueError(typ)


def iter_types(typ: ParameterType):
    """Yield the given type and all of its nested types, depth first"""

    yield typ

    if isinstance(typ, List):
        yield from iter_types(typ.elem)
    elif isinstance(typ, Tuple):
        for _, field_type in typ.fields:
            yield from iter_types(field_type)
    elif isinstance(typ, Optional):
        yield from iter_types(typ.inner)
    elif isinstance(typ, Response):
        yield from iter_types(typ.ok)
        yield from iter_types(typ.err)


class Access(Enum):
    PUBLIC = "public"
    READ_ONLY = "read_only"
    PRIVATE = "private"


@dataclass(frozen=True)
class Param:
    name: str
    typ: ParameterType


@dataclass(frozen=True)
class FunctionSignature:
    name: str
    access: Access
    args: tuple[Param, ...] = ()
    output: ParameterType = field(default_factory=Bool)

    @staticmethod
    def from_json(item: dict) -> "FunctionSignature":
        try:
            access = Access(item["access"])
        except ValueError as err:
            raise ConfigurationError(
                f"unknown access {item['access']!r} for function {item['name']}"
            ) from err

        args = tuple(Param(arg["name"], parse_type(arg["type"])) for arg in item["args"])
        output = parse_type(item["outputs"]["type"])
        return FunctionSignature(item["name"], access, args, output)

    def to_json(self) -> dict:
        return {
            "name": self.name,
            "access": self.access.value,
            "args": [{"name": p.name, "type": unparse_type(p.typ)} for p in self.args],
            "outputs": {"type": unparse_type(self.output)},
        }

    @property
    def outputs_json(self) -> dict:
        return {"type": unparse_type(self.output)}

    def is_sut(self) -> bool:
        return (
            self.access == Access.PUBLIC
            and self.name != UPDATE_CONTEXT
            and not self.name.startswith(TEST_PREFIX)
        )

    def is_invariant(self) -> bool:
        return self.access == Access.READ_ONLY and self.name.startswith(
            INVARIANT_PREFIX
        )

    def is_test(self) -> bool:
        return self.access == Access.PUBLIC and self.name.startswith(TEST_PREFIX)

    def is_discard(self) -> bool:
        return self.access == Access.READ_ONLY and self.name.startswith(
            DISCARD_PREFIX
        )

    def params_match(self, other: "FunctionSignature") -> bool:
        """Same parameter names and types, in any order."""
        return sorted(self.args, key=lambda p: p.name) == sorted(
            other.args, key=lambda p: p.name
        )


@dataclass(frozen=True)
class ContractModel:
    contract_id: str
    functions: tuple[FunctionSignature, ...]

    @property
    def name(self) -> str:
        return contract_name(self.contract_id)

    @staticmethod
    def from_json(contract_id: str, interface: dict) -> "ContractModel":
        functions = tuple(
            FunctionSignature.from_json(item) for item in interface["functions"]
        )
        return ContractModel(contract_id, functions)

    def get(self, name: str) -> FunctionSignature | None:
        return next((f for f in self.functions if f.name == name), None)

    def sut_functions(self) -> list[FunctionSignature]:
        return [f for f in self.functions if f.is_sut()]

    def invariant_functions(self) -> list[FunctionSignature]:
        return [f for f in self.functions if f.is_invariant()]

    def test_functions(self) -> list[FunctionSignature]:
        return [f for f in self.functions if f.is_test()]

    def discard_function_for(self, fn: FunctionSignature) -> FunctionSignature | None:
        discard = self.get(f"{DISCARD_PREFIX}{fn.name}")
        return discard if discard is not None and discard.is_discard() else None


def contract_name(contract_id: str) -> str:
    """'ST1PQ...PGZGM.counter' -> 'counter'"""
    return contract_id.split(".")[-1]
