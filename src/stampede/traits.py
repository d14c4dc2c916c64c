# SPDX-License-Identifier: AGPL-3.0

"""Trait references in function signatures and their candidate contracts."""

from collections.abc import Callable, Iterable, Mapping

from .exceptions import ConfigurationError
from .types import FunctionSignature, TraitReference, iter_types

# deployers of the boot contracts, which never count as implementations
BOOT_DEPLOYERS = (
    "SP000000000000000000002Q6VF78",
    "ST000000000000000000002AMW42H",
)

TraitResolver = Callable[[str], list[str]]


def has_trait_reference(fn: FunctionSignature) -> bool:
    return any(
        isinstance(typ, TraitReference)
        for param in fn.args
        for typ in iter_types(param.typ)
    )


def referenced_traits(functions: Iterable[FunctionSignature]) -> list[str]:
    """Trait ids referenced by the given functions, in order of first use."""

    traits: dict[str, None] = {}
    for fn in functions:
        for param in fn.args:
            for typ in iter_types(param.typ):
                if isinstance(typ, TraitReference):
                    traits.setdefault(typ.trait_id)
    return list(traits)


def is_boot_contract(contract_id: str) -> bool:
    return contract_id.split(".")[0] in BOOT_DEPLOYERS


def resolver_from_implementations(
    implemented_traits: Mapping[str, Iterable[str]],
) -> TraitResolver:
    """
    Build a resolver from a contract id -> implemented trait ids mapping, as
    reported by `Backend.implemented_traits()`.
    """

    implementers: dict[str, list[str]] = {}
    for contract_id, trait_ids in implemented_traits.items():
        if is_boot_contract(contract_id):
            continue
        for trait_id in trait_ids:
            implementers.setdefault(trait_id, []).append(contract_id)

    def resolve(trait_id: str) -> list[str]:
        return list(implementers.get(trait_id, []))

    return resolve


def resolve_trait_candidates(
    functions_by_role: Mapping[str, list[FunctionSignature]],
    resolver: TraitResolver,
) -> dict[str, tuple[str, ...]]:
    """
    Resolve every trait referenced by the given functions to the contracts
    implementing it.

    functions_by_role maps a plural role description (e.g. "public functions")
    to the functions of that role. Raises ConfigurationError naming the roles
    and traits that have no implementation.
    """

    candidates: dict[str, tuple[str, ...]] = {}
    missing_roles: list[str] = []
    missing_traits: list[str] = []

    for role, functions in functions_by_role.items():
        role_missing = False
        for trait_id in referenced_traits(functions):
            if trait_id not in candidates:
                candidates[trait_id] = tuple(resolver(trait_id))
            if not candidates[trait_id]:
                role_missing = True
                if trait_id not in missing_traits:
                    missing_traits.append(trait_id)
        if role_missing:
            missing_roles.append(role)

    if missing_roles:
        raise ConfigurationError(
            f"Found {' and '.join(missing_roles)} referencing traits, "
            "but no trait implementations were found in the project.\n"
            f"Unresolved traits: {', '.join(missing_traits)}"
        )

    return candidates
