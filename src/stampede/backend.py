# SPDX-License-Identifier: AGPL-3.0

"""
The execution backend a run is driven against.

The backend owns the simulated chain: deployed contracts, accounts and block
heights. stampede only consumes it, so any object satisfying `Backend` can be
plugged in, e.g. through `--backend my_module:make_backend`.
"""

import importlib
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .exceptions import ConfigurationError
from .types import ContractModel
from .wire import WireValue

FAUCET = "faucet"
DEPLOYER = "deployer"


@dataclass(frozen=True)
class Account:
    label: str
    address: str


@dataclass(frozen=True)
class CallResult:
    """
    Outcome of a contract call.

    success is False when the call returned an `(err ...)` response or was
    otherwise rejected by the chain; value is the returned wire value.
    """

    success: bool
    value: WireValue


@runtime_checkable
class Backend(Protocol):
    def contracts(self) -> dict[str, ContractModel]:
        """Interfaces of all deployed contracts, keyed by contract id."""
        ...

    def accounts(self) -> dict[str, str]:
        """Account label -> address."""
        ...

    def call_public(
        self,
        contract_id: str,
        function: str,
        args: Sequence[WireValue],
        sender: str,
    ) -> CallResult: ...

    def call_read_only(
        self,
        contract_id: str,
        function: str,
        args: Sequence[WireValue],
        sender: str,
    ) -> CallResult: ...

    def advance_blocks(self, count: int) -> None: ...

    @property
    def block_height(self) -> int: ...

    @property
    def burn_block_height(self) -> int: ...

    def implemented_traits(self) -> dict[str, list[str]]:
        """Contract id -> ids of the traits the contract implements."""
        ...


def eligible_accounts(backend: Backend) -> list[Account]:
    """All accounts that may act as callers, i.e. everything but the faucet."""
    return [
        Account(label, address)
        for label, address in backend.accounts().items()
        if label != FAUCET
    ]


def deployer_address(backend: Backend) -> str:
    accounts = backend.accounts()
    if DEPLOYER not in accounts:
        raise ConfigurationError("the backend has no deployer account")
    return accounts[DEPLOYER]


def load_backend(target: str, **kwargs) -> Backend:
    """
    Instantiate a backend from a "module:factory" import string.

    The factory is called with the given keyword arguments.
    """

    module_name, sep, factory_name = target.partition(":")
    if not sep or not module_name or not factory_name:
        raise ConfigurationError(
            f"invalid backend {target!r}, expected the form module:factory"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as err:
        raise ConfigurationError(f"cannot import backend module {module_name}") from err

    factory = getattr(module, factory_name, None)
    if factory is None:
        raise ConfigurationError(f"{module_name} has no attribute {factory_name}")
    if not callable(factory):
        raise ConfigurationError(f"{target} is not callable")

    backend = factory(**kwargs)
    if not isinstance(backend, Backend):
        raise ConfigurationError(f"{target} did not return an execution backend")

    return backend
