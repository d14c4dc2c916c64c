# SPDX-License-Identifier: AGPL-3.0

"""
Run engine for invariant and property testing.

Both modes share the same life cycle: initialize (classify functions, register
statistics, validate discard functions, resolve traits), then hand a RunCase
strategy and a falsification predicate to `hypothesis.find`, which generates
cases, and shrinks the first falsifying one to a minimal counterexample.

The backend is not reset between cases: every call mutates the chain, exactly
as a long running fuzzing session would.
"""

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar

from hypothesis import Phase, find, settings
from hypothesis import strategies as st
from hypothesis.errors import Flaky, NoSuchExample
from hypothesis.strategies import SearchStrategy

from .arbitrary import GenerationContext, arguments_strategy
from .backend import Account, Backend, deployer_address, eligible_accounts
from .encoder import encode_arguments
from .exceptions import (
    BackendRuntimeError,
    ConfigurationError,
    Falsification,
    StampedeException,
    TestFailure,
)
from .hooks import HookContext, HookRegistry
from .logs import debug, debug_once
from .radio import Radio
from .replay import InvalidPath, pack, unpack, value_data, value_from_data
from .statistics import StatisticsTracker
from .traits import (
    TraitResolver,
    has_trait_reference,
    resolve_trait_candidates,
    resolver_from_implementations,
)
from .types import UPDATE_CONTEXT, Bool, ContractModel, FunctionSignature
from .values import GeneratedValue, rendered_args
from .wire import StringAsciiCV, UIntCV, is_ok_true, is_true, to_string

# total number of blocks a run may advance the chain by, spread over its runs
BLOCK_ADVANCE_BUDGET = 100_000

# width of the [PASS] / [FAIL] / [WARN] markers in progress lines
MARKER_WIDTH = 6


def max_burn_blocks(runs: int) -> int:
    return math.ceil(BLOCK_ADVANCE_BUDGET / runs)


#
# run cases and outcomes
#


@dataclass(frozen=True)
class SelectedCall:
    function: FunctionSignature
    caller: Account
    args: tuple[GeneratedValue, ...]


@dataclass(frozen=True)
class InvariantRunCase:
    contract_id: str
    invariant_caller: Account
    can_advance: bool
    calls: tuple[SelectedCall, ...]
    invariant: FunctionSignature
    invariant_args: tuple[GeneratedValue, ...]
    burn_blocks: int = 0


@dataclass(frozen=True)
class PropertyRunCase:
    contract_id: str
    caller: Account
    can_advance: bool
    test: FunctionSignature
    args: tuple[GeneratedValue, ...]
    burn_blocks: int = 0


RunCase = InvariantRunCase | PropertyRunCase


@dataclass(frozen=True)
class CounterExample:
    case: RunCase
    # number of runs up to and including the first falsification
    runs: int
    seed: int
    path: str | None
    error: Falsification | TestFailure


@dataclass(frozen=True)
class Success:
    runs: int
    seed: int
    path: str | None = None


@dataclass(frozen=True)
class Failure:
    counterexample: CounterExample

    @property
    def seed(self) -> int:
        return self.counterexample.seed

    @property
    def path(self) -> str | None:
        return self.counterexample.path


RunOutcome = Success | Failure


class AbortRun(BaseException):
    """
    Carries a fatal error out of the hypothesis search.

    hypothesis treats any Exception raised by the predicate as a failure to be
    shrunk; fatal errors must end the search right away instead.
    """

    def __init__(self, error: StampedeException):
        super().__init__(str(error))
        self.error = error


def random_seed() -> int:
    return random.SystemRandom().randrange(-(2**31), 2**31)


#
# engines
#


class RunEngine:
    mode: ClassVar[str]
    title: ClassVar[str]

    def __init__(
        self,
        backend: Backend,
        contract_id: str,
        radio: Radio,
        *,
        runs: int = 100,
        seed: int | None = None,
        path: str | None = None,
        bail: bool = False,
        hooks: HookRegistry | None = None,
        trait_resolver: TraitResolver | None = None,
    ):
        if runs < 1:
            raise ConfigurationError(f"runs must be positive, got {runs}")

        self.backend = backend
        self.contract_id = contract_id
        self.radio = radio
        self.runs = runs
        self.seed = random_seed() if seed is None else seed
        self.path = path
        self.bail = bail
        self.hooks = hooks or HookRegistry()
        self.trait_resolver = trait_resolver

        self.statistics = StatisticsTracker(self.mode)
        self.iterations = 0
        self.first_failure_at: int | None = None
        self.last_failure: tuple[RunCase, Falsification | TestFailure] | None = None

    @property
    def contract(self) -> ContractModel:
        contracts = self.backend.contracts()
        if self.contract_id not in contracts:
            raise ConfigurationError(
                f"contract {self.contract_id} is not deployed on the backend"
            )
        return contracts[self.contract_id]

    @property
    def contract_name(self) -> str:
        return self.model.name

    #
    # initialization
    #

    def targets(self) -> list[FunctionSignature]:
        """Functions that may have a discard function paired with them."""
        raise NotImplementedError

    def functions_by_role(self) -> dict[str, list[FunctionSignature]]:
        raise NotImplementedError

    def register_statistics(self) -> None:
        raise NotImplementedError

    def check_functions(self) -> None:
        raise NotImplementedError

    def validate_discards(self) -> dict[str, FunctionSignature]:
        """
        Pair each target with its `can-` function, if any.

        The discard function must take the same named parameters as its
        target, in any order, and return a bool.
        """

        discards = {}
        for fn in self.targets():
            discard = self.model.discard_function_for(fn)
            if discard is None:
                continue

            if not discard.params_match(fn):
                raise ConfigurationError(
                    f'\nError: Parameter mismatch for discard function "{discard.name}" '
                    f'in contract "{self.model.name}".\n'
                )

            if discard.output != Bool():
                raise ConfigurationError(
                    f'\nError: Return type must be boolean for discard function "{discard.name}" '
                    f'in contract "{self.model.name}".\n'
                )

            discards[fn.name] = discard

        return discards

    def resolve_traits(self) -> dict[str, tuple[str, ...]]:
        by_role = self.functions_by_role()
        if not any(has_trait_reference(fn) for fns in by_role.values() for fn in fns):
            return {}

        resolver = self.trait_resolver or resolver_from_implementations(
            self.backend.implemented_traits()
        )
        return resolve_trait_candidates(by_role, resolver)

    def initialize(self) -> None:
        self.model = self.contract

        self.register_statistics()
        self.discards = self.validate_discards()
        trait_candidates = self.resolve_traits()
        self.check_functions()

        self.eligible = eligible_accounts(self.backend)
        if not self.eligible:
            raise ConfigurationError("No eligible caller accounts were found.")

        self.ctx = GenerationContext.create(
            list(self.backend.accounts().values()), trait_candidates
        )

        # building the strategies up front surfaces missing addresses or
        # trait implementations before the first call
        self.argument_strategies = {
            fn.name: arguments_strategy(fn, self.ctx)
            for fns in self.functions_by_role().values()
            for fn in fns
        }

    #
    # execution helpers
    #

    def progress(
        self,
        caller: Account,
        marker: str,
        function: str,
        args: str,
        result: str | None = None,
    ) -> None:
        parts = [
            f"₿ {self.backend.burn_block_height:>8} Ӿ {self.backend.block_height:>8}  ",
            caller.label,
            marker or " " * MARKER_WIDTH,
            self.contract_name,
            function,
        ]
        if args:
            parts.append(args)
        if result is not None:
            parts.append(result)
        self.radio.on_message(" ".join(parts))

    def passes_discard(
        self,
        fn: FunctionSignature,
        args: Sequence[GeneratedValue],
        caller: Account,
    ) -> bool:
        """Evaluate the discard function paired with fn, if there is one."""

        discard = self.discards.get(fn.name)
        if discard is None:
            return True

        # the discard function may declare the parameters in another order
        by_name = dict(zip((p.name for p in fn.args), args, strict=True))
        discard_args = tuple(by_name[p.name] for p in discard.args)

        try:
            result = self.backend.call_read_only(
                self.contract_id,
                discard.name,
                encode_arguments(discard, discard_args),
                caller.address,
            )
        except BackendRuntimeError as err:
            debug(f"{discard.name} failed, discarding the call: {err}")
            return False

        return is_true(result.value)

    def advance(self, case: RunCase) -> None:
        if case.can_advance:
            self.backend.advance_blocks(case.burn_blocks)

    def execute(self, case: RunCase) -> None:
        """
        Run one case against the backend.

        Raises Falsification or TestFailure when the case falsifies the
        property under test.
        """
        raise NotImplementedError

    def strategy(self) -> SearchStrategy:
        raise NotImplementedError

    #
    # replay paths
    #

    def case_data(self, case: RunCase) -> dict:
        raise NotImplementedError

    def case_from_data(self, data: dict) -> RunCase:
        raise NotImplementedError

    def call_data(
        self, fn: FunctionSignature, caller: Account, args: Sequence[GeneratedValue]
    ) -> list:
        return [fn.name, caller.label, [value_data(arg) for arg in args]]

    def call_from_data(
        self, data, candidates: Sequence[FunctionSignature]
    ) -> tuple[FunctionSignature, Account, tuple[GeneratedValue, ...]]:
        if not isinstance(data, list) or len(data) != 3:
            raise InvalidPath(f"malformed call {data!r}")

        name, label, args = data
        fn = next((f for f in candidates if f.name == name), None)
        if fn is None:
            raise InvalidPath(f"{name!r} is not a candidate function")

        caller = next((a for a in self.eligible if a.label == label), None)
        if caller is None:
            raise InvalidPath(f"{label!r} is not an eligible caller")

        if not isinstance(args, list) or len(args) != len(fn.args):
            raise InvalidPath(f"{name} expects {len(fn.args)} arguments")

        values = tuple(
            value_from_data(arg, param.typ)
            for arg, param in zip(args, fn.args, strict=True)
        )
        return fn, caller, values

    def burn_from_data(self, data: dict) -> tuple[bool, int]:
        burn = data.get("burn")
        if burn is None:
            return False, 0
        if not isinstance(burn, int) or isinstance(burn, bool) or burn < 1:
            raise InvalidPath(f"invalid block count {burn!r}")
        return True, burn

    def path_for(self, case: RunCase) -> str:
        return pack(self.case_data(case))

    def case_for(self, path: str) -> RunCase:
        data = unpack(path)
        if not isinstance(data, dict) or data.get("mode") != self.mode:
            raise InvalidPath(f"not a path for {self.mode} mode")

        try:
            return self.case_from_data(data)
        except KeyError as err:
            raise InvalidPath(f"missing {err}") from err

    #
    # search
    #

    def falsifies(self, case: RunCase) -> bool:
        try:
            self.execute(case)
        except (Falsification, TestFailure) as err:
            if self.first_failure_at is None:
                self.first_failure_at = self.iterations
            self.last_failure = (case, err)
            return True
        except StampedeException as err:
            raise AbortRun(err) from err

        return False

    def search_settings(self) -> settings:
        phases = [Phase.generate] if self.bail else [Phase.generate, Phase.shrink]
        return settings(
            max_examples=self.runs,
            database=None,
            deadline=None,
            phases=phases,
            print_blob=False,
        )

    def replay(self, case: RunCase) -> RunOutcome:
        """Execute a single recorded case, without searching or shrinking."""

        try:
            self.execute(case)
        except (Falsification, TestFailure) as err:
            return Failure(
                CounterExample(case, self.iterations, self.seed, self.path, err)
            )

        return Success(self.iterations, self.seed, self.path)

    def run(self) -> RunOutcome:
        self.initialize()
        recorded = None if self.path is None else self.case_for(self.path)

        self.radio.on_message(
            f"\nStarting {self.title} testing type for the {self.contract_name} contract...\n"
        )

        if recorded is not None:
            return self.replay(recorded)

        try:
            find(
                self.strategy(),
                self.falsifies,
                settings=self.search_settings(),
                random=random.Random(self.seed),
            )
        except AbortRun as abort:
            raise abort.error from abort.error.__cause__
        except NoSuchExample:
            return Success(self.iterations, self.seed)
        except Flaky:
            # the minimal case no longer fails on replay against the mutated
            # chain; report the last case that did
            debug("final replay of the counterexample did not fail")
            if self.last_failure is None:
                raise

        assert self.last_failure is not None and self.first_failure_at is not None
        case, error = self.last_failure
        return Failure(
            CounterExample(
                case, self.first_failure_at, self.seed, self.path_for(case), error
            )
        )

class InvariantEngine(RunEngine):
    """
    Calls random sequences of public functions, then checks a random
    invariant. An invariant that does not return `true` falsifies the run.
    """

    mode = "invariant"
    title = "invariant"

    def targets(self) -> list[FunctionSignature]:
        return self.model.sut_functions()

    def functions_by_role(self) -> dict[str, list[FunctionSignature]]:
        return {
            "public functions": self.model.sut_functions(),
            "invariants": self.model.invariant_functions(),
        }

    def register_statistics(self) -> None:
        for fn in self.model.sut_functions():
            self.statistics.sut.register(fn.name)
        for fn in self.model.invariant_functions():
            self.statistics.invariant.register(fn.name)

    def check_functions(self) -> None:
        name = self.model.name

        if not self.model.sut_functions():
            raise ConfigurationError(
                f'No public functions found for the "{name}" contract. Without public '
                "functions, no state transitions can happen inside the contract, and "
                "the invariant test is not meaningful."
            )

        if not self.model.invariant_functions():
            raise ConfigurationError(
                f'No invariant functions found for the "{name}" contract. Beware, for '
                "your contract may be exposed to unforeseen issues."
            )

    def initialize(self) -> None:
        super().initialize()

        self.sut_functions = self.model.sut_functions()
        self.invariants = self.model.invariant_functions()
        self.deployer = deployer_address(self.backend)
        self.has_context = self.model.get(UPDATE_CONTEXT) is not None

        # number of successful calls per function, mirrored into the contract
        self.local_context = {fn.name: 0 for fn in self.sut_functions}
        if self.has_context:
            for fn in self.sut_functions:
                self.update_context(fn.name, 0, strict=True)

    def update_context(self, name: str, count: int, strict: bool = False) -> None:
        try:
            result = self.backend.call_public(
                self.contract_id,
                UPDATE_CONTEXT,
                (StringAsciiCV(name), UIntCV(count)),
                self.deployer,
            )
            returned = to_string(result.value)
        except BackendRuntimeError as err:
            result, returned = None, f"a runtime error: {err}"

        if result is not None and is_ok_true(result.value):
            return

        if strict:
            raise ConfigurationError(
                f"Failed to initialize the context for function: {name}."
            )
        debug_once(f"{UPDATE_CONTEXT} returned {returned} for {name}")

    def strategy(self) -> SearchStrategy[InvariantRunCase]:
        callers = st.sampled_from(self.eligible)

        @st.composite
        def selected_calls(draw) -> SelectedCall:
            fn = draw(st.sampled_from(self.sut_functions))
            caller = draw(callers)
            args = draw(self.argument_strategies[fn.name])
            return SelectedCall(fn, caller, args)

        @st.composite
        def cases(draw) -> InvariantRunCase:
            invariant_caller = draw(callers)
            can_advance = draw(st.booleans())
            calls = draw(st.lists(selected_calls(), min_size=1))
            invariant = draw(st.sampled_from(self.invariants))
            invariant_args = draw(self.argument_strategies[invariant.name])
            burn_blocks = (
                draw(st.integers(1, max_burn_blocks(self.runs))) if can_advance else 0
            )
            return InvariantRunCase(
                self.contract_id,
                invariant_caller,
                can_advance,
                tuple(calls),
                invariant,
                invariant_args,
                burn_blocks,
            )

        return cases()

    def case_data(self, case: InvariantRunCase) -> dict:
        return {
            "mode": self.mode,
            "calls": [self.call_data(c.function, c.caller, c.args) for c in case.calls],
            "invariant": self.call_data(
                case.invariant, case.invariant_caller, case.invariant_args
            ),
            "burn": case.burn_blocks if case.can_advance else None,
        }

    def case_from_data(self, data: dict) -> InvariantRunCase:
        if not isinstance(data["calls"], list) or not data["calls"]:
            raise InvalidPath("expected at least one public function call")

        calls = tuple(
            SelectedCall(*self.call_from_data(item, self.sut_functions))
            for item in data["calls"]
        )
        invariant, invariant_caller, invariant_args = self.call_from_data(
            data["invariant"], self.invariants
        )
        can_advance, burn_blocks = self.burn_from_data(data)

        return InvariantRunCase(
            self.contract_id,
            invariant_caller,
            can_advance,
            calls,
            invariant,
            invariant_args,
            burn_blocks,
        )

    def call_sut(self, call: SelectedCall) -> None:
        fn = call.function
        args = rendered_args(call.args)
        sut = self.statistics.sut

        encoded = encode_arguments(fn, call.args)
        self.hooks.run_pre(HookContext(fn, encoded))

        if not self.passes_discard(fn, call.args, call.caller):
            sut.increment("ignored", fn.name)
            self.progress(call.caller, "[WARN]", fn.name, args)
            return

        try:
            result = self.backend.call_public(
                self.contract_id, fn.name, encoded, call.caller.address
            )
        except BackendRuntimeError as err:
            sut.increment("ignored", fn.name)
            self.progress(call.caller, "", fn.name, args, "(runtime)")
            debug(f"{fn.name}: {err}")
            return

        if not result.success:
            sut.increment("ignored", fn.name)
            self.progress(call.caller, "", fn.name, args, to_string(result.value))
            return

        sut.increment("successful", fn.name)
        self.local_context[fn.name] += 1
        if self.has_context:
            self.update_context(fn.name, self.local_context[fn.name])

        self.progress(call.caller, "", fn.name, args, to_string(result.value))
        self.hooks.run_post(HookContext(fn, encoded, result))

    def check_invariant(self, case: InvariantRunCase) -> None:
        invariant = case.invariant
        caller = case.invariant_caller
        args = rendered_args(case.invariant_args)
        checks = self.statistics.invariant

        try:
            result = self.backend.call_read_only(
                self.contract_id,
                invariant.name,
                encode_arguments(invariant, case.invariant_args),
                caller.address,
            )
        except BackendRuntimeError as err:
            checks.increment("failed", invariant.name)
            self.progress(caller, "[FAIL]", invariant.name, args)
            raise Falsification(
                f'Invariant failed for {self.contract_name} contract: "{invariant.name}" '
                f"raised a runtime error: {err}"
            ) from err

        returned = to_string(result.value)
        if not is_true(result.value):
            checks.increment("failed", invariant.name)
            self.progress(caller, "[FAIL]", invariant.name, args, returned)
            raise Falsification(
                f'Invariant failed for {self.contract_name} contract: "{invariant.name}" '
                f"returned {returned}",
                result=returned,
            )

        checks.increment("passed", invariant.name)
        self.progress(caller, "[PASS]", invariant.name, args, returned)
        self.advance(case)

    def execute(self, case: InvariantRunCase) -> None:
        self.iterations += 1
        for call in case.calls:
            self.call_sut(call)
        self.check_invariant(case)


class PropertyEngine(RunEngine):
    """
    Calls a random test function with random arguments. A test function that
    does not return `(ok true)` falsifies the run.
    """

    mode = "test"
    title = "property"

    def targets(self) -> list[FunctionSignature]:
        return self.model.test_functions()

    def functions_by_role(self) -> dict[str, list[FunctionSignature]]:
        return {"test functions": self.model.test_functions()}

    def register_statistics(self) -> None:
        for fn in self.model.test_functions():
            self.statistics.test.register(fn.name)

    def check_functions(self) -> None:
        if not self.model.test_functions():
            raise ConfigurationError(
                f'No test functions found for the "{self.model.name}" contract.'
            )

    def initialize(self) -> None:
        super().initialize()
        self.tests = self.model.test_functions()

    def strategy(self) -> SearchStrategy[PropertyRunCase]:
        @st.composite
        def cases(draw) -> PropertyRunCase:
            caller = draw(st.sampled_from(self.eligible))
            can_advance = draw(st.booleans())
            test = draw(st.sampled_from(self.tests))
            args = draw(self.argument_strategies[test.name])
            burn_blocks = (
                draw(st.integers(1, max_burn_blocks(self.runs))) if can_advance else 0
            )
            return PropertyRunCase(
                self.contract_id, caller, can_advance, test, args, burn_blocks
            )

        return cases()

    def case_data(self, case: PropertyRunCase) -> dict:
        return {
            "mode": self.mode,
            "test": self.call_data(case.test, case.caller, case.args),
            "burn": case.burn_blocks if case.can_advance else None,
        }

    def case_from_data(self, data: dict) -> PropertyRunCase:
        test, caller, args = self.call_from_data(data["test"], self.tests)
        can_advance, burn_blocks = self.burn_from_data(data)
        return PropertyRunCase(
            self.contract_id, caller, can_advance, test, args, burn_blocks
        )

    def execute(self, case: PropertyRunCase) -> None:
        test = case.test
        caller = case.caller
        args = rendered_args(case.args)
        tests = self.statistics.test

        # a discarded case still uses up one of the runs
        self.iterations += 1

        if not self.passes_discard(test, case.args, caller):
            tests.increment("discarded", test.name)
            self.progress(caller, "[WARN]", test.name, args)
            return

        try:
            result = self.backend.call_public(
                self.contract_id,
                test.name,
                encode_arguments(test, case.args),
                caller.address,
            )
        except BackendRuntimeError as err:
            tests.increment("failed", test.name)
            self.progress(caller, "[FAIL]", test.name, args, "(runtime)")
            raise TestFailure(
                f'Test failed for {self.contract_name} contract: "{test.name}" '
                f"raised a runtime error: {err}"
            ) from err

        returned = to_string(result.value)
        if not is_ok_true(result.value):
            tests.increment("failed", test.name)
            self.progress(caller, "[FAIL]", test.name, args, returned)
            raise TestFailure(
                f'Test failed for {self.contract_name} contract: "{test.name}" '
                f"returned {returned}",
                result=returned,
            )

        tests.increment("passed", test.name)
        self.progress(caller, "[PASS]", test.name, args, returned)
        self.advance(case)


ENGINES: dict[str, type[RunEngine]] = {
    InvariantEngine.mode: InvariantEngine,
    PropertyEngine.mode: PropertyEngine,
}


def create_engine(mode: str, *args, **kwargs) -> RunEngine:
    if mode not in ENGINES:
        raise ConfigurationError(f"unknown mode: {mode}")
    return ENGINES[mode](*args, **kwargs)
