# SPDX-License-Identifier: AGPL-3.0

import json
import os
import sys
from dataclasses import asdict, dataclass, field
from importlib import metadata

from .backend import Backend, load_backend
from .config import (
    Config,
    ConfigSource,
    arg_parser,
    default_config,
    resolve_config_files,
    toml_parser,
)
from .engine import Failure, RunOutcome, create_engine
from .exceptions import (
    ConfigurationError,
    ErrorKind,
    StampedeException,
    error_kind,
)
from .hooks import HookRegistry
from .logs import debug, error, info, set_level, warn
from .persistence import load_failures, persist_failure
from .radio import ConsoleRadio, Radio
from .reporter import emit, report
from .statistics import StatisticsTracker
from .types import contract_name
from .ui import ui
from .utils import NamedTimer

EXIT_CODES = {
    ErrorKind.FALSIFICATION: 1,
    ErrorKind.TEST_FAILURE: 1,
    ErrorKind.BACKEND_RUNTIME: 1,
    ErrorKind.CONFIGURATION: 2,
    ErrorKind.HOOK: 3,
}


@dataclass(frozen=True)
class RunResult:
    contract: str
    mode: str
    seed: int
    path: str | None
    passed: bool
    # number of runs until the first failure, or until success
    runs: int
    error: str | None = None
    statistics: dict = field(default_factory=dict)


@dataclass
class MainResult:
    exitcode: int
    results: list[RunResult] = field(default_factory=list)


def load_config(_args) -> Config:
    config = default_config()

    # parse CLI args first, so that can get `--help` out of the way and resolve `--debug`
    # but don't apply the CLI overrides yet
    cli_overrides = arg_parser().parse_args(_args)

    # then for each config file, parse it and override the args
    config_files = resolve_config_files(_args)
    for config_file in config_files:
        if not os.path.exists(config_file):
            error(f"Config file not found: {config_file}")
            sys.exit(2)

        overrides = toml_parser().parse_file(config_file)
        config = config.with_overrides(ConfigSource.config_file, **overrides)

    # finally apply the CLI overrides
    config = config.with_overrides(ConfigSource.command_line, **vars(cli_overrides))

    return config


def resolve_contract_id(backend: Backend, contract: str) -> str:
    """Accept either a full contract identifier or a bare contract name."""

    if not contract:
        raise ConfigurationError("no contract given, use --contract CONTRACT")

    contract_ids = list(backend.contracts())
    if contract in contract_ids:
        return contract

    matches = [cid for cid in contract_ids if contract_name(cid) == contract]
    if not matches:
        raise ConfigurationError(f"contract {contract} was not found in the project")
    if len(matches) > 1:
        raise ConfigurationError(
            f"contract name {contract} is ambiguous: {', '.join(matches)}"
        )

    return matches[0]


def log_settings(args: Config, contract_id: str) -> None:
    info(f"Target contract: {contract_name(contract_id)}")
    debug(f"Contract identifier: {contract_id}")

    if args.seed is not None:
        info(f"Using seed: {args.seed}")
    info(f"Using runs: {args.runs}")
    if args.bail:
        info("Bailing on first failure.")
    if args.dial:
        info(f"Using dial path: {args.dial}")

    if args.verbose >= 1:
        debug(f"config layers:\n{args.formatted_layers()}")


def run_once(
    args: Config,
    backend: Backend,
    contract_id: str,
    radio: Radio,
    hooks: HookRegistry | None,
    path: str | None = None,
) -> tuple[RunOutcome, StatisticsTracker]:
    engine = create_engine(
        args.mode,
        backend,
        contract_id,
        radio,
        runs=args.runs,
        seed=args.seed,
        path=path,
        bail=args.bail,
        hooks=hooks,
    )

    try:
        outcome = engine.run()
    finally:
        ui.stop_status()

    emit(report(outcome, engine.statistics, args.mode), radio)
    return outcome, engine.statistics


def to_run_result(
    contract_id: str, mode: str, outcome: RunOutcome, statistics: StatisticsTracker
) -> RunResult:
    if isinstance(outcome, Failure):
        cex = outcome.counterexample
        return RunResult(
            contract=contract_id,
            mode=mode,
            seed=cex.seed,
            path=cex.path,
            passed=False,
            runs=cex.runs,
            error=str(cex.error),
            statistics=statistics.to_json(),
        )

    return RunResult(
        contract=contract_id,
        mode=mode,
        seed=outcome.seed,
        path=outcome.path,
        passed=True,
        runs=outcome.runs,
        statistics=statistics.to_json(),
    )


def _main(_args=None) -> MainResult:
    timer = NamedTimer("total")

    #
    # command line arguments
    #

    args = load_config(_args)

    if args.version:
        print(f"stampede {metadata.version('stampede')}")
        return MainResult(0)

    set_level(args.debug)

    results: list[RunResult] = []

    def on_exit(exitcode: int) -> MainResult:
        ui.stop_status()

        result = MainResult(exitcode, results)

        if args.json_output:
            debug(f"Writing output to {args.json_output}")
            with open(args.json_output, "w") as json_file:
                json.dump(asdict(result), json_file, indent=4)

        return result

    #
    # setup
    #

    if not args.backend:
        error("No execution backend given, use --backend MODULE:FACTORY")
        return on_exit(2)

    try:
        # only used to resolve the contract, each run loads its own backend
        backend = load_backend(args.backend, root=args.root)
        contract_id = resolve_contract_id(backend, args.contract)
        hooks = HookRegistry.from_file(args.dial) if args.dial else None
    except ConfigurationError as err:
        error(str(err))
        return on_exit(EXIT_CODES[error_kind(err)])

    if hooks and args.mode != "invariant":
        warn("pre- and post-call hooks only run in invariant mode")

    log_settings(args, contract_id)

    radio = ConsoleRadio()

    #
    # run
    #

    # (config, replayed) pairs; replays rerun the whole seeded search, which
    # reproduces both the iteration count and the path of the stored failure
    runs_to_do: list[tuple[Config, bool]] = []

    if args.replay:
        records = load_failures(contract_id, args.mode, args.regressions_dir)
        info(f"Replaying {len(records)} stored failures")
        for record in records:
            replay_args = args.with_overrides(ConfigSource.regression, seed=record.seed)
            runs_to_do.append((replay_args, True))

    runs_to_do.append((args, False))

    exitcode = 0
    for run_args, is_replay in runs_to_do:
        if not args.no_status:
            ui.start_run(contract_name(contract_id), run_args.mode, run_args.seed)

        try:
            # every run starts from the same initial chain
            backend = load_backend(run_args.backend, root=run_args.root)
            outcome, statistics = run_once(
                run_args,
                backend,
                contract_id,
                radio,
                hooks,
                path=None if is_replay else run_args.path,
            )
        except StampedeException as err:
            error(str(err))
            return on_exit(EXIT_CODES[error_kind(err)])

        results.append(to_run_result(contract_id, run_args.mode, outcome, statistics))

        if isinstance(outcome, Failure):
            exitcode = 1
            if not is_replay:
                persist_failure(
                    contract_id,
                    run_args.mode,
                    outcome.seed,
                    outcome.path,
                    base_dir=run_args.regressions_dir,
                    max_failures=run_args.max_failures,
                )

    timer.stop()
    debug(f"[time] {timer.report()}")

    return on_exit(exitcode)


# entrypoint for the `stampede` script
def main() -> int:
    exitcode = _main().exitcode
    return exitcode


# entrypoint for `python -m stampede`
if __name__ == "__main__":
    sys.exit(main())
