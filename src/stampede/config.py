# SPDX-License-Identifier: AGPL-3.0

import argparse
import os
import sys
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import MISSING, dataclass, fields
from dataclasses import field as dataclass_field
from enum import IntEnum
from typing import Any

import toml

from .logs import warn

# common strings
internal = "internal"

CONFIG_FILE_NAME = "stampede.toml"

# groups
run, regressions, debugging = (
    "Run options",
    "Regression options",
    "Debugging options",
)


class ConfigSource(IntEnum):
    """Where a configuration layer comes from. Higher values take precedence."""

    # fresh object with no values set
    void = 0

    # built-in defaults
    default = 1

    # stampede.toml
    config_file = 2

    # command line arguments
    command_line = 3

    # seed and path of a stored failure being replayed
    regression = 4


# helper to define config fields
def arg(
    help: str,
    global_default: Any,
    metavar: str | None = None,
    group: str | None = None,
    choices: list[str] | None = None,
    short: str | None = None,
    countable: bool = False,
    global_default_str: str | None = None,
    action: Callable = None,
):
    return dataclass_field(
        default=None,
        metadata={
            "help": help,
            "global_default": global_default,
            "metavar": metavar,
            "group": group,
            "choices": choices,
            "short": short,
            "countable": countable,
            "global_default_str": global_default_str,
            "action": action,
        },
    )


class ParseImportString(argparse.Action):
    """Validates `module:attribute` import strings, e.g. `my_chain:make_backend`."""

    def __call__(self, parser, namespace, values, option_string=None):
        try:
            values = ParseImportString.parse(values)
        except ValueError as err:
            parser.error(str(err))
        setattr(namespace, self.dest, values)

    @staticmethod
    def parse(value: str | None) -> str | None:
        if value is None:
            return None

        value = value.strip()
        module, sep, attribute = value.partition(":")
        if not sep or not module or not attribute:
            raise ValueError(f"invalid import string, expected module:factory: {value}")
        return value

    @staticmethod
    def unparse(value: str | None) -> str | None:
        return value


@dataclass(frozen=True)
class Config:
    """Configuration object for stampede.

    Don't instantiate this directly, since all fields have default value None. Instead, use:

     - `default_config()` to get the default configuration with the actual default values
     - `with_overrides()` to create a new configuration object with some fields overridden
    """

    ### Internal fields (not used to generate arg parsers)

    _parent: "Config" = dataclass_field(
        repr=False,
        metadata={
            internal: True,
        },
    )

    _source: ConfigSource = dataclass_field(
        metadata={
            internal: True,
        },
    )

    ### General options
    #
    # New Config() objects only hold None values for these fields. The actual
    # defaults live in the `global_default` metadata and are materialized by
    # `default_config()`, so that layers built from external arguments only
    # contain what was explicitly set.

    root: str = arg(
        help="project root directory",
        metavar="ROOT",
        global_default=os.getcwd,
        global_default_str="current working directory",
    )

    config: str = arg(
        help="path to the config file",
        metavar="FILE",
        global_default=lambda: os.path.join(os.getcwd(), CONFIG_FILE_NAME),
        global_default_str=f"ROOT/{CONFIG_FILE_NAME}",
    )

    contract: str = arg(
        help="name or identifier of the contract to fuzz",
        global_default="",
        metavar="CONTRACT",
    )

    mode: str = arg(
        help="testing type: invariant testing of public functions, or property testing of test- functions",
        global_default="invariant",
        choices=["invariant", "test"],
        short="m",
    )

    version: bool = arg(
        help="print the version number",
        global_default=False,
    )

    ### Run options

    backend: str = arg(
        help="execution backend factory, called with the project root as its only keyword argument",
        global_default=None,
        metavar="MODULE:FACTORY",
        group=run,
        action=ParseImportString,
    )

    seed: int = arg(
        help="seed of the random generator; a random seed is used if not given",
        global_default=None,
        metavar="SEED",
        group=run,
    )

    runs: int = arg(
        help="number of runs",
        global_default=100,
        metavar="RUNS",
        group=run,
    )

    path: str = arg(
        help="replay the failing case recorded in PATH instead of searching",
        global_default=None,
        metavar="PATH",
        group=run,
    )

    bail: bool = arg(
        help="stop at the first failure without shrinking it",
        global_default=False,
        group=run,
    )

    dial: str = arg(
        help="path to a Python file with pre- and post-call hooks",
        global_default=None,
        metavar="HOOKS_FILE",
        group=run,
    )

    ### Regression options

    regressions_dir: str = arg(
        help="directory where failing seeds are stored",
        global_default="stampede-regressions",
        metavar="DIRECTORY",
        group=regressions,
    )

    max_failures: int = arg(
        help="maximum number of failures kept per contract",
        global_default=100,
        metavar="N",
        group=regressions,
    )

    replay: bool = arg(
        help="run the stored failing seeds before the fresh run",
        global_default=False,
        group=regressions,
    )

    ### Debugging options

    verbose: int = arg(
        help="increase verbosity levels: -v, -vv, -vvv, ...",
        global_default=0,
        group=debugging,
        short="v",
        countable=True,
    )

    no_status: bool = arg(
        help="disable progress display",
        global_default=False,
        group=debugging,
    )

    debug: bool = arg(
        help="run in debug mode",
        global_default=False,
        group=debugging,
    )

    json_output: str = arg(
        help="output the run result in JSON",
        global_default=None,
        metavar="JSON_FILE_PATH",
        group=debugging,
    )

    ### Methods

    def __getattribute__(self, name):
        """Look up values in parent object if they are not set in the current object.

        This is because we consider the current object to override its parent.

        Because of this, printing a Config object will show a "flattened/resolved" view of the configuration.
        """

        # look up value in current object
        value = object.__getattribute__(self, name)
        if value is not None:
            return value

        # look up value in parent object
        parent = object.__getattribute__(self, "_parent")
        if parent is not None:
            return getattr(parent, name)

        return value

    def with_overrides(self, source: ConfigSource, **overrides):
        """Create a new configuration object with some fields overridden.

        Use vars(namespace) to pass in the arguments from an argparse parser or
        just a dictionary with the overrides (e.g. from a toml or json file)."""

        try:
            return Config(_parent=self, _source=source, **overrides)
        except TypeError as e:
            # follow argparse error message format and behavior
            warn(f"error: unrecognized argument: {str(e).split()[-1]}")
            sys.exit(2)

    def value_with_source(self, name: str) -> tuple[Any, ConfigSource]:
        # look up value in current object
        value = object.__getattribute__(self, name)
        if value is not None:
            return (value, self._source)

        # look up value in parent object
        parent = self._parent
        if parent is not None:
            return parent.value_with_source(name)

        return (value, self._source)

    def values(self):
        skip_empty = self._parent is not None

        for field in fields(self):
            if field.metadata.get(internal):
                continue

            field_value = object.__getattribute__(self, field.name)
            if skip_empty and field_value is None:
                continue

            yield field.name, field_value

    def values_by_layer(self) -> dict[str, dict[str, Any]]:
        # source -> {field, value}
        if self._parent is None:
            return OrderedDict([(self._source.name, dict(self.values()))])

        values = self._parent.values_by_layer()
        values[self._source.name] = dict(self.values())
        return values

    def formatted_layers(self) -> str:
        lines = []
        for layer, values in self.values_by_layer().items():
            lines.append(f"{layer}:")
            for field, value in values.items():
                lines.append(f"  {field}: {value}")
        return "\n".join(lines)


def resolve_config_files(args: list[str], include_missing: bool = False) -> list[str]:
    config_parser = argparse.ArgumentParser(add_help=False)
    config_parser.add_argument(
        "--root",
        metavar="DIRECTORY",
        default=os.getcwd(),
    )

    config_parser.add_argument("--config", metavar="FILE")

    # beware: errors will cause a system exit
    args = config_parser.parse_known_args(args)[0]

    # if --config is passed explicitly, use that
    # no check for existence is done here, we don't want to silently ignore
    # missing config files when they are requested explicitly
    if args.config:
        return [args.config]

    # we expect to find stampede.toml in the project root directory
    default_config_path = os.path.join(args.root, CONFIG_FILE_NAME)
    if not include_missing and not os.path.exists(default_config_path):
        return []

    return [default_config_path]


class TomlParser:
    def parse_file(self, toml_file_path: str) -> dict:
        with open(toml_file_path) as f:
            return self.parse_str(f.read(), source=toml_file_path)

    # exposed for easier testing
    def parse_str(self, file_contents: str, source: str = CONFIG_FILE_NAME) -> dict:
        try:
            parsed = toml.loads(file_contents)
        except toml.TomlDecodeError as e:
            warn(f"error: invalid toml in {source}: {e}")
            sys.exit(2)
        return self.parse_dict(parsed, source=source)

    # exposed for easier testing
    def parse_dict(self, parsed: dict, source: str = CONFIG_FILE_NAME) -> dict:
        if len(parsed) != 1:
            warn(
                f"error: expected a single `[global]` section in {source}, "
                f"got {len(parsed)}: {', '.join(parsed.keys())}"
            )
            sys.exit(2)

        data = parsed.get("global")
        if data is None:
            for key in parsed:
                warn(f"error: expected a `[global]` section in {source}, got '{key}'")
                sys.exit(2)

        # gather custom actions
        actions = {
            field.name: field.metadata["action"]
            for field in fields(Config)
            if field.metadata.get("action")
        }

        result = {}
        for key, value in data.items():
            key = key.replace("-", "_")
            action = actions.get(key)
            try:
                result[key] = action.parse(value) if action else value
            except ValueError as e:
                warn(f"error: {key}: {e}")
                sys.exit(2)
        return result


def _create_default_config() -> "Config":
    values = {}

    for field in fields(Config):
        # we build the default config by looking at the global_default metadata field
        default = field.metadata.get("global_default", MISSING)
        if default == MISSING:
            continue

        # retrieve the default value
        raw_value = default() if callable(default) else default

        # parse the default value, if a custom parser is provided
        action = field.metadata.get("action", None)
        values[field.name] = action.parse(raw_value) if action else raw_value

    return Config(_parent=None, _source=ConfigSource.default, **values)


def _create_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stampede",
        description="Property-based and invariant fuzzing of smart contracts",
    )

    groups = {
        None: parser,
    }

    # add arguments from the Config dataclass
    for field_info in fields(Config):
        # skip internal fields
        if field_info.metadata.get(internal, False):
            continue

        long_name = f"--{field_info.name.replace('_', '-')}"
        names = [long_name]

        short_name = field_info.metadata.get("short", None)
        if short_name:
            names.append(f"-{short_name}")

        arg_help = field_info.metadata.get("help", "")
        metavar = field_info.metadata.get("metavar", None)
        group_name = field_info.metadata.get("group", None)
        if group_name not in groups:
            groups[group_name] = parser.add_argument_group(group_name)

        group = groups[group_name]

        if field_info.type is bool:
            group.add_argument(*names, help=arg_help, action="store_true", default=None)
        elif field_info.metadata.get("countable", False):
            group.add_argument(*names, help=arg_help, action="count")
        else:
            # add the default value to the help text
            default = field_info.metadata.get("global_default", None)
            if default is not None:
                default_str = field_info.metadata.get("global_default_str", None)
                default_str = repr(default) if default_str is None else default_str
                arg_help += f" (default: {default_str})"

            kwargs = {
                "help": arg_help,
                "metavar": metavar,
                "type": field_info.type,
            }
            if choices := field_info.metadata.get("choices", None):
                kwargs["choices"] = choices
            if action := field_info.metadata.get("action", None):
                kwargs["action"] = action
            group.add_argument(*names, **kwargs)

    return parser


def _create_toml_parser() -> TomlParser:
    return TomlParser()


# public singleton accessors
def default_config() -> "Config":
    return _default_config


def arg_parser() -> argparse.ArgumentParser:
    return _arg_parser


def toml_parser():
    return _toml_parser


# init module-level singletons
_arg_parser = _create_arg_parser()
_default_config = _create_default_config()
_toml_parser = _create_toml_parser()


# can generate a sample config file using:
# python -m stampede.config ARGS > stampede.toml
def main():
    def _to_toml_str(value: Any, type) -> str:
        assert value is not None
        if type is str:
            return f'"{value}"'
        if type is bool:
            return str(value).lower()
        return str(value)

    args = arg_parser().parse_args()
    config = default_config().with_overrides(ConfigSource.command_line, **vars(args))

    lines = ["[global]"]
    current_group_name = None

    for field_info in fields(config):
        if field_info.metadata.get(internal, False):
            # skip internal fields
            continue

        name = field_info.name.replace("_", "-")
        if name in ["config", "root", "version"]:
            # skip fields that don't make sense in a config file
            continue

        group_name = field_info.metadata.get("group", None)
        if group_name != current_group_name:
            separator = "#" * 80
            lines.append(f"\n{separator}")
            lines.append(f"# {group_name: ^76} #")
            lines.append(separator)
            current_group_name = group_name

        arg_help = field_info.metadata.get("help", "")
        lines.append(f"\n# {arg_help}")

        (value, source) = config.value_with_source(field_info.name)
        default = field_info.metadata.get("global_default", None)

        if action := field_info.metadata.get("action", None):
            value = action.unparse(value)

        # callable defaults depend on the context, so don't emit them unless
        # they are explicitly set on the command line
        if value is None or (
            callable(default) and source != ConfigSource.command_line
        ):
            metavar = field_info.metadata.get("metavar", None)
            lines.append(f"# {name} = {metavar}")
        else:
            value_str = _to_toml_str(value, field_info.type)
            lines.append(f"{name} = {value_str}")

    print("\n".join(lines))


if __name__ == "__main__":
    main()
