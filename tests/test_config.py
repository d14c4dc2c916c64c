import dataclasses
import os
import pickle

import pytest

from stampede.config import (
    Config,
    ConfigSource,
    ParseImportString,
    arg_parser,
    default_config,
    resolve_config_files,
)
from stampede.config import (
    toml_parser as get_toml_parser,
)

void = ConfigSource.void


@pytest.fixture
def void_config():
    return Config(_parent=None, _source=void)


@pytest.fixture
def config():
    return default_config()


@pytest.fixture
def parser():
    return arg_parser()


@pytest.fixture
def toml_parser():
    return get_toml_parser()


def test_fresh_config_has_only_None_values(void_config):
    for field in void_config.__dataclass_fields__.values():
        if field.metadata.get("internal"):
            continue
        assert getattr(void_config, field.name) is None


def test_default_values(config):
    assert config.mode == "invariant"
    assert config.runs == 100
    assert config.seed is None
    assert config.backend is None
    assert config.regressions_dir == "stampede-regressions"
    assert config.max_failures == 100
    assert config.bail is False
    assert config.replay is False


def test_default_config_immutable(config):
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.runs = 42


def test_unknown_keys_config_constructor_raise():
    with pytest.raises(TypeError):
        Config(_parent=None, _source=void, unknown_key=42)


def test_unknown_keys_config_object_raise(void_config):
    with pytest.raises(AttributeError):
        void_config.unknown_key  # noqa: B018 (not a useless expression)


def test_unknown_keys_override_exit(config):
    with pytest.raises(SystemExit) as exc_info:
        config.with_overrides(ConfigSource.command_line, unknown_key=42)
    assert exc_info.value.code == 2


def test_count_arg(config, parser):
    args = parser.parse_args(["-vvvvvv"])
    assert args.verbose == 6

    config_from_args = config.with_overrides(source="command-line", **vars(args))
    assert config_from_args.verbose == 6


def test_choice_arg(config, parser):
    # wrong choice raises
    with pytest.raises(SystemExit):
        parser.parse_args(["--mode", "beepboop"])

    # valid choice works, long and short
    args = parser.parse_args(["--mode", "test"])
    overrides = config.with_overrides(source="command-line", **vars(args))
    assert overrides.mode == "test"

    args = parser.parse_args(["-m", "test"])
    assert args.mode == "test"


def test_typed_args(parser):
    args = parser.parse_args(["--seed", "-42", "--runs", "7", "--path", "0:1:2"])

    assert args.seed == -42
    assert args.runs == 7
    assert args.path == "0:1:2"


def test_backend_arg(parser):
    args = parser.parse_args(["--backend", "my_chain:make_backend"])
    assert args.backend == "my_chain:make_backend"

    with pytest.raises(SystemExit):
        parser.parse_args(["--backend", "my_chain"])


def test_override(config):
    runs_before = config.runs

    override = config.with_overrides(ConfigSource.command_line, runs=42)

    # the override is reflected in the new config
    assert override.runs == 42

    # the default config is unchanged
    assert config.runs == runs_before

    # default values are still available in the override config
    assert override.mode == config.mode


def test_toml_parser_expects_single_section(toml_parser):
    # extra section
    with pytest.raises(SystemExit):
        toml_parser.parse_str("[global]\na = 1\n[extra]\nb = 2")

    # missing global
    with pytest.raises(SystemExit):
        toml_parser.parse_str("a = 1\nb = 2")

    # single section is not expected one
    with pytest.raises(SystemExit):
        toml_parser.parse_str("[weird]\na = 1\nb = 2")

    # works
    toml_parser.parse_str("[global]")


def test_toml_parser_invalid_toml(toml_parser):
    with pytest.raises(SystemExit) as exc_info:
        toml_parser.parse_str("[global\nruns = ")
    assert exc_info.value.code == 2


def test_toml_parser_validates_backend(toml_parser):
    data = toml_parser.parse_str('[global]\nbackend = "my_chain:make_backend"')
    assert data["backend"] == "my_chain:make_backend"

    with pytest.raises(SystemExit) as exc_info:
        toml_parser.parse_str('[global]\nbackend = "my_chain"')
    assert exc_info.value.code == 2


def test_config_file_default_location_is_cwd():
    # when we don't pass the project root as an argument
    config_files = resolve_config_files(args=[])

    # then we don't expect a config file since the default doesn't exist
    assert config_files == []


def test_config_file_in_project_root():
    # when we pass the project root as an argument
    base_path = "/path/to/project"
    args = ["--root", base_path, "--extra-args", "ignored"]
    config_files = resolve_config_files(args, include_missing=True)

    # then the config file should be in the project root
    assert config_files == [os.path.join(base_path, "stampede.toml")]


def test_config_file_explicit():
    # when we pass a --config argument explicitly
    args = ["--config", "path/to/fake.toml", "--extra-args", "ignored"]
    config_files = resolve_config_files(args)

    # then we expect the config file to be the one we passed
    assert config_files == ["path/to/fake.toml"]


def test_config_file_invalid_key(config, toml_parser):
    # invalid keys result in an error and exit
    with pytest.raises(SystemExit) as exc_info:
        data = toml_parser.parse_str("[global]\ninvalid_key = 42")
        config = config.with_overrides(ConfigSource.config_file, **data)
    assert exc_info.value.code == 2


def test_config_file_snake_case(config, toml_parser):
    config_file_data = toml_parser.parse_str("[global]\nmax-failures = 42")
    assert config_file_data["max_failures"] == 42

    config = config.with_overrides(ConfigSource.config_file, **config_file_data)
    assert config.max_failures == 42


def test_config_e2e(config, parser, toml_parser):
    # when we apply overrides to the default config
    config_file_data = toml_parser.parse_str("[global]\nverbose = 42\nruns = 500")
    config = config.with_overrides(ConfigSource.config_file, **config_file_data)

    args = parser.parse_args(["-vvv"])
    config = config.with_overrides(ConfigSource.command_line, **vars(args))

    # then the config object should have the expected values
    assert config.verbose == 3
    assert config.runs == 500
    assert config.mode == "invariant"

    # and each value should have the expected source
    assert config.value_with_source("verbose") == (3, ConfigSource.command_line)
    assert config.value_with_source("runs") == (500, ConfigSource.config_file)
    assert config.value_with_source("mode") == ("invariant", ConfigSource.default)


def test_regression_layer_takes_precedence(config, parser):
    args = parser.parse_args(["--seed", "1"])
    config = config.with_overrides(ConfigSource.command_line, **vars(args))

    replay = config.with_overrides(ConfigSource.regression, seed=1234, path="3:4")

    assert replay.value_with_source("seed") == (1234, ConfigSource.regression)
    assert replay.path == "3:4"
    assert config.seed == 1

    # a stored failure without a path keeps the inherited one
    assert config.with_overrides(ConfigSource.regression, seed=5).path is None


def test_values_by_layer(config, parser):
    args = parser.parse_args(["--runs", "3"])
    config = config.with_overrides(ConfigSource.command_line, **vars(args))

    layers = config.values_by_layer()

    assert list(layers) == ["default", "command_line"]
    assert layers["command_line"] == {"runs": 3}
    assert layers["default"]["runs"] == 100
    assert "command_line:\n  runs: 3" in config.formatted_layers()


def test_config_pickle(config, parser):
    args = parser.parse_args(["-vvv"])
    config = config.with_overrides(ConfigSource.command_line, **vars(args))

    # pickle and unpickle the config
    pickled = pickle.dumps(config)
    unpickled = pickle.loads(pickled)

    # then the config object should be the same
    assert config == unpickled
    assert unpickled.value_with_source("verbose") == (3, ConfigSource.command_line)


def test_parse_import_string():
    with pytest.raises(ValueError):
        ParseImportString.parse("")
    with pytest.raises(ValueError):
        ParseImportString.parse("module")
    with pytest.raises(ValueError):
        ParseImportString.parse(":factory")
    with pytest.raises(ValueError):
        ParseImportString.parse("module:")

    assert ParseImportString.parse(None) is None
    assert ParseImportString.parse(" pkg.module:factory ") == "pkg.module:factory"
    assert ParseImportString.unparse("pkg.module:factory") == "pkg.module:factory"


def test_value_with_source(config):
    assert config.value_with_source("runs") == (config.runs, ConfigSource.default)

    overrides = {"runs": 42}

    config_from_args = config.with_overrides(
        source=ConfigSource.command_line, **overrides
    )

    val, source = config_from_args.value_with_source("runs")
    assert val == 42
    assert source == ConfigSource.command_line

    # overrides have higher precedence than defaults
    assert source > ConfigSource.default
