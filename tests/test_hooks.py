import pytest

from stampede.backend import CallResult
from stampede.exceptions import ConfigurationError, PostHookError, PreHookError
from stampede.hooks import HookContext, HookRegistry
from stampede.wire import TRUE, UIntCV, ok
from test_fixtures import public

HOOKS_FILE = """
from helpers_that_do_not_exist import nothing
"""

DIAL = """
import os.path
from os.path import join

seen = []

def pre_record(ctx):
    seen.append(("pre", ctx.selected_function.name))

def post_record(ctx):
    seen.append(("post", ctx.call_result.success))

def helper(ctx):
    raise AssertionError("not a hook")

def postcondition(ctx):
    if not ctx.call_result.success:
        raise AssertionError("call was rejected")
"""


@pytest.fixture
def context():
    return HookContext(public("increment"), (UIntCV(1),))


def test_load_hooks_from_file(tmp_path, context):
    dial = tmp_path / "dial.py"
    dial.write_text(DIAL)

    hooks = HookRegistry.from_file(str(dial))

    assert [h.__name__ for h in hooks.pre_hooks] == ["pre_record"]
    assert [h.__name__ for h in hooks.post_hooks] == ["post_record", "postcondition"]
    assert len(hooks) == 3

    hooks.run_pre(context)
    hooks.run_post(HookContext(context.selected_function, (), CallResult(True, ok(TRUE))))

    seen = hooks.pre_hooks[0].__globals__["seen"]
    assert seen == [("pre", "increment"), ("post", True)]


def test_failing_post_hook(tmp_path):
    dial = tmp_path / "dial.py"
    dial.write_text(DIAL)
    hooks = HookRegistry.from_file(str(dial))

    rejected = HookContext(public("increment"), (), CallResult(False, ok(TRUE)))
    with pytest.raises(PostHookError, match="postcondition: call was rejected"):
        hooks.run_post(rejected)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="Hook file not found"):
        HookRegistry.from_file(str(tmp_path / "missing.py"))


def test_broken_file(tmp_path):
    dial = tmp_path / "broken.py"
    dial.write_text(HOOKS_FILE)

    with pytest.raises(ConfigurationError, match="Failed to load hooks"):
        HookRegistry.from_file(str(dial))


def test_pre_hook_error(context):
    hooks = HookRegistry()

    def pre_limit(ctx):
        raise ValueError("too many calls")

    hooks.register_pre(pre_limit)

    with pytest.raises(PreHookError, match="pre_limit: too many calls") as exc_info:
        hooks.run_pre(context)
    assert isinstance(exc_info.value.__cause__, ValueError)


def test_hooks_run_in_registration_order(context):
    order = []
    hooks = HookRegistry()
    hooks.register_pre(lambda ctx: order.append(1))
    hooks.register_pre(lambda ctx: order.append(2))

    hooks.run_pre(context)

    assert order == [1, 2]


def test_empty_registry(context):
    hooks = HookRegistry()
    assert len(hooks) == 0
    hooks.run_pre(context)
    hooks.run_post(context)
