# SPDX-License-Identifier: AGPL-3.0

"""
Pre- and post-call hooks.

Hooks are plain callables taking a `HookContext`. They run synchronously
around every public function call of an invariant run. A hook that raises
ends the run: the error is wrapped in `PreHookError` or `PostHookError`.

Hooks are usually loaded from a Python file passed with `--dial`, where every
module-level function whose name starts with `pre` or `post` is registered:

    def pre_check_balance(ctx):
        ...

    def post_check_balance(ctx):
        assert ctx.call_result.success
"""

import importlib.util
import inspect
import os
from collections.abc import Callable
from dataclasses import dataclass, field

from .backend import CallResult
from .exceptions import ConfigurationError, PostHookError, PreHookError
from .logs import debug
from .types import FunctionSignature
from .wire import WireValue


@dataclass(frozen=True)
class HookContext:
    selected_function: FunctionSignature
    encoded_arguments: tuple[WireValue, ...]
    # None for pre hooks
    call_result: CallResult | None = None


Hook = Callable[[HookContext], None]


@dataclass
class HookRegistry:
    pre_hooks: list[Hook] = field(default_factory=list)
    post_hooks: list[Hook] = field(default_factory=list)

    def register_pre(self, hook: Hook) -> None:
        self.pre_hooks.append(hook)

    def register_post(self, hook: Hook) -> None:
        self.post_hooks.append(hook)

    def __len__(self) -> int:
        return len(self.pre_hooks) + len(self.post_hooks)

    def run_pre(self, ctx: HookContext) -> None:
        for hook in self.pre_hooks:
            try:
                hook(ctx)
            except Exception as err:
                raise PreHookError(f"{hook.__name__}: {err}") from err

    def run_post(self, ctx: HookContext) -> None:
        for hook in self.post_hooks:
            try:
                hook(ctx)
            except Exception as err:
                raise PostHookError(f"{hook.__name__}: {err}") from err

    @staticmethod
    def from_file(path: str) -> "HookRegistry":
        """Load hooks from a Python file, in definition order."""

        resolved = os.path.abspath(path)
        if not os.path.isfile(resolved):
            raise ConfigurationError(f"Hook file not found: {resolved}")

        module_name = os.path.splitext(os.path.basename(resolved))[0]
        spec = importlib.util.spec_from_file_location(module_name, resolved)
        if spec is None or spec.loader is None:
            raise ConfigurationError(f"Cannot load hooks from {resolved}")

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as err:
            raise ConfigurationError(f"Failed to load hooks: {err}") from err

        registry = HookRegistry()
        for name, fn in vars(module).items():
            if not inspect.isfunction(fn) or fn.__module__ != module.__name__:
                continue
            if name.startswith("pre"):
                registry.register_pre(fn)
            elif name.startswith("post"):
                registry.register_post(fn)

        debug(
            f"loaded {len(registry.pre_hooks)} pre and "
            f"{len(registry.post_hooks)} post hooks from {resolved}"
        )
        return registry
