# SPDX-License-Identifier: AGPL-3.0

"""
Run Exceptions
==============

Exceptions raised while preparing or executing a fuzzing run.

Configuration and hook errors end the whole run. Falsifications and test
failures are the interesting outcomes: they are caught by the shrink phase and
turned into a counterexample. Backend runtime errors are absorbed into the
statistics in invariant mode and promoted to test failures in property mode.
"""

from enum import Enum


class StampedeException(Exception):
    """
    Base class for every error raised by stampede.
    """

    pass


class ConfigurationError(StampedeException):
    """
    Raised before the first iteration when the run cannot be set up, e.g. an
    invalid discard function, a trait without implementations, an empty
    address pool or a contract with nothing to fuzz.
    """

    pass


class HookError(StampedeException):
    """
    Raised when a user supplied pre- or post-call hook throws.

    Hook failures are fatal: the run stops immediately and no shrinking is
    attempted.
    """

    pass


class PreHookError(HookError):
    pass


class PostHookError(HookError):
    pass


class Falsification(StampedeException):
    """
    An invariant returned something other than `true` after a sequence of
    public function calls.
    """

    def __init__(self, message: str, result: str | None = None):
        super().__init__(message)
        self.result = result


class TestFailure(StampedeException):
    """
    A property test function did not return `(ok true)`.
    """

    # keep pytest from collecting this class
    __test__ = False

    def __init__(self, message: str, result: str | None = None):
        super().__init__(message)
        self.result = result


class BackendRuntimeError(StampedeException):
    """
    The execution backend failed to run a call, e.g. a runtime error inside
    the contract. Backends are expected to wrap their own errors in this type.
    """

    pass


class ErrorKind(Enum):
    CONFIGURATION = "configuration"
    HOOK = "hook"
    FALSIFICATION = "falsification"
    TEST_FAILURE = "test-failure"
    BACKEND_RUNTIME = "backend-runtime"


def error_kind(err: StampedeException) -> ErrorKind:
    # subclasses first
    if isinstance(err, ConfigurationError):
        return ErrorKind.CONFIGURATION
    if isinstance(err, HookError):
        return ErrorKind.HOOK
    if isinstance(err, Falsification):
        return ErrorKind.FALSIFICATION
    if isinstance(err, TestFailure):
        return ErrorKind.TEST_FAILURE
    if isinstance(err, BackendRuntimeError):
        return ErrorKind.BACKEND_RUNTIME

    raise ValueError(err)
