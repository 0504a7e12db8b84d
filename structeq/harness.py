"""Running validations (or any callable) with a deadline.

The work runs on a daemon thread and races a timer; whichever finishes
first decides the outcome. Python threads can't be killed so **the loser
is not stopped**: a traversal that is still running when the deadline
passes keeps running until it finishes and its result is thrown away.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable

from .engine import EqualityEngine
from .errors import (FatalIterationCeilingExceeded, MismatchReport,
                     ValidationTimeout, mismatch_error_for)
from .options import ValidationOptions

__all__ = [
    'ValidationState', 'TimedCall', 'ValidationCall', 'run_with_timeout',
    'run_with_timeout_async', 'validate_with_timeout',
    'validate_with_timeout_async', 'assert_equal_with_timeout',
    'timeout_decor', 'timeout_decor_async',
]

logger = logging.getLogger(__name__)

IdentifierFn = Callable[[], str]


class ValidationState(Enum):
    IDLE = 'idle'
    TRAVERSING = 'traversing'
    COMPLETED_SUCCESS = 'completed(success)'
    COMPLETED_MISMATCH = 'completed(mismatch)'
    COMPLETED_TIMEOUT = 'completed(timeout)'
    COMPLETED_FATAL = 'completed(fatal)'

    @property
    def is_completed(self):
        return self not in (ValidationState.IDLE, ValidationState.TRAVERSING)


class TimedCall:
    """One call of ``fn`` raced against ``timeout_sec``. Can only be run once.

    ``get_identifier`` is only called if the timeout is hit, so it can be
    as expensive as needed."""

    def __init__(self, fn: Callable, args=(), kwargs=None,
                 timeout_sec: float | None = None,
                 get_identifier: IdentifierFn | None = None,
                 task_name: str | None = None):
        self.fn = fn
        self.args = args
        self.kwargs = kwargs or {}
        self.timeout_sec = timeout_sec
        self.get_identifier = get_identifier
        self.task_name = task_name or getattr(fn, '__qualname__', repr(fn))
        self.state = ValidationState.IDLE
        self.result: Any = None
        self.error: BaseException | None = None
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._thread: threading.Thread | None = None

    def _transition(self, new_state: ValidationState, result=None,
                    error: BaseException | None = None) -> bool:
        """Returns False if someone else got there first"""
        with self._lock:
            if self.state.is_completed:
                return False  # Nothing leaves a completed state
            if new_state.is_completed and self.state is not ValidationState.TRAVERSING:
                raise RuntimeError(f"Can't go from {self.state} to {new_state}")
            self.state = new_state
            self.result = result
            self.error = error
        if new_state.is_completed:
            self._done.set()
        return True

    def _classify_result(self, result) -> ValidationState:
        return ValidationState.COMPLETED_SUCCESS

    def _on_worker_error(self, e: BaseException):
        pass

    def _worker(self):
        try:
            result = self.fn(*self.args, **self.kwargs)
        except BaseException as e:
            self._on_worker_error(e)
            self._transition(ValidationState.COMPLETED_FATAL, error=e)
        else:
            self._transition(self._classify_result(result), result)

    def start(self):
        if self.state is not ValidationState.IDLE:
            raise RuntimeError("TimedCall can only be started once")
        self._transition(ValidationState.TRAVERSING)
        # Daemon so that a runaway loser doesn't stop the interpreter exiting
        self._thread = threading.Thread(
            target=self._worker, name=f'structeq:{self.task_name}', daemon=True)
        self._thread.start()

    def _make_timeout_error(self):
        identifier = None
        if self.get_identifier is not None:
            try:
                identifier = self.get_identifier()
            except Exception:
                logger.exception('Getting the identifier of %s failed', self.task_name)
        return ValidationTimeout(self.timeout_sec * 1000, identifier, self.task_name)

    def _on_timer_fired(self):
        if self.state.is_completed:
            return  # The work finished first
        # Not under the lock, get_identifier is user code
        error = self._make_timeout_error()
        if self._transition(ValidationState.COMPLETED_TIMEOUT, error=error):
            logger.error('%s', self.error)

    def outcome(self):
        """Result of the call, raising its error if it has one"""
        if not self.state.is_completed:
            raise RuntimeError("Call hasn't completed yet")
        if self.error is not None:
            raise self.error
        return self.result

    def run(self):
        self.start()
        if not self._done.wait(self.timeout_sec):
            self._on_timer_fired()
        return self.outcome()

    async def run_async(self, interval: float = 0.001):
        self.start()
        await _wait_async(self._done, self.timeout_sec, interval)
        if not self._done.is_set():
            self._on_timer_fired()
        return self.outcome()

    def join_worker(self, timeout: float | None = None) -> bool:
        """Wait for the worker thread itself (even after a timeout was
        reported). Returns True if it has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()


async def _wait_async(event: threading.Event, timeout: float | None, interval: float):
    start = time.perf_counter()
    while not event.is_set() and (timeout is None or time.perf_counter() < start + timeout):
        await asyncio.sleep(interval)


class ValidationCall(TimedCall):
    def __init__(self, expected: object, actual: object,
                 options: ValidationOptions | None = None,
                 get_identifier: IdentifierFn | None = None):
        options = options if options is not None else ValidationOptions()
        timeout_sec = None if options.timeout_ms is None else options.timeout_ms / 1000
        super().__init__(self._validate, (expected, actual, options),
                         timeout_sec=timeout_sec, get_identifier=get_identifier,
                         task_name='validate')
        self.options = options

    @staticmethod
    def _validate(expected: object, actual: object, options: ValidationOptions):
        return EqualityEngine(options).validate(expected, actual)

    def _classify_result(self, result: MismatchReport | None) -> ValidationState:
        if result is None:
            return ValidationState.COMPLETED_SUCCESS
        return ValidationState.COMPLETED_MISMATCH

    def _on_worker_error(self, e: BaseException):
        if isinstance(e, FatalIterationCeilingExceeded):
            logger.error('Traversal gave up: %s', e)

    @property
    def report(self) -> MismatchReport | None:
        return self.result if self.state is ValidationState.COMPLETED_MISMATCH else None


def run_with_timeout(timeout_sec: float | None, fn: Callable, args=(), kwargs=None,
                     get_identifier: IdentifierFn | None = None,
                     task_name: str | None = None):
    """Run ``fn`` on a worker thread, raising ValidationTimeout if it takes
    longer than ``timeout_sec``. ``fn`` is NOT stopped in that case."""
    return TimedCall(fn, args, kwargs, timeout_sec, get_identifier, task_name).run()


async def run_with_timeout_async(timeout_sec: float | None, fn: Callable, args=(),
                                 kwargs=None, get_identifier: IdentifierFn | None = None,
                                 task_name: str | None = None, interval: float = 0.001):
    """``fn`` must be a regular function **not** coroutine!"""
    return await TimedCall(fn, args, kwargs, timeout_sec, get_identifier,
                           task_name).run_async(interval)


def validate_with_timeout(expected: object, actual: object,
                          options: ValidationOptions | None = None,
                          get_identifier: IdentifierFn | None = None,
                          **overrides) -> MismatchReport | None:
    options = ValidationOptions.resolve(options, **overrides)
    return ValidationCall(expected, actual, options, get_identifier).run()


async def validate_with_timeout_async(expected: object, actual: object,
                                      options: ValidationOptions | None = None,
                                      get_identifier: IdentifierFn | None = None,
                                      interval: float = 0.001,
                                      **overrides) -> MismatchReport | None:
    options = ValidationOptions.resolve(options, **overrides)
    return await ValidationCall(expected, actual, options, get_identifier).run_async(interval)


def assert_equal_with_timeout(expected: object, actual: object,
                              options: ValidationOptions | None = None,
                              get_identifier: IdentifierFn | None = None,
                              **overrides) -> None:
    report = validate_with_timeout(expected, actual, options, get_identifier, **overrides)
    if report is not None:
        raise mismatch_error_for(report)


def timeout_decor(timeout_sec: float, get_identifier: IdentifierFn | None = None):
    def decor(fn):
        @functools.wraps(fn)
        def new_fn(*args, **kwargs):
            return run_with_timeout(timeout_sec, fn, args, kwargs, get_identifier,
                                    fn.__qualname__)
        new_fn._timeout_sec_ = timeout_sec
        new_fn._orig_fn_ = fn
        return new_fn
    return decor


def timeout_decor_async(timeout_sec: float, get_identifier: IdentifierFn | None = None,
                        interval: float = 0.001):
    """Turns a regular (slow) function into a coroutine function that
    gives up waiting for it after ``timeout_sec``"""
    def decor(fn):
        @functools.wraps(fn)
        async def new_fn(*args, **kwargs):
            return await run_with_timeout_async(
                timeout_sec, fn, args, kwargs, get_identifier, fn.__qualname__, interval)
        new_fn._timeout_sec_ = timeout_sec
        new_fn._orig_fn_ = fn
        return new_fn
    return decor
