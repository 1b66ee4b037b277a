"""
Runs suites and specs.

All state of an in-progress test file run lives in a RunContext, which is
passed explicitly to every operation in this module. Suites and specs run
strictly one at a time, depth-first, in the order they are declared.

Outcomes:
* A spec whose body (or one of its hooks) raises is a failure.
* A suite whose body raises outside of any spec is an error.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import inspect
import os.path
from specrun.results import (
    Outcome, report_outcome, report_pending, ResultSet, TestRecord,
)
from specrun.snapshots import SnapshotMode, SnapshotSession
from specrun.util.xtraceback import format_fault
from typing import TypeAlias


Body: TypeAlias = Callable[[], None] | Callable[[], Awaitable[None]]
Hook: TypeAlias = Body


class HookRegistrationError(RuntimeError):
    """Raised when a hook is registered outside of any suite body."""


# ------------------------------------------------------------------------------
# DescriptionStack

class DescriptionStack:
    """
    Names of the suites (and spec) currently being run, outermost first.
    """
    
    def __init__(self) -> None:
        self._descriptions = []  # type: list[str]
    
    @property
    def depth(self) -> int:
        return len(self._descriptions)
    
    def path(self) -> tuple[str, ...]:
        return tuple(self._descriptions)
    
    @contextmanager
    def entered(self, name: str) -> Iterator[tuple[str, ...]]:
        """
        Context in which `name` is the innermost description.

        Yields the full description path including `name`.
        The stack is restored to its prior depth on exit, however the context exits.
        """
        self._descriptions.append(name)
        try:
            yield self.path()
        finally:
            self._descriptions.pop()


# ------------------------------------------------------------------------------
# HookRegistry

class _HookLists:
    def __init__(self) -> None:
        self.setups = []  # type: list[Hook]
        self.teardowns = []  # type: list[Hook]


class HookRegistry:
    """
    Setup and teardown hooks, grouped by the suite depth they were registered at.

    Only depths of suites whose bodies are currently running have hook lists.
    """
    
    def __init__(self) -> None:
        self._lists_for_depth = {}  # type: dict[int, _HookLists]
    
    @contextmanager
    def level(self, depth: int) -> Iterator[None]:
        """
        Context in which hooks may be registered at `depth`.
        Any hooks registered at `depth` are discarded on exit.
        """
        if depth in self._lists_for_depth:
            raise ValueError(f'Hook lists already exist at depth {depth}')
        self._lists_for_depth[depth] = _HookLists()
        try:
            yield
        finally:
            del self._lists_for_depth[depth]
    
    def add_setup(self, depth: int, hook: Hook) -> None:
        """
        Raises:
        * HookRegistrationError -- if no suite body is running at `depth`.
        """
        self._lists_at(depth, 'before_each').setups.append(hook)
    
    def add_teardown(self, depth: int, hook: Hook) -> None:
        """
        Raises:
        * HookRegistrationError -- if no suite body is running at `depth`.
        """
        self._lists_at(depth, 'after_each').teardowns.append(hook)
    
    def _lists_at(self, depth: int, hook_kind: str) -> _HookLists:
        lists = self._lists_for_depth.get(depth)
        if lists is None:
            raise HookRegistrationError(
                f'{hook_kind}() must be called directly inside a describe() body')
        return lists
    
    def setups(self) -> list[Hook]:
        """Returns all setup hooks, outermost depth first."""
        return [
            hook
            for depth in sorted(self._lists_for_depth)
            for hook in self._lists_for_depth[depth].setups
        ]
    
    def teardowns(self) -> list[Hook]:
        """Returns all teardown hooks, outermost depth first."""
        return [
            hook
            for depth in sorted(self._lists_for_depth)
            for hook in self._lists_for_depth[depth].teardowns
        ]


# ------------------------------------------------------------------------------
# RunContext

class RunContext:
    """
    State of one in-progress test file run.

    Owns an event loop on which async spec bodies and hooks are run.
    Must be closed when the run is done.
    """
    
    def __init__(self, test_filepath: str, *, snapshot_mode: SnapshotMode) -> None:
        self.test_filepath = test_filepath
        self.description = DescriptionStack()
        self.hooks = HookRegistry()
        # Created by the first suite or spec to run
        self.results = None  # type: ResultSet | None
        self.snapshots = SnapshotSession(test_filepath, snapshot_mode)
        self.loop = asyncio.new_event_loop()
    
    def description_path(self) -> list[str]:
        return list(self.description.path())
    
    def ensure_results(self) -> ResultSet:
        if self.results is None:
            self.results = ResultSet()
        return self.results
    
    def close(self) -> None:
        """
        Cancels any tasks still scheduled on this run's event loop
        and closes the loop.
        """
        loop = self.loop  # cache
        if loop.is_closed():
            return
        try:
            remaining_tasks = asyncio.all_tasks(loop)
            for task in remaining_tasks:
                task.cancel()
            if len(remaining_tasks) > 0:
                loop.run_until_complete(
                    asyncio.gather(*remaining_tasks, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()


# ------------------------------------------------------------------------------
# Body Results

@dataclass(frozen=True)
class BodySucceeded:
    pass


@dataclass(frozen=True)
class BodyFailed:
    """A body raised an AssertionError."""
    exception: AssertionError
    message: str


@dataclass(frozen=True)
class BodyFaulted:
    """A body raised some exception other than an AssertionError."""
    # Exception, or asyncio.CancelledError
    exception: BaseException
    message: str


BodyResult: TypeAlias = BodySucceeded | BodyFailed | BodyFaulted

_SUCCEEDED = BodySucceeded()


def call_body(context: RunContext, body: Body, *, allow_async: bool) -> BodyResult:
    """
    Calls a suite body, spec body, or hook, capturing any Exception
    or asyncio.CancelledError it raises.

    If the body is async then it is run to completion on the context's event loop.
    """
    try:
        result = body()
        if inspect.isawaitable(result):
            if not allow_async:
                if inspect.iscoroutine(result):
                    result.close()
                raise TypeError(
                    f'Suite body {_body_name(body)} must be a regular function, '
                    'not an async function')
            context.loop.run_until_complete(result)
    except AssertionError as e:
        return BodyFailed(e, format_fault(e))
    except asyncio.CancelledError as e:
        # Raised by awaiting a cancelled task. Not an Exception subclass.
        return BodyFaulted(e, format_fault(e))
    except Exception as e:
        return BodyFaulted(e, format_fault(e))
    else:
        return _SUCCEEDED


def _body_name(body: Body) -> str:
    return getattr(body, '__qualname__', None) or repr(body)


# ------------------------------------------------------------------------------
# Suites & Specs

def enter_suite(context: RunContext, name: str, body: Body) -> None:
    """
    Runs a suite body.

    If the body raises then an error is recorded for the suite
    and the rest of the test file continues to run.
    """
    results = context.ensure_results()
    
    with context.description.entered(name) as descriptions, \
            context.hooks.level(context.description.depth):
        body_result = call_body(context, body, allow_async=False)
    
    if not isinstance(body_result, BodySucceeded):
        _record(results, TestRecord(descriptions, Outcome.ERROR, body_result.message))


def enter_spec(context: RunContext, name: str, body: Body) -> None:
    """
    Runs a spec body, surrounded by the setup and teardown hooks
    of all enclosing suites.

    Setup hooks run outermost first. If one raises then the remaining setup
    hooks and the body are skipped. Teardown hooks always run, also outermost
    first, even if the spec already failed.
    """
    results = context.ensure_results()
    
    failures = _run_hooks(context, context.hooks.setups(), stop_after_failure=True)
    with context.description.entered(name) as descriptions:
        if len(failures) == 0:
            body_result = call_body(context, body, allow_async=True)
            if not isinstance(body_result, BodySucceeded):
                failures.append(body_result)
    failures.extend(
        _run_hooks(context, context.hooks.teardowns(), stop_after_failure=False))
    
    if len(failures) == 0:
        _record(results, TestRecord(descriptions, Outcome.PASS))
    else:
        _record(results, TestRecord(
            descriptions,
            Outcome.FAIL,
            '\n'.join(f.message for f in failures),
            kind=('failure' if isinstance(failures[0], BodyFailed) else 'fault'),
        ))


def _run_hooks(
        context: RunContext,
        hooks: list[Hook],
        *, stop_after_failure: bool,
        ) -> list[BodyFailed | BodyFaulted]:
    failures = []  # type: list[BodyFailed | BodyFaulted]
    for hook in hooks:
        hook_result = call_body(context, hook, allow_async=True)
        if not isinstance(hook_result, BodySucceeded):
            failures.append(hook_result)
            if stop_after_failure:
                break
    return failures


def register_setup(context: RunContext, hook: Hook) -> None:
    """
    Raises:
    * HookRegistrationError -- if not called inside a suite body.
    """
    _ensure_callable(hook)
    context.hooks.add_setup(context.description.depth, hook)


def register_teardown(context: RunContext, hook: Hook) -> None:
    """
    Raises:
    * HookRegistrationError -- if not called inside a suite body.
    """
    _ensure_callable(hook)
    context.hooks.add_teardown(context.description.depth, hook)


def _ensure_callable(hook: object) -> None:
    if not callable(hook):
        raise TypeError(f'Expected a callable hook but got {hook!r}')


def mark_pending(context: RunContext, name: str) -> None:
    """
    Reports a spec that is declared but not run.
    No record is created for it.
    """
    report_pending((*context.description.path(), name))


# ------------------------------------------------------------------------------
# Test File Code

def execute_unit(context: RunContext, unit: Callable[[], None]) -> None:
    """
    Runs the top-level code of a test file.

    If that code raises outside of any suite or spec then an error is recorded,
    attributed to the test file itself.
    """
    unit_result = call_body(context, unit, allow_async=False)
    if not isinstance(unit_result, BodySucceeded):
        _record(context.ensure_results(), TestRecord(
            (os.path.basename(context.test_filepath),),
            Outcome.ERROR,
            unit_result.message,
        ))


def _record(results: ResultSet, record: TestRecord) -> None:
    results.record(record)
    report_outcome(record)


# ------------------------------------------------------------------------------
