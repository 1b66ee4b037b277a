"""
The functions a test file uses to declare suites, specs, and hooks.

A test file is run with these names already defined in its module namespace:

    describe, it, pending, before_each, after_each, expect, dsl

Each of describe(), it(), and pending() can be called directly with a body
or used as a decorator:

    @describe('math')
    def _():
        @before_each
        def _():
            ...

        @it('adds')
        def _():
            assert 1 + 1 == 2

        it('subtracts', lambda: expect(3 - 1).match_snapshot())
"""

from __future__ import annotations

from collections.abc import Callable
from specrun import executor
from specrun.assertions import expect, Expectation
from specrun.executor import Body, Hook, RunContext
# Registers the match_snapshot assertion
import specrun.snapshots  # noqa: F401
from typing import overload, TypeVar


_B = TypeVar('_B', bound=Body)


class SpecDsl:
    """
    Declares suites, specs, and hooks into a particular test file run.
    """
    
    def __init__(self, context: RunContext) -> None:
        self._context = context
    
    @overload
    def describe(self, name: str) -> Callable[[_B], _B]:
        ...
    
    @overload
    def describe(self, name: str, body: Body) -> None:
        ...
    
    def describe(self, name: str, body: Body | None=None):  # type: ignore[no-untyped-def]
        """Declares and immediately runs a suite."""
        _ensure_name(name)
        if body is None:
            def decorate(body: _B) -> _B:
                executor.enter_suite(self._context, name, body)
                return body
            return decorate
        executor.enter_suite(self._context, name, body)
        return None
    
    @overload
    def it(self, name: str) -> Callable[[_B], _B]:
        ...
    
    @overload
    def it(self, name: str, body: Body) -> None:
        ...
    
    def it(self, name: str, body: Body | None=None):  # type: ignore[no-untyped-def]
        """Declares and immediately runs a spec."""
        _ensure_name(name)
        if body is None:
            def decorate(body: _B) -> _B:
                executor.enter_spec(self._context, name, body)
                return body
            return decorate
        executor.enter_spec(self._context, name, body)
        return None
    
    @overload
    def pending(self, name: str) -> Callable[[_B], _B]:
        ...
    
    @overload
    def pending(self, name: str, body: Body) -> None:
        ...
    
    def pending(self, name: str, body: Body | None=None):  # type: ignore[no-untyped-def]
        """
        Declares a spec that should not run yet.

        The spec is reported as pending. Its body, if any, is never called.
        """
        _ensure_name(name)
        executor.mark_pending(self._context, name)
        if body is None:
            def decorate(body: _B) -> _B:
                return body
            return decorate
        return None
    
    def before_each(self, hook: Hook) -> Hook:
        """Registers a hook to run before each spec in the current suite."""
        executor.register_setup(self._context, hook)
        return hook
    
    def after_each(self, hook: Hook) -> Hook:
        """Registers a hook to run after each spec in the current suite."""
        executor.register_teardown(self._context, hook)
        return hook
    
    def expect(self, actual: object) -> Expectation:
        return expect(actual, context=self._context)
    
    def namespace(self) -> dict[str, object]:
        """Returns the names a test file sees at module level."""
        return dict(
            describe=self.describe,
            it=self.it,
            pending=self.pending,
            before_each=self.before_each,
            after_each=self.after_each,
            expect=self.expect,
            dsl=self,
        )


def _ensure_name(name: object) -> None:
    if not isinstance(name, str):
        raise TypeError(f'Expected a description string but got {name!r}')
