"""
A small assertion library with a registry of named predicates.

Test code reaches the predicates through expect():

    expect(value).match_snapshot()
    expect(value).not_.match_snapshot()

A predicate is registered once per process with register_assertion()
and is looked up by attribute name on an Expectation.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeAlias


# ------------------------------------------------------------------------------
# Registry

@dataclass
class CallState:
    """
    Per-call state passed to a predicate.

    A predicate may set `failure_message` to replace the templated
    failure message for this call.
    """
    negated: bool
    context: object
    failure_message: str | None = None


Predicate: TypeAlias = Callable[[CallState, list[Any]], bool]


@dataclass(frozen=True)
class _Assertion:
    name: str
    predicate: Predicate
    positive_message: str
    negative_message: str


_assertion_for_name = {}  # type: dict[str, _Assertion]


def register_assertion(
        name: str,
        predicate: Predicate,
        positive_message: str,
        negative_message: str,
        ) -> None:
    """
    Registers a named predicate.

    Both message templates take two %s arguments: (actual, expected),
    taken from arguments[0] and arguments[1] after the predicate has run.
    Registering a name again replaces the earlier registration.
    """
    _assertion_for_name[name] = _Assertion(
        name, predicate, positive_message, negative_message)


def registered_assertion_names() -> list[str]:
    return sorted(_assertion_for_name.keys())


class AssertionFailure(AssertionError):
    """Raised when a registered assertion does not hold."""
    
    def __init__(self, assertion_name: str, message: str) -> None:
        super().__init__(message)
        self.assertion_name = assertion_name


# ------------------------------------------------------------------------------
# Expectations

def expect(actual: object, *, context: object=None) -> Expectation:
    return Expectation(actual, context=context)


class Expectation:
    def __init__(self, actual: object, *, context: object=None, negated: bool=False) -> None:
        self._actual = actual
        self._context = context
        self._negated = negated
    
    @property
    def not_(self) -> Expectation:
        return Expectation(self._actual, context=self._context, negated=not self._negated)
    
    def __getattr__(self, name: str) -> Callable[..., None]:
        assertion = _assertion_for_name.get(name)
        if assertion is None:
            raise AttributeError(f'No assertion registered with name {name!r}')
        
        def check(*args: object) -> None:
            self._evaluate(assertion, list(args))
        return check
    
    def _evaluate(self, assertion: _Assertion, extra_args: list[object]) -> None:
        """
        Raises:
        * AssertionFailure -- if the assertion does not hold.
        """
        state = CallState(negated=self._negated, context=self._context)
        arguments = [self._actual, *extra_args]  # type: list[Any]
        result = bool(assertion.predicate(state, arguments))
        if result == (not self._negated):
            return
        
        if state.failure_message is not None:
            message = state.failure_message
        else:
            template = (
                assertion.negative_message
                if self._negated
                else assertion.positive_message
            )
            actual = arguments[0] if len(arguments) >= 1 else None
            expected = arguments[1] if len(arguments) >= 2 else None
            message = template % (actual, expected)
        raise AssertionFailure(assertion.name, message)


# ------------------------------------------------------------------------------
