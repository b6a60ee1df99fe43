"""Step builders: turn plain functions into classified step descriptors.

The engine only runs ``StepDescriptor`` values. This module is the
caller-side classifier that builds them:

- ``transition(fn)``: ``fn(world)`` returns the next world (a mapping).
- ``query(fn)``: like a transition, but only reads state, so it is retried.
- ``check(fn)``: ``fn(world)`` asserts; the world passes through unchanged.
- ``fact(description, actual, expected)``: a check comparing a value taken
  from the world with an expected value or checker.
- ``pending(description)``: a check still to be written; always passes.

Plain callables passed to ``flow()`` are classified with ``classify``:
functions decorated with ``@query_fn`` become queries, everything else a
transition.

Example:
    >>> from stepflow import flow, transition, fact, query_fn
    >>>
    >>> @query_fn
    ... def fetch_order(world):
    ...     return {**world, "order": api.get_order(world["order_id"])}
    >>>
    >>> checkout = flow(
    ...     "checkout ships the order",
    ...     lambda world: {**world, "order_id": api.checkout()},
    ...     fetch_order,
    ...     fact("order is shipped", lambda w: w["order"]["status"], "shipped"),
    ... )
"""

from __future__ import annotations

import functools
import inspect
import io
import os
import textwrap
import tokenize
from collections.abc import Callable, Mapping
from contextlib import redirect_stdout
from typing import Any

from pydantic import ValidationError

from stepflow.core.models import StepDescriptor, StepKind, StepResult
from stepflow.errors import (
    FailureKind,
    StepDefinitionError,
    fail_message,
    format_expr,
)

QUERY_MARKER = "__stepflow_query__"
MAX_DESCRIPTION_LENGTH = 80


def query_fn(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Mark ``fn`` as a query so ``classify`` retries it with checks."""
    setattr(fn, QUERY_MARKER, True)
    return fn


def is_query_fn(fn: Any) -> bool:
    return bool(getattr(fn, QUERY_MARKER, False))


def _require_callable(fn: Any, builder: str) -> None:
    if not callable(fn):
        raise StepDefinitionError(
            message=f"{builder}() needs a callable, got {type(fn).__name__}: {fn!r}",
            value=repr(fn),
        )


def _unwrap(fn: Any) -> Any:
    while isinstance(fn, functools.partial):
        fn = fn.func
    return fn


def describe(fn: Any) -> str:
    """Derive a step description from a callable.

    Named functions use their name; lambdas use their first source line.
    """
    target = _unwrap(fn)
    name = getattr(target, "__name__", None)
    if name and "<lambda>" not in name:
        return name
    try:
        text = inspect.getsource(target).strip().splitlines()[0]
    except (OSError, TypeError, IndexError, SyntaxError, tokenize.TokenError):
        return repr(fn)
    if len(text) > MAX_DESCRIPTION_LENGTH:
        text = text[: MAX_DESCRIPTION_LENGTH - 3] + "..."
    return text


def source_location(fn: Any) -> str | None:
    """``file.py:line`` where ``fn`` is defined, when it can be found."""
    code = getattr(_unwrap(fn), "__code__", None)
    if code is None:
        return None
    return f"{os.path.basename(code.co_filename)}:{code.co_firstlineno}"


def _build(kind: StepKind, description: str, action: Callable[[Any], StepResult], source: str | None) -> StepDescriptor:
    try:
        return StepDescriptor(kind=kind, description=description, action=action, source=source)
    except ValidationError as e:
        raise StepDefinitionError(message=f"Invalid {kind.value} step: {e}", cause=e) from e


def valid_world_result(world: Any, expr: str) -> StepResult:
    """Accept ``world`` if it is a mapping, else fail naming ``expr``."""
    if isinstance(world, Mapping):
        return StepResult.success(world, "")
    return StepResult.failed(
        fail_message(expr, "did not result in a mapping (i.e. a valid world):\n", repr(world)),
        FailureKind.INVALID_WORLD,
    )


def _world_step(kind: StepKind, fn: Callable[[Any], Any], description: str | None) -> StepDescriptor:
    desc = description or describe(fn)
    source = source_location(fn)
    expr = format_expr(desc, source)

    def action(world: Any) -> StepResult:
        return valid_world_result(fn(world), expr)

    return _build(kind, desc, action, source)


def transition(fn: Callable[[Any], Any], description: str | None = None) -> StepDescriptor:
    """Build a transition: ``fn(world)`` must return the next world."""
    _require_callable(fn, "transition")
    return _world_step(StepKind.TRANSITION, fn, description)


def query(fn: Callable[[Any], Any], description: str | None = None) -> StepDescriptor:
    """Build a query: like a transition, but grouped with checks for retry."""
    _require_callable(fn, "query")
    return _world_step(StepKind.QUERY, fn, description)


def _indent(text: str) -> str:
    return textwrap.indent(text, "    ")


def check(fn: Callable[[Any], Any], description: str | None = None) -> StepDescriptor:
    """Build a check.

    ``fn(world)`` passes by returning a truthy value or ``None`` (the
    natural result of a function that only uses ``assert``). It fails by
    raising ``AssertionError`` or returning any other falsy value. Output
    printed by ``fn`` is captured and becomes the step's description text.
    Other exceptions are left to the step runner, which reports them as
    exceptions rather than assertion failures.

    The diagnostic only holds what the check itself reports: a bare
    ``assert w["count"] == 2`` fails with "assertion failed". Use ``fact``
    to get the expected and actual values in the diagnostic.
    """
    _require_callable(fn, "check")
    desc = description or describe(fn)

    def action(world: Any) -> StepResult:
        captured = io.StringIO()
        try:
            with redirect_stdout(captured):
                outcome = fn(world)
        except AssertionError as e:
            message = str(e) or "assertion failed"
            return StepResult.failed(
                f"FAIL {desc}\n{_indent(message)}\n{captured.getvalue()}".rstrip("\n") + "\n",
                FailureKind.ASSERTION_FAILED,
            )
        if outcome is not None and not outcome:
            return StepResult.failed(
                f"FAIL {desc}\n{_indent(f'check returned {outcome!r}')}\n{captured.getvalue()}".rstrip("\n")
                + "\n",
                FailureKind.ASSERTION_FAILED,
            )
        return StepResult.success(world, captured.getvalue())

    return _build(StepKind.CHECK, desc, action, source_location(fn))


class Checker:
    """A named predicate used as the expected side of a ``fact``."""

    def __init__(self, name: str, predicate: Callable[[Any], bool]) -> None:
        self.name = name
        self.predicate = predicate

    def __call__(self, value: Any) -> bool:
        return bool(self.predicate(value))

    def __repr__(self) -> str:
        return self.name


truthy = Checker("truthy", bool)
falsey = Checker("falsey", lambda value: not value)
anything = Checker("anything", lambda value: True)


def contains(expected: Any) -> Checker:
    """Checker passing when ``expected`` is in the value.

    For mappings, ``expected`` must be a mapping whose items all appear in
    the value.
    """

    def predicate(value: Any) -> bool:
        if isinstance(expected, Mapping) and isinstance(value, Mapping):
            return all(k in value and value[k] == v for k, v in expected.items())
        return expected in value

    return Checker(f"contains({expected!r})", predicate)


def fact(description: str, actual: Callable[[Any], Any] | Any, expected: Any = truthy) -> StepDescriptor:
    """Build a check comparing ``actual`` with ``expected``.

    Args:
        description: What the fact states.
        actual: Callable extracting the value from the world, or a value.
        expected: Expected value (compared with ``==``) or a ``Checker``.

    Example:
        >>> fact("one order placed", lambda w: len(w["orders"]), 1)
    """

    def evaluate(world: Any) -> bool:
        value = actual(world) if callable(actual) else actual
        matched = expected(value) if isinstance(expected, Checker) else value == expected
        if not matched:
            raise AssertionError(f"Expected: {expected!r}\n  Actual: {value!r}")
        return True

    step = check(evaluate, description=description)
    if callable(actual):
        step = step.model_copy(update={"source": source_location(actual)})
    return step


def pending(description: str) -> StepDescriptor:
    """A check still to be written. Passes, leaving the world untouched."""

    def action(world: Any) -> StepResult:
        return StepResult.success(world, f"WORK TO DO: {description}\n")

    return _build(StepKind.CHECK, description, action, None)


def classify(declaration: Any) -> StepDescriptor:
    """Turn a step declaration into a descriptor.

    Descriptors pass through; ``@query_fn`` callables become queries; other
    callables become transitions.

    Raises:
        StepDefinitionError: If ``declaration`` is neither.
    """
    if isinstance(declaration, StepDescriptor):
        return declaration
    if callable(declaration):
        if is_query_fn(declaration) or is_query_fn(_unwrap(declaration)):
            return query(declaration)
        return transition(declaration)
    raise StepDefinitionError(
        message=f"Cannot build a step from {type(declaration).__name__}: {declaration!r}",
        value=repr(declaration),
    )
