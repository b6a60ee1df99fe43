"""Table-driven flows: one flow per row of parameters."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from stepflow.errors import FlowDefinitionError
from stepflow.flow import Flow, flow


def _row_label(row: Any) -> str:
    if isinstance(row, Mapping):
        return ", ".join(f"{k}={v!r}" for k, v in row.items())
    if isinstance(row, (tuple, list)):
        return ", ".join(repr(v) for v in row)
    return repr(row)


def _build_steps(factory: Callable[..., Iterable[Any]], row: Any) -> list[Any]:
    if isinstance(row, Mapping):
        steps = factory(**row)
    elif isinstance(row, (tuple, list)):
        steps = factory(*row)
    else:
        steps = factory(row)
    return list(steps)


def tabular_flow(
    title: str,
    factory: Callable[..., Iterable[Any]],
    rows: Iterable[Any],
) -> list[Flow]:
    """Build one flow per row by calling ``factory`` with the row's values.

    Mapping rows are passed as keyword arguments, tuple or list rows as
    positional arguments, anything else as a single argument. Each flow's
    title is ``"<title> [<row values>]"``.

    Example:
        >>> def doubling(n, expected):
        ...     return [
        ...         lambda w: {"n": n * 2},
        ...         fact("doubled", lambda w: w["n"], expected),
        ...     ]
        >>> flows = tabular_flow("doubling", doubling, [(1, 2), (2, 4)])
        >>> results = FlowRunner().run_all(flows)

    Raises:
        FlowDefinitionError: If ``rows`` is empty.
    """
    flows: list[Flow] = []
    for row in rows:
        flows.append(flow(f"{title} [{_row_label(row)}]", *_build_steps(factory, row), _depth=2))
    if not flows:
        raise FlowDefinitionError(message=f"Tabular flow {title!r} has no rows")
    return flows
