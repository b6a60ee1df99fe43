"""Grouping of consecutive retriable steps into retry groups.

Checks and queries are the steps worth retrying: they observe a system
that may not have settled yet. Consecutive runs of them are wrapped into a
single RETRY descriptor so the whole run is retried together. Transitions
are never retried and act as group boundaries::

    [check A, check B, transition C, query D]
        -> [retry(A, B), C, retry(D)]
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from itertools import groupby

from stepflow.core.models import StepDescriptor, StepKind


def is_retriable(step: StepDescriptor) -> bool:
    return step.kind.retriable


def partition_by_retriable(
    steps: Iterable[StepDescriptor],
) -> list[tuple[bool, list[StepDescriptor]]]:
    """Split ``steps`` into maximal runs sharing the same retriability.

    Returns ``(retriable, run)`` pairs in the original order.
    """
    return [(key, list(run)) for key, run in groupby(steps, key=is_retriable)]


def group_description(steps: Sequence[StepDescriptor]) -> str:
    return "retrying: " + "; ".join(s.description for s in steps)


def retry_group(steps: Sequence[StepDescriptor]) -> StepDescriptor:
    """Wrap a run of retriable steps into one RETRY descriptor."""
    return StepDescriptor(
        kind=StepKind.RETRY,
        description=group_description(steps),
        steps=tuple(steps),
    )


def group_retriable(steps: Iterable[StepDescriptor]) -> list[StepDescriptor]:
    """Replace every maximal run of retriable steps with a retry group.

    Non-retriable steps (including existing retry groups) pass through one
    by one. A run of a single retriable step is still wrapped.
    """
    grouped: list[StepDescriptor] = []
    for retriable, run in partition_by_retriable(steps):
        if retriable:
            grouped.append(retry_group(run))
        else:
            grouped.extend(run)
    return grouped
