"""Step execution: running one step, and folding steps over a world.

``run_step`` is the single boundary where unexpected exceptions become
failures. Everything above it deals only in ``StepResult`` values.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from typing import Any

from stepflow.core.context import FlowContext
from stepflow.core.correlation import CorrelationId
from stepflow.core.models import StepDescriptor, StepKind, StepResult
from stepflow.errors import FailureKind, fail_message, format_exception, format_expr

logger = logging.getLogger(__name__)


def coerce_result(value: Any, step: StepDescriptor) -> StepResult:
    """Normalize what an action returned into a StepResult.

    Actions may return a ``StepResult`` or a ``(world, description)`` pair.
    Anything else is reported as an invalid world. The returned result's
    description is always a string.
    """
    if isinstance(value, StepResult):
        if not isinstance(value.description, str):
            description = "" if value.description is None else str(value.description)
            return dataclasses.replace(value, description=description)
        return value
    if isinstance(value, tuple) and len(value) == 2:
        world, description = value
        description = "" if description is None else str(description)
        if world is None or world is False:
            return StepResult.failed(description, FailureKind.ASSERTION_FAILED)
        return StepResult.success(world, description)
    return StepResult.failed(
        fail_message(
            format_expr(step.description, step.source),
            "did not return a step result:\n",
            repr(value),
        ),
        FailureKind.INVALID_WORLD,
    )


def invoke_action(
    ctx: FlowContext,
    step: StepDescriptor,
    world: Any,
    cid: CorrelationId,
) -> StepResult:
    """Call a leaf step's action, converting any exception into a failure."""
    try:
        value = step.action(world)  # type: ignore[misc]
    except Exception as exc:
        ctx.logger.exception(
            "Step threw exception",
            exc_info=exc,
            log="flow/step-exception",
            cid=str(cid),
            step_type=step.kind.value,
            step_desc=step.description,
        )
        return StepResult.failed(
            fail_message(
                format_expr(step.description, step.source),
                "threw exception:\n",
                format_exception(exc),
            ),
            FailureKind.ACTION_EXCEPTION,
        )
    return coerce_result(value, step)


def _count(ctx: FlowContext, step: StepDescriptor, result: StepResult) -> None:
    if not result.ok:
        ctx.counters.failures += 1
    elif step.kind is StepKind.CHECK:
        ctx.counters.passes += 1


def run_retry_group(
    ctx: FlowContext,
    world: Any,
    group: StepDescriptor,
    cid: CorrelationId,
) -> StepResult:
    """Run a retry group's children under the context's retry loop.

    Each attempt runs the children as one short-circuiting sequence under a
    fresh child correlation id.
    """

    def attempt(attempt_world: Any) -> StepResult:
        return run_sequence(ctx, attempt_world, group.steps, cid.split())

    def on_retry(attempt_number: int, elapsed_ms: float, result: StepResult) -> None:
        ctx.logger.debug(
            "Retrying steps",
            log="flow/retry",
            cid=str(cid),
            step_desc=group.description,
            attempt=attempt_number,
            elapsed_ms=round(elapsed_ms, 2),
        )

    return ctx.retry.run(attempt, world, counters=ctx.counters, on_retry=on_retry)


def run_step(
    ctx: FlowContext,
    world: Any,
    step: StepDescriptor,
    cid: CorrelationId | None = None,
) -> StepResult:
    """Execute one step against ``world``.

    Logs the step under a fresh child correlation id, runs it, and records
    the resulting world (None on failure) in the debug snapshot. The caller
    stops folding when the returned result is not ``ok``.
    """
    step_cid = (cid or ctx.cid).split()
    ctx.emit_debug(
        f"Running {step.kind.value:<10} {step.description}",
        step_cid,
        log="flow/run-step",
        step_type=step.kind.value,
        step_desc=step.description,
    )

    if step.kind is StepKind.RETRY:
        result = run_retry_group(ctx, world, step, step_cid)
    else:
        result = invoke_action(ctx, step, world, step_cid)
        _count(ctx, step, result)

    ctx.save_world(step.description, result.world)
    return result


def run_sequence(
    ctx: FlowContext,
    world: Any,
    steps: Iterable[StepDescriptor],
    cid: CorrelationId | None = None,
) -> StepResult:
    """Fold ``run_step`` over ``steps``, stopping at the first failure.

    Seeded with ``(world, "")``; returns the last step's result.
    """
    result = StepResult.success(world, "")
    for step in steps:
        result = run_step(ctx, result.world, step, cid)
        if not result.ok:
            logger.debug("Halting sequence at failed step: %s", step.description)
            break
    return result
