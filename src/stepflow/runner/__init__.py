"""Flow Runner - runs flows and produces verdicts."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from stepflow.config import FlowConfig
from stepflow.core.context import FlowContext
from stepflow.core.correlation import CorrelationId
from stepflow.core.models import FlowResult, StepDescriptor
from stepflow.engine import RetryLoop, group_retriable, run_sequence
from stepflow.flow import Flow
from stepflow.observability import StructuredLogger, get_logger
from stepflow.reporting import CheckRecord, ConsoleSink, InMemoryResultStore, ResultStore
from stepflow.steps import classify

logger = logging.getLogger(__name__)

ANONYMOUS_FLOW = "anonymous flow"


class FlowRunner:
    """Runs flows: groups retriable steps, folds them over a world, reports.

    Each ``run`` call gets its own ``FlowContext``, so counters and the
    debug world snapshot never leak between runs. The runner keeps the
    context of its last run for inspection; an instance must not be shared
    by threads running flows concurrently.

    Dependencies can be injected for testability.

    Example:
        >>> runner = FlowRunner(config=FlowConfig(verbose=True))
        >>> result = runner.run(checkout_flow)
        >>> result.success, result.description
        (True, '')
    """

    def __init__(
        self,
        config: FlowConfig | None = None,
        sink: ConsoleSink | None = None,
        logger: StructuredLogger | None = None,
        result_store: ResultStore | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.config = config or FlowConfig()
        self.sink = sink or ConsoleSink(color=self.config.color)
        self.logger = logger or get_logger(
            "stepflow",
            level=self.config.log_level,
            json_format=self.config.json_logs,
        )
        self.result_store: ResultStore = result_store if result_store is not None else InMemoryResultStore()
        self._sleep = sleep
        self._clock = clock
        self._last_context: FlowContext | None = None

    @property
    def last_context(self) -> FlowContext | None:
        """Context of the most recent run, or None before the first run."""
        return self._last_context

    @property
    def worlds(self) -> dict[str, Any]:
        """Debug world snapshot of the most recent run."""
        if self._last_context is None:
            return {}
        return self._last_context.worlds()

    def _retry_loop(self) -> RetryLoop:
        return RetryLoop(
            timeout_ms=self.config.probe_timeout_ms,
            sleep_ms=self.config.probe_sleep_ms,
            sleep=self._sleep,
            clock=self._clock,
        )

    def run(
        self,
        flow_or_steps: Flow | Iterable[Any],
        cid: CorrelationId | None = None,
        title: str = ANONYMOUS_FLOW,
    ) -> FlowResult:
        """Run a flow.

        Args:
            flow_or_steps: A ``Flow`` or an iterable of step declarations
                (descriptors or callables).
            cid: Parent correlation id. The run uses a child of it; without
                one a fresh ``FLOW.*`` id is created.
            title: Description used when running a bare list of steps.

        Returns:
            FlowResult. ``success`` is True iff every executed step
            succeeded; on failure ``description`` is the first failing
            step's diagnostic.
        """
        if isinstance(flow_or_steps, Flow):
            description = flow_or_steps.description
            steps: list[StepDescriptor] = list(flow_or_steps.steps)
        else:
            description = title
            steps = [classify(step) for step in flow_or_steps]

        grouped = group_retriable(steps)
        flow_cid = cid.split() if cid is not None else CorrelationId.new("FLOW")
        ctx = FlowContext(
            flow_description=description,
            cid=flow_cid,
            logger=self.logger.bind(flow_desc=description),
            retry=self._retry_loop(),
            sink=self.sink,
            verbose=self.config.verbose,
        )
        self._last_context = ctx

        started = self._clock()
        ctx.emit(f"Running flow: {description}", flow_cid, log="flow/start")
        result = run_sequence(ctx, {}, grouped, flow_cid)
        duration_ms = (self._clock() - started) * 1000.0

        if not result.ok:
            self.sink.failure(result.description)

        ctx.emit(
            f"Finished flow: {description} ({'passed' if result.ok else 'FAILED'})",
            flow_cid,
            log="flow/finish",
            success=result.ok,
            failure_kind=result.failure.value if result.failure else None,
            error_code=result.failure.error_code.value if result.failure else None,
        )

        self._record(description, result.ok, flow_cid)

        return FlowResult(
            flow_description=description,
            success=result.ok,
            description=result.description,
            world=result.world if result.ok else None,
            cid=str(flow_cid),
            worlds=ctx.worlds(),
            counters=ctx.counters,
            duration_ms=duration_ms,
            failure=result.failure,
        )

    def _record(self, description: str, passed: bool, cid: CorrelationId) -> None:
        self.result_store.record(CheckRecord(description=description, passed=passed))
        if self.result_store.patch_last({"flow/cid": str(cid)}) is None:
            logger.warning("Result store has no record to tag with flow cid %s", cid)

    def run_all(self, flows: Iterable[Flow]) -> list[FlowResult]:
        """Run flows one after another, continuing past failures."""
        return [self.run(f) for f in flows]


def run_flow(steps: Flow | Iterable[Any], **kwargs: Any) -> tuple[bool, str]:
    """Run steps with a default runner and return ``(success, diagnostic)``.

    Keyword arguments are passed to ``FlowRunner``.
    """
    return FlowRunner(**kwargs).run(steps).as_tuple()


__all__ = ["ANONYMOUS_FLOW", "FlowRunner", "run_flow"]
