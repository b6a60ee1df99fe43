"""Per-run execution state shared by the step runner and retry loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from stepflow.core.correlation import CorrelationId
from stepflow.core.models import Counters

if TYPE_CHECKING:
    from stepflow.engine.retry import RetryLoop
    from stepflow.observability.logging import BoundLogger, StructuredLogger
    from stepflow.reporting.console import ConsoleSink


@dataclass
class FlowContext:
    """State owned by a single flow run.

    A fresh context is created for every run, which is what clears the
    debug world snapshot and the counters between runs. The context is
    passed explicitly to every function that needs it.

    Attributes:
        flow_description: Description of the running flow.
        cid: Correlation id of the run.
        logger: Structured event logger.
        retry: Retry loop used for retry groups.
        sink: Human-readable output, or None for silent runs.
        verbose: Also send per-step progress lines to the sink.
        counters: Pass/fail counters.
    """

    flow_description: str
    cid: CorrelationId
    logger: StructuredLogger | BoundLogger
    retry: RetryLoop
    sink: ConsoleSink | None = None
    verbose: bool = False
    counters: Counters = field(default_factory=Counters)
    _worlds: dict[str, Any] = field(default_factory=dict)

    def save_world(self, description: str, world: Any) -> Any:
        """Record the world observed after a step. Last write wins."""
        self._worlds[description] = world
        return world

    def worlds(self) -> dict[str, Any]:
        """Copy of the debug world snapshot."""
        return dict(self._worlds)

    def emit(self, message: str, cid: CorrelationId, **fields: Any) -> None:
        """Log an event; echo it to the sink in verbose mode."""
        self.logger.info(message, cid=str(cid), **fields)
        if self.verbose and self.sink is not None:
            self.sink.line(message, cid)

    def emit_debug(self, message: str, cid: CorrelationId, **fields: Any) -> None:
        """Log a per-step event; echo it to the sink in verbose mode."""
        self.logger.debug(message, cid=str(cid), **fields)
        if self.verbose and self.sink is not None:
            self.sink.line(message, cid)
