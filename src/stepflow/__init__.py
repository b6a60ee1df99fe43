"""stepflow - flow-oriented test execution.

stepflow runs an ordered list of steps against a "world" value. Each step
receives the world produced by the previous one; the first failing step
stops the flow and its diagnostic becomes the verdict. Consecutive checks
and queries are retried together for a bounded time, so tests against
eventually-consistent systems read as straight-line scripts.

Key Features:
    - World threading: every step sees the previous step's output world
    - Bounded retries: runs of checks/queries are retried as one unit
    - Failure capture: exceptions become diagnostics, never escape a run
    - Correlation ids: every log line of a run carries its CID

Example:
    >>> from stepflow import FlowRunner, fact, flow
    >>>
    >>> counting = flow(
    ...     "counter starts at one",
    ...     lambda world: {**world, "count": 1},
    ...     fact("count is one", lambda world: world["count"], 1),
    ... )
    >>> result = FlowRunner().run(counting)
    >>> result.success
    True

Core API:
    flow: Define a titled flow of steps
    transition, query, check, fact, pending: Build steps explicitly
    FlowRunner: Run flows and collect FlowResults
    run_flow: Run steps and return (success, diagnostic)
    tabular_flow: One flow per row of parameters
"""

from stepflow.config import FlowConfig, load_config
from stepflow.core import (
    CorrelationId,
    Counters,
    FlowContext,
    FlowResult,
    StepDescriptor,
    StepKind,
    StepResult,
    World,
)
from stepflow.errors import (
    ConfigError,
    ErrorCode,
    FailureKind,
    FlowDefinitionError,
    FlowLoadError,
    StepDefinitionError,
    StepflowError,
)
from stepflow.flow import Flow, flow
from stepflow.observability import configure_logging, get_logger
from stepflow.reporting import CheckRecord, ConsoleSink, InMemoryResultStore
from stepflow.runner import FlowRunner, run_flow
from stepflow.runner.tabular import tabular_flow
from stepflow.steps import (
    Checker,
    anything,
    check,
    classify,
    contains,
    fact,
    falsey,
    pending,
    query,
    query_fn,
    transition,
    truthy,
)

__version__ = "0.1.0"

__all__ = [
    "CheckRecord",
    "Checker",
    "ConfigError",
    "ConsoleSink",
    "CorrelationId",
    "Counters",
    "ErrorCode",
    "FailureKind",
    "Flow",
    "FlowConfig",
    "FlowContext",
    "FlowDefinitionError",
    "FlowLoadError",
    "FlowResult",
    "FlowRunner",
    "InMemoryResultStore",
    "StepDefinitionError",
    "StepDescriptor",
    "StepKind",
    "StepResult",
    "StepflowError",
    "World",
    "anything",
    "check",
    "classify",
    "configure_logging",
    "contains",
    "fact",
    "falsey",
    "flow",
    "get_logger",
    "load_config",
    "pending",
    "query",
    "query_fn",
    "run_flow",
    "tabular_flow",
    "transition",
    "truthy",
]
