"""Flow execution engine: grouping, retrying and running steps."""

from stepflow.engine.execution import (
    coerce_result,
    invoke_action,
    run_retry_group,
    run_sequence,
    run_step,
)
from stepflow.engine.grouping import (
    group_retriable,
    is_retriable,
    partition_by_retriable,
    retry_group,
)
from stepflow.engine.retry import DEFAULT_SLEEP_MS, DEFAULT_TIMEOUT_MS, RetryLoop, timed_apply

__all__ = [
    "DEFAULT_SLEEP_MS",
    "DEFAULT_TIMEOUT_MS",
    "RetryLoop",
    "coerce_result",
    "group_retriable",
    "invoke_action",
    "is_retriable",
    "partition_by_retriable",
    "retry_group",
    "run_retry_group",
    "run_sequence",
    "run_step",
    "timed_apply",
]
