"""stepflow error handling.

- Exception hierarchy with error codes for definition-time mistakes
- Failure taxonomy for run-time failures (carried as data, never raised)
- Stack trace formatting for captured exceptions
"""

from stepflow.errors.base import (
    ConfigError,
    ErrorCode,
    ErrorContext,
    FailureKind,
    FlowDefinitionError,
    FlowLoadError,
    StepDefinitionError,
    StepflowError,
)
from stepflow.errors.formatting import (
    StackTraceFilter,
    fail_message,
    format_exception,
    format_expr,
)

__all__ = [
    "ConfigError",
    "ErrorCode",
    "ErrorContext",
    "FailureKind",
    "FlowDefinitionError",
    "FlowLoadError",
    "StackTraceFilter",
    "StepDefinitionError",
    "StepflowError",
    "fail_message",
    "format_exception",
    "format_expr",
]
