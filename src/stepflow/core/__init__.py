"""Core module exports."""

from stepflow.core.context import FlowContext
from stepflow.core.correlation import CorrelationId
from stepflow.core.models import (
    Counters,
    FlowResult,
    StepDescriptor,
    StepKind,
    StepResult,
    World,
)

__all__ = [
    "CorrelationId",
    "Counters",
    "FlowContext",
    "FlowResult",
    "StepDescriptor",
    "StepKind",
    "StepResult",
    "World",
]
