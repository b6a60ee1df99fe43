"""Core domain models for stepflow.

This module defines the values the engine passes around:
- StepKind: how a step is executed (and whether it may be retried)
- StepDescriptor: a classified step, ready for the engine
- StepResult: the world a step produced, or a failure with diagnostics
- Counters: pass/fail bookkeeping for one flow run
- FlowResult: the verdict of a whole flow

Example:
    >>> from stepflow.core import StepDescriptor, StepKind, StepResult
    >>>
    >>> step = StepDescriptor(
    ...     kind=StepKind.TRANSITION,
    ...     description="create user",
    ...     action=lambda world: StepResult.success({**world, "user_id": 1}),
    ... )
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stepflow.errors import FailureKind

World = Mapping[str, Any]
StepAction = Callable[[Any], Any]


class StepKind(Enum):
    """Execution kinds of a step.

    Attributes:
        TRANSITION: Changes the world. Never retried.
        CHECK: Asserts something about the world. Retriable.
        QUERY: Reads state into the world. Retriable.
        RETRY: Synthetic group of consecutive retriable steps run under one
            bounded retry loop.
    """

    TRANSITION = "transition"
    CHECK = "check"
    QUERY = "query"
    RETRY = "retry"

    @property
    def retriable(self) -> bool:
        """Whether consecutive steps of this kind are grouped for retry."""
        return self in (StepKind.CHECK, StepKind.QUERY)


@dataclass(frozen=True)
class StepResult:
    """Outcome of running one step.

    A present world means success and is threaded into the next step. An
    absent world (``None`` or ``False``) means failure; ``description`` then
    carries the diagnostic text. An empty mapping is a valid world.

    Attributes:
        world: The world produced by the step, or None on failure.
        description: Success detail or failure diagnostic.
        failure: Category of the failure, None on success.
    """

    world: Any
    description: str = ""
    failure: FailureKind | None = None

    @property
    def ok(self) -> bool:
        return self.world is not None and self.world is not False

    @classmethod
    def success(cls, world: Any, description: str = "") -> StepResult:
        return cls(world=world, description=description)

    @classmethod
    def failed(
        cls,
        description: str,
        kind: FailureKind = FailureKind.ASSERTION_FAILED,
    ) -> StepResult:
        return cls(world=None, description=description, failure=kind)


class StepDescriptor(BaseModel):
    """A classified step: what to run, how, and how to describe it.

    Descriptors are produced by the builders in ``stepflow.steps`` (or any
    other classifier) and consumed by the engine, which never looks at how a
    step was declared.

    Attributes:
        kind: Execution kind.
        description: Human-readable description; keys the debug snapshot.
        action: Callable taking the current world and returning a
            ``StepResult`` (or a ``(world, description)`` pair). Required for
            every kind except RETRY.
        steps: Child steps of a RETRY group, in execution order.
        source: Optional location hint (``file:line``) used in diagnostics.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        extra="forbid",
        frozen=True,
    )

    kind: StepKind
    description: str = Field(..., min_length=1, description="Step description")
    action: StepAction | None = Field(default=None, description="World -> StepResult callable")
    steps: tuple[StepDescriptor, ...] = Field(default=(), description="Children of a retry group")
    source: str | None = Field(default=None, description="Source location hint")

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Step description cannot be empty or whitespace")
        return v

    @model_validator(mode="after")
    def validate_shape(self) -> StepDescriptor:
        if self.kind is StepKind.RETRY:
            if not self.steps:
                raise ValueError("A retry group must wrap at least one step")
            if not all(s.kind.retriable for s in self.steps):
                raise ValueError("A retry group may only wrap check and query steps")
        else:
            if self.action is None:
                raise ValueError(f"A {self.kind.value} step needs an action")
            if self.steps:
                raise ValueError("Only retry groups may have child steps")
        return self

    @property
    def retriable(self) -> bool:
        return self.kind.retriable


StepDescriptor.model_rebuild()


@dataclass
class Counters:
    """Pass/fail bookkeeping for one flow run.

    Retry loops snapshot the counters before the first attempt and restore
    them before every attempt, so failed attempts that are retried leave no
    trace.
    """

    passes: int = 0
    failures: int = 0

    def snapshot(self) -> tuple[int, int]:
        return (self.passes, self.failures)

    def restore(self, snapshot: tuple[int, int]) -> None:
        self.passes, self.failures = snapshot

    def to_dict(self) -> dict[str, int]:
        return {"passes": self.passes, "failures": self.failures}


@dataclass
class FlowResult:
    """Verdict of a flow run.

    Attributes:
        flow_description: Description of the flow that ran.
        success: Whether every executed step succeeded.
        description: Diagnostic of the first failing step, or the last
            step's detail on success.
        world: Final world on success, None on failure.
        cid: Correlation id of the run.
        worlds: Debug snapshot, step description -> world after that step.
        counters: Pass/fail counters at the end of the run.
        duration_ms: Wall time of the run.
        failure: Category of the first failing step, None on success.
    """

    flow_description: str
    success: bool
    description: str = ""
    world: Any = None
    cid: str = ""
    worlds: dict[str, Any] = field(default_factory=dict)
    counters: Counters = field(default_factory=Counters)
    duration_ms: float = 0.0
    failure: FailureKind | None = None

    def as_tuple(self) -> tuple[bool, str]:
        """Return ``(success, diagnostic)``."""
        return (self.success, self.description)

    def summary(self) -> dict[str, Any]:
        return {
            "flow": self.flow_description,
            "success": self.success,
            "cid": self.cid,
            "steps_executed": len(self.worlds),
            "passes": self.counters.passes,
            "failures": self.counters.failures,
            "duration_ms": round(self.duration_ms, 2),
            "error_code": self.failure.error_code.value if self.failure else None,
        }
