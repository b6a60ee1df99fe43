"""Flow definitions.

A flow is a titled, ordered list of step descriptors. Flows are plain data:
defining one runs nothing. ``FlowRunner`` (or ``Flow.run``) executes it.

Example:
    >>> from stepflow import flow, check
    >>>
    >>> counting = flow(
    ...     "counter starts at one",
    ...     lambda world: {**world, "count": 1},
    ...     check(lambda world: world["count"] == 1),
    ... )
    >>> counting.description
    'tests.test_counter:3 counter starts at one'
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stepflow.core.models import StepDescriptor
from stepflow.errors import FlowDefinitionError, StepDefinitionError
from stepflow.steps import classify

if TYPE_CHECKING:
    from stepflow.core.models import FlowResult
    from stepflow.runner import FlowRunner


class Flow(BaseModel):
    """A titled sequence of steps.

    Attributes:
        title: Human-readable title.
        module: Module the flow was defined in.
        line: Line of the ``flow(...)`` call.
        steps: Classified step descriptors, in declaration order.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        extra="forbid",
        frozen=True,
    )

    title: str = Field(..., min_length=1, description="Flow title")
    module: str = Field(default="__main__", description="Defining module")
    line: int = Field(default=0, ge=0, description="Line of definition")
    steps: tuple[StepDescriptor, ...] = Field(default=(), description="Ordered steps")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Flow title cannot be empty or whitespace")
        return v.strip()

    @property
    def description(self) -> str:
        """``"<module>:<line> <title>"``, used in logs and results."""
        return f"{self.module}:{self.line} {self.title}"

    def __len__(self) -> int:
        return len(self.steps)

    def run(self, runner: FlowRunner | None = None, **kwargs: Any) -> FlowResult:
        """Run this flow with ``runner`` (or a default ``FlowRunner``)."""
        from stepflow.runner import FlowRunner

        runner = runner or FlowRunner()
        return runner.run(self, **kwargs)


def _caller(depth: int) -> tuple[str, int]:
    frame = inspect.currentframe()
    try:
        for _ in range(depth + 1):
            if frame is None:
                break
            frame = frame.f_back
        if frame is None:
            return "__main__", 0
        return frame.f_globals.get("__name__", "__main__"), frame.f_lineno
    finally:
        del frame


def flow(title: str, *steps: Any, _depth: int = 1) -> Flow:
    """Define a flow.

    Args:
        title: Flow title.
        *steps: Step descriptors or plain callables (classified with
            ``stepflow.steps.classify``).

    Raises:
        FlowDefinitionError: If the title is not a non-empty string.
        StepDefinitionError: If a step cannot be classified. Its context
            names the flow and the position of the offending step.
    """
    if not isinstance(title, str):
        raise FlowDefinitionError(
            message=f"A flow needs a title string first, got {type(title).__name__}",
        )
    module, line = _caller(_depth)
    descriptors: list[StepDescriptor] = []
    for position, step in enumerate(steps, start=1):
        try:
            descriptors.append(classify(step))
        except StepDefinitionError as e:
            e.context.flow_description = f"{module}:{line} {title}"
            e.context.step_description = f"step {position}"
            raise
    try:
        return Flow(title=title, module=module, line=line, steps=tuple(descriptors))
    except ValidationError as e:
        raise FlowDefinitionError(message=f"Invalid flow {title!r}: {e}", cause=e) from e
