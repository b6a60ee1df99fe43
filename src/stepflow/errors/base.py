"""Exception hierarchy and failure taxonomy for stepflow.

Two kinds of error live here:

- ``StepflowError`` and its subclasses are raised for mistakes made while
  *defining* or *loading* flows (a non-callable step, a broken config file,
  a module that cannot be imported). They carry an ``ErrorCode``, an
  ``ErrorContext`` and actionable suggestions.
- ``FailureKind`` classifies failures that happen while a flow *runs*.
  Those never travel as exceptions: the engine turns them into
  ``StepResult`` values carrying diagnostic text.

Example:
    try:
        transition("not callable")
    except StepDefinitionError as e:
        print(f"Error [{e.error_code.value}]: {e.message}")
        for suggestion in e.suggestions:
            print(f"  - {suggestion}")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


DOCS_BASE_URL = "https://stepflow.readthedocs.io/en/latest"


class ErrorCode(Enum):
    """Standardized error codes for stepflow.

    Error codes are organized by category:
    - E2xx: Definition and configuration errors
    - E4xx: Flow execution failures
    - E5xx: Retry failures
    - E9xx: Unknown/internal errors
    """

    # Definition and configuration errors (E2xx)
    INVALID_CONFIG = "E202"
    INVALID_FLOW = "E203"
    INVALID_STEP = "E204"
    FLOW_LOAD_FAILED = "E205"

    # Flow execution failures (E4xx)
    ASSERTION_FAILED = "E401"
    INVALID_WORLD = "E402"
    ACTION_EXCEPTION = "E403"

    # Retry failures (E5xx)
    RETRY_EXHAUSTED = "E502"

    # Unknown/internal errors (E9xx)
    UNKNOWN = "E999"


class FailureKind(Enum):
    """Categories of failures captured while a flow runs.

    Attributes:
        ASSERTION_FAILED: A check evaluated to a falsy value or raised
            ``AssertionError``.
        INVALID_WORLD: A transition or query returned something that is not
            a world.
        ACTION_EXCEPTION: A step's action raised an unexpected exception.
        RETRY_EXHAUSTED: A retry group never succeeded within its budget.
            The diagnostic is the last attempt's own.
    """

    ASSERTION_FAILED = "assertion_failed"
    INVALID_WORLD = "invalid_world"
    ACTION_EXCEPTION = "action_exception"
    RETRY_EXHAUSTED = "retry_exhausted"

    @property
    def error_code(self) -> ErrorCode:
        return {
            FailureKind.ASSERTION_FAILED: ErrorCode.ASSERTION_FAILED,
            FailureKind.INVALID_WORLD: ErrorCode.INVALID_WORLD,
            FailureKind.ACTION_EXCEPTION: ErrorCode.ACTION_EXCEPTION,
            FailureKind.RETRY_EXHAUSTED: ErrorCode.RETRY_EXHAUSTED,
        }[self]


@dataclass
class ErrorContext:
    """Structured context for error logging and debugging.

    Attributes:
        flow_description: Description of the flow being defined or executed.
        step_description: Description of the current step.
        extra: Additional context-specific information.
        timestamp: When the error occurred.
    """

    flow_description: str | None = None
    step_description: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for serialization."""
        result = {
            "flow_description": self.flow_description,
            "step_description": self.step_description,
            "extra": self.extra,
            "timestamp": self.timestamp.isoformat(),
        }
        return {k: v for k, v in result.items() if v is not None}

    def format_location(self) -> str:
        """Format the error location as a readable string."""
        parts = []
        if self.flow_description:
            parts.append(f"flow={self.flow_description}")
        if self.step_description:
            parts.append(f"step={self.step_description}")
        return " > ".join(parts) if parts else "unknown location"


class StepflowError(Exception):
    """Base exception for all stepflow errors.

    Attributes:
        error_code: Unique ErrorCode for this error type
        message: Human-readable error description
        context: ErrorContext with execution details
        suggestions: List of actionable steps to resolve the issue
        docs_url: Link to relevant documentation
        cause: The underlying exception (if any)
    """

    error_code: ErrorCode = ErrorCode.UNKNOWN
    default_message: str = "An unexpected error occurred"
    default_suggestions: list[str] = []
    docs_path: str = "errors"

    def __init__(
        self,
        message: str | None = None,
        error_code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
        suggestions: list[str] | None = None,
        **extra_context: Any,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.error_code
        self.context = context or ErrorContext()
        self.cause = cause
        self._suggestions = suggestions

        if extra_context:
            self.context.extra.update(extra_context)

        super().__init__(self.message)

    @property
    def suggestions(self) -> list[str]:
        """Get actionable suggestions for resolving this error."""
        if self._suggestions is not None:
            return self._suggestions
        return self.default_suggestions.copy()

    @property
    def docs_url(self) -> str:
        """Get the documentation URL for this error type."""
        return f"{DOCS_BASE_URL}/{self.docs_path}"

    def __str__(self) -> str:
        parts = [f"[{self.error_code.value}] {self.message}"]

        location = self.context.format_location()
        if location != "unknown location":
            parts.append(f"at {location}")

        return " | ".join(parts)

    def format_verbose(self) -> str:
        """Format error with full details including suggestions."""
        lines = [
            f"Error [{self.error_code.value}]: {self.message}",
            "",
        ]

        location = self.context.format_location()
        if location != "unknown location":
            lines.append(f"Location: {location}")

        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            for suggestion in self.suggestions:
                lines.append(f"  - {suggestion}")

        lines.append("")
        lines.append(f"Learn more: {self.docs_url}")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_code": self.error_code.value,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "suggestions": self.suggestions,
            "docs_url": self.docs_url,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


class StepDefinitionError(StepflowError):
    """A step could not be built from what the caller supplied."""

    error_code = ErrorCode.INVALID_STEP
    default_message = "Invalid step definition"
    default_suggestions = [
        "Steps must be callables taking the world, or StepDescriptor instances",
        "Use transition(), query(), check() or fact() to build steps explicitly",
    ]
    docs_path = "errors/steps"


class FlowDefinitionError(StepflowError):
    """A flow definition is malformed."""

    error_code = ErrorCode.INVALID_FLOW
    default_message = "Invalid flow definition"
    default_suggestions = [
        "Pass the flow title as the first positional argument, followed by steps",
    ]
    docs_path = "errors/flows"


class FlowLoadError(StepflowError):
    """Flows could not be discovered or imported from a target."""

    error_code = ErrorCode.FLOW_LOAD_FAILED
    default_message = "Failed to load flows"
    default_suggestions = [
        "Check that the path exists or the module is importable",
        "Flows must be module-level Flow objects created with flow()",
    ]
    docs_path = "errors/loading"


class ConfigError(StepflowError):
    """Configuration could not be loaded or validated."""

    error_code = ErrorCode.INVALID_CONFIG
    default_message = "Invalid configuration"
    default_suggestions = [
        "Check stepflow.yaml for typos and value types",
        "STEPFLOW_PROBE_SLEEP_MS must be greater than zero",
    ]
    docs_path = "errors/config"
