"""Text formatting for captured failures."""

from __future__ import annotations

import traceback


class StackTraceFilter:
    """Hides stepflow's own frames from captured stack traces.

    Traces captured by the step runner start inside the engine; the frames a
    user cares about are the ones from their step functions.
    """

    FRAMEWORK_PATTERNS = [
        "stepflow/engine",
        "stepflow/steps",
        "<frozen",
    ]

    @classmethod
    def filter_traceback(cls, tb: str, show_framework: bool = False) -> str:
        """Drop framework ``File`` entries (and their source line) from ``tb``."""
        if show_framework:
            return tb

        filtered: list[str] = []
        in_hidden_frame = False

        for line in tb.split("\n"):
            if line.strip().startswith("File "):
                in_hidden_frame = any(p in line for p in cls.FRAMEWORK_PATTERNS)
                if not in_hidden_frame:
                    filtered.append(line)
            elif in_hidden_frame and line.startswith("    "):
                # source line and caret markers of a hidden frame
                continue
            else:
                in_hidden_frame = False
                filtered.append(line)

        return "\n".join(filtered)


def format_exception(exception: BaseException, show_framework: bool = False) -> str:
    """Render an exception with its full stack trace."""
    text = "".join(
        traceback.format_exception(type(exception), exception, exception.__traceback__)
    )
    return StackTraceFilter.filter_traceback(text, show_framework=show_framework)


def format_expr(description: str, source: str | None = None) -> str:
    """Quote a step expression, adding its source location when known."""
    location = f" (at {source})" if source else ""
    return f"'{description}'{location}"


def fail_message(expr: str, details: str, *failure_messages: object) -> str:
    """Build the diagnostic text for a failed step."""
    return f"  Step {expr} {details} " + "".join(str(m) for m in failure_messages)
