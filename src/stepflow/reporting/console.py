"""Human-readable output sink for flow runs."""

from __future__ import annotations

import os
import sys
from typing import TextIO


class ConsoleSink:
    """Writes flow progress and failure diagnostics to a text stream.

    Progress lines are padded so the ``[CID: ...]`` tags line up in a
    terminal. Failure diagnostics are written verbatim, in yellow when color
    is enabled.

    Example::

        sink = ConsoleSink()
        sink.line("Running flow: checkout", "FLOW.K3X9Q")

        # Capture output instead of printing
        buffer = io.StringIO()
        sink = ConsoleSink(file=buffer, color=False)
    """

    YELLOW = "\033[0;33m"
    RESET = "\033[0m"

    LINE_WIDTH = 70

    def __init__(self, file: TextIO | None = None, color: bool = True) -> None:
        """Initialize the sink.

        Args:
            file: Output stream (default: stdout, resolved at write time).
            color: Whether to use ANSI colors. Ignored when NO_COLOR is set.
        """
        self._file = file
        self.color = color and not os.environ.get("NO_COLOR")

    @property
    def file(self) -> TextIO:
        return self._file or sys.stdout

    def _c(self, text: str, code: str) -> str:
        if self.color:
            return f"{code}{text}{self.RESET}"
        return text

    def write(self, text: str) -> None:
        self.file.write(text)
        self.file.flush()

    def line(self, message: str, cid: object = None) -> None:
        """Write one progress line, tagged with ``cid`` when given."""
        if cid is None:
            self.write(f"{message}\n")
        else:
            self.write(f"{message:<{self.LINE_WIDTH}}\t\t\t[CID: {cid}]\n")

    def failure(self, diagnostic: str) -> None:
        """Write the diagnostic text of a failed flow."""
        text = diagnostic if diagnostic.endswith("\n") else f"{diagnostic}\n"
        self.write(self._c(text, self.YELLOW))


class NullSink(ConsoleSink):
    """A sink that discards everything."""

    def write(self, text: str) -> None:
        return None
