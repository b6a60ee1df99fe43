"""Output sinks and result records for flow runs."""

from stepflow.reporting.console import ConsoleSink, NullSink
from stepflow.reporting.results import CheckRecord, InMemoryResultStore, ResultStore

__all__ = [
    "CheckRecord",
    "ConsoleSink",
    "InMemoryResultStore",
    "NullSink",
    "ResultStore",
]
