"""Observability for stepflow: structured event logging."""

from stepflow.observability.logging import (
    BoundLogger,
    HumanReadableFormatter,
    StructuredFormatter,
    StructuredLogger,
    configure_logging,
    get_context,
    get_logger,
    log_context,
)

__all__ = [
    "BoundLogger",
    "HumanReadableFormatter",
    "StructuredFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_context",
    "get_logger",
    "log_context",
]
