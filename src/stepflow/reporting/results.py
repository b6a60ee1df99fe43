"""Check-result records for external reporting.

Every finished flow is recorded as a ``CheckRecord``. The flow runner then
patches the last record with the flow's correlation id so a reported check
can be traced back to the log lines of the run that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@dataclass
class CheckRecord:
    """One recorded check result.

    Attributes:
        description: What was checked (for flows, the flow description).
        passed: Whether the check passed.
        metadata: Free-form metadata; the flow runner adds ``flow/cid``.
        recorded_at: When the record was created.
    """

    description: str
    passed: bool
    metadata: dict[str, Any] = field(default_factory=dict)
    recorded_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "passed": self.passed,
            "metadata": dict(self.metadata),
            "recorded_at": self.recorded_at.isoformat(),
        }


@runtime_checkable
class ResultStore(Protocol):
    """Interface of a check-result backend."""

    def record(self, record: CheckRecord) -> None: ...

    def last(self) -> CheckRecord | None: ...

    def patch_last(self, metadata: dict[str, Any]) -> CheckRecord | None: ...


class InMemoryResultStore:
    """Keeps check records in a list for the lifetime of the process."""

    def __init__(self) -> None:
        self._records: list[CheckRecord] = []

    def record(self, record: CheckRecord) -> None:
        self._records.append(record)

    def last(self) -> CheckRecord | None:
        return self._records[-1] if self._records else None

    def patch_last(self, metadata: dict[str, Any]) -> CheckRecord | None:
        """Merge ``metadata`` into the most recent record.

        Returns the patched record, or None when nothing was recorded yet.
        """
        last = self.last()
        if last is not None:
            last.metadata.update(metadata)
        return last

    @property
    def records(self) -> list[CheckRecord]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
