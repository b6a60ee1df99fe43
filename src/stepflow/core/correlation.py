"""Correlation ids for tying log lines to a flow and its steps.

A correlation id (CID) is a dot-separated path of segments. Each flow run
gets a parent CID, and every step and retry attempt splits a child from its
parent by appending a random segment::

    FLOW.K3X9Q            <- the flow
    FLOW.K3X9Q.8TZ1M      <- a step of that flow
    FLOW.K3X9Q.8TZ1M.Q0P2A  <- one retry attempt inside that step

CIDs are values passed explicitly down the call chain; nothing reads them
from ambient state and no control flow depends on them.
"""

from __future__ import annotations

import random
import string
from dataclasses import dataclass

_ALPHABET = string.ascii_uppercase + string.digits
SEGMENT_LENGTH = 5
SEPARATOR = "."


def _segment(rng: random.Random | None = None) -> str:
    choice = (rng or random).choice
    return "".join(choice(_ALPHABET) for _ in range(SEGMENT_LENGTH))


@dataclass(frozen=True)
class CorrelationId:
    """An immutable correlation id.

    Example:
        >>> cid = CorrelationId.new("FLOW")
        >>> step_cid = cid.split()
        >>> step_cid.parent == cid
        True
    """

    value: str

    @classmethod
    def new(cls, prefix: str = "DEFAULT", rng: random.Random | None = None) -> CorrelationId:
        """Start a fresh CID rooted at ``prefix``."""
        return cls(f"{prefix}{SEPARATOR}{_segment(rng)}")

    @classmethod
    def parse(cls, value: str) -> CorrelationId:
        if not value or any(not part for part in value.split(SEPARATOR)):
            raise ValueError(f"Malformed correlation id: {value!r}")
        return cls(value)

    def split(self, rng: random.Random | None = None) -> CorrelationId:
        """Derive a child CID."""
        return CorrelationId(f"{self.value}{SEPARATOR}{_segment(rng)}")

    @property
    def parent(self) -> CorrelationId | None:
        head, sep, _ = self.value.rpartition(SEPARATOR)
        return CorrelationId(head) if sep else None

    @property
    def depth(self) -> int:
        return self.value.count(SEPARATOR) + 1

    def is_descendant_of(self, other: CorrelationId) -> bool:
        return self.value.startswith(other.value + SEPARATOR)

    def __str__(self) -> str:
        return self.value
