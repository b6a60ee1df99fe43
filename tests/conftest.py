"""Pytest fixtures for stepflow tests."""

from __future__ import annotations

import io
import json
import uuid
from typing import Any

import pytest

from stepflow.config import FlowConfig
from stepflow.core.context import FlowContext
from stepflow.core.correlation import CorrelationId
from stepflow.engine import RetryLoop
from stepflow.observability import StructuredLogger
from stepflow.reporting import ConsoleSink, InMemoryResultStore
from stepflow.runner import FlowRunner


class FakeClock:
    """Monotonic clock in seconds that only moves when told to."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


class FakeSleep:
    """Records requested sleeps instead of blocking."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total_ms(self) -> float:
        return sum(self.calls) * 1000.0


class LogCapture:
    """A JSON structured logger writing to an in-memory stream."""

    def __init__(self) -> None:
        self.stream = io.StringIO()
        self.logger = StructuredLogger(
            name=f"stepflow.test.{uuid.uuid4().hex[:8]}",
            level="DEBUG",
            json_format=True,
            stream=self.stream,
        )

    def records(self) -> list[dict[str, Any]]:
        return [json.loads(line) for line in self.stream.getvalue().splitlines() if line.strip()]

    def events(self, tag: str) -> list[dict[str, Any]]:
        return [r for r in self.records() if r.get("data", {}).get("log") == tag]


class SinkCapture:
    """A colorless console sink writing to an in-memory buffer."""

    def __init__(self) -> None:
        self.buffer = io.StringIO()
        self.sink = ConsoleSink(file=self.buffer, color=False)

    @property
    def text(self) -> str:
        return self.buffer.getvalue()


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    """Create a fake sleep function."""
    return FakeSleep()


@pytest.fixture
def log_capture() -> LogCapture:
    """Create a logger whose JSON records can be inspected."""
    return LogCapture()


@pytest.fixture
def sink_capture() -> SinkCapture:
    """Create a sink whose output can be inspected."""
    return SinkCapture()


@pytest.fixture
def result_store() -> InMemoryResultStore:
    """Create an empty result store."""
    return InMemoryResultStore()


@pytest.fixture
def config() -> FlowConfig:
    """Default configuration, independent of the environment."""
    return FlowConfig.model_construct(
        probe_timeout_ms=300.0,
        probe_sleep_ms=10.0,
        verbose=False,
        color=False,
        log_level="DEBUG",
        json_logs=True,
    )


@pytest.fixture
def runner(
    config: FlowConfig,
    sink_capture: SinkCapture,
    log_capture: LogCapture,
    result_store: InMemoryResultStore,
    clock: FakeClock,
    fake_sleep: FakeSleep,
) -> FlowRunner:
    """Create a runner with fake time and captured output."""
    return FlowRunner(
        config=config,
        sink=sink_capture.sink,
        logger=log_capture.logger,
        result_store=result_store,
        sleep=fake_sleep,
        clock=clock,
    )


@pytest.fixture
def flow_context(
    log_capture: LogCapture,
    sink_capture: SinkCapture,
    clock: FakeClock,
    fake_sleep: FakeSleep,
) -> FlowContext:
    """Create a fresh flow context with fake time."""
    return FlowContext(
        flow_description="test flow",
        cid=CorrelationId("FLOW.TEST1"),
        logger=log_capture.logger,
        retry=RetryLoop(timeout_ms=300, sleep_ms=10, sleep=fake_sleep, clock=clock),
        sink=sink_capture.sink,
    )
