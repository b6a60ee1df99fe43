"""Tests for the step runner and sequence folding."""

from __future__ import annotations

from stepflow.core.correlation import CorrelationId
from stepflow.core.models import StepDescriptor, StepKind, StepResult
from stepflow.engine import coerce_result, group_retriable, run_sequence, run_step
from stepflow.errors import FailureKind
from stepflow.steps import check, transition


def _leaf(kind: StepKind, description: str, action) -> StepDescriptor:
    return StepDescriptor(kind=kind, description=description, action=action)


class Recorder:
    """Step action that records its calls and returns a fixed result."""

    def __init__(self, result=None) -> None:
        self.calls: list[object] = []
        self.result = result

    def __call__(self, world):
        self.calls.append(world)
        if self.result is None:
            return StepResult.success(world)
        return self.result


class TestCoerceResult:
    """Tests for coerce_result."""

    def test_step_result_passes_through(self) -> None:
        step = _leaf(StepKind.TRANSITION, "t", Recorder())
        result = StepResult.success({"a": 1})
        assert coerce_result(result, step) is result

    def test_step_result_without_description_gets_empty_text(self) -> None:
        step = _leaf(StepKind.CHECK, "c", Recorder())
        result = coerce_result(StepResult(world=None, description=None, failure=FailureKind.ASSERTION_FAILED), step)
        assert result.description == ""
        assert result.failure is FailureKind.ASSERTION_FAILED

    def test_step_result_with_non_text_description(self) -> None:
        step = _leaf(StepKind.TRANSITION, "t", Recorder())
        result = coerce_result(StepResult(world={"a": 1}, description=404), step)
        assert result.ok
        assert result.description == "404"

    def test_pair_is_accepted(self) -> None:
        step = _leaf(StepKind.TRANSITION, "t", Recorder())
        result = coerce_result(({"a": 1}, "detail"), step)
        assert result.ok
        assert result.world == {"a": 1}
        assert result.description == "detail"

    def test_pair_with_absent_world_is_failure(self) -> None:
        step = _leaf(StepKind.CHECK, "c", Recorder())
        result = coerce_result((None, "nope"), step)
        assert not result.ok
        assert result.description == "nope"

    def test_other_values_are_invalid(self) -> None:
        step = _leaf(StepKind.TRANSITION, "make world", Recorder())
        result = coerce_result(42, step)
        assert not result.ok
        assert result.failure is FailureKind.INVALID_WORLD
        assert "'make world'" in result.description
        assert "42" in result.description


class TestRunStep:
    """Tests for run_step."""

    def test_successful_step_records_world(self, flow_context) -> None:
        step = _leaf(StepKind.TRANSITION, "add a", lambda w: StepResult.success({**w, "a": 1}))
        result = run_step(flow_context, {}, step)
        assert result.world == {"a": 1}
        assert flow_context.worlds() == {"add a": {"a": 1}}

    def test_failed_step_records_none(self, flow_context) -> None:
        step = _leaf(StepKind.CHECK, "fails", lambda w: StepResult.failed("bad"))
        result = run_step(flow_context, {}, step)
        assert not result.ok
        assert flow_context.worlds() == {"fails": None}
        assert flow_context.counters.failures == 1

    def test_exception_becomes_failure(self, flow_context, log_capture) -> None:
        def explode(world):
            raise RuntimeError("kaboom")

        step = _leaf(StepKind.TRANSITION, "explode", explode)
        result = run_step(flow_context, {}, step)

        assert not result.ok
        assert result.failure is FailureKind.ACTION_EXCEPTION
        assert "'explode'" in result.description
        assert "threw exception" in result.description
        assert "RuntimeError: kaboom" in result.description
        assert "Traceback" in result.description
        assert flow_context.counters.failures == 1

        events = log_capture.events("flow/step-exception")
        assert len(events) == 1
        assert events[0]["exception"]["type"] == "RuntimeError"

    def test_passing_check_counts_a_pass(self, flow_context) -> None:
        step = _leaf(StepKind.CHECK, "ok", lambda w: StepResult.success(w))
        run_step(flow_context, {}, step)
        assert flow_context.counters.to_dict() == {"passes": 1, "failures": 0}

    def test_logs_run_step_event_with_child_cid(self, flow_context, log_capture) -> None:
        step = _leaf(StepKind.TRANSITION, "add a", lambda w: StepResult.success(w))
        run_step(flow_context, {}, step)
        events = log_capture.events("flow/run-step")
        assert len(events) == 1
        assert events[0]["data"]["step_type"] == "transition"
        assert events[0]["data"]["step_desc"] == "add a"
        cid = CorrelationId(events[0]["cid"])
        assert cid.is_descendant_of(flow_context.cid)
        assert cid.depth == flow_context.cid.depth + 1

    def test_retry_group_retries_children(self, flow_context, fake_sleep) -> None:
        attempts: list[int] = []

        def settles_on_third(world):
            attempts.append(1)
            if len(attempts) < 3:
                return StepResult.failed("not yet")
            return StepResult.success(world)

        group = group_retriable([_leaf(StepKind.CHECK, "settled", settles_on_third)])[0]
        result = run_step(flow_context, {"a": 1}, group)

        assert result.ok
        assert len(attempts) == 3
        assert len(fake_sleep.calls) == 2
        assert flow_context.counters.to_dict() == {"passes": 1, "failures": 0}

    def test_exhausted_retry_group(self, flow_context, log_capture) -> None:
        group = group_retriable([_leaf(StepKind.CHECK, "never", lambda w: StepResult.failed("still bad"))])[0]
        result = run_step(flow_context, {}, group)

        assert not result.ok
        assert result.failure is FailureKind.RETRY_EXHAUSTED
        assert result.description == "still bad"
        assert flow_context.counters.failures == 1
        assert len(log_capture.events("flow/retry")) == 30

    def test_verbose_context_writes_progress_lines(self, flow_context, sink_capture) -> None:
        flow_context.verbose = True
        step = _leaf(StepKind.TRANSITION, "add a", lambda w: StepResult.success(w))
        run_step(flow_context, {}, step)
        assert "Running transition add a" in sink_capture.text
        assert "[CID: FLOW.TEST1." in sink_capture.text

    def test_quiet_context_writes_nothing(self, flow_context, sink_capture) -> None:
        step = _leaf(StepKind.TRANSITION, "add a", lambda w: StepResult.success(w))
        run_step(flow_context, {}, step)
        assert sink_capture.text == ""


class TestRunSequence:
    """Tests for run_sequence."""

    def test_threads_world_through_steps(self, flow_context) -> None:
        steps = [
            transition(lambda w: {**w, "a": 1}, description="add a"),
            transition(lambda w: {**w, "b": w["a"] + 1}, description="add b"),
        ]
        result = run_sequence(flow_context, {}, steps)
        assert result.ok
        assert result.world == {"a": 1, "b": 2}

    def test_empty_sequence_returns_seed(self, flow_context) -> None:
        result = run_sequence(flow_context, {"seed": True}, [])
        assert result.ok
        assert result.world == {"seed": True}
        assert result.description == ""

    def test_stops_at_first_failure(self, flow_context) -> None:
        first = Recorder()
        failing = Recorder(StepResult.failed("second failed"))
        never = Recorder()
        steps = [
            _leaf(StepKind.TRANSITION, "first", first),
            _leaf(StepKind.TRANSITION, "second", failing),
            _leaf(StepKind.TRANSITION, "third", never),
        ]
        result = run_sequence(flow_context, {}, steps)

        assert not result.ok
        assert result.description == "second failed"
        assert len(first.calls) == 1
        assert len(failing.calls) == 1
        assert never.calls == []
        assert list(flow_context.worlds()) == ["first", "second"]

    def test_check_passes_world_through(self, flow_context) -> None:
        steps = [
            transition(lambda w: {"count": 1}, description="set count"),
            check(lambda w: w["count"] == 1, description="count is one"),
        ]
        result = run_sequence(flow_context, {}, steps)
        assert result.ok
        assert result.world == {"count": 1}
