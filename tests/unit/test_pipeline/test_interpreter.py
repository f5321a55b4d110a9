"""Unit tests for the pipeline interpreter.

Tests cover:
- Sequential execution and piping of values
- Argument binding ($name references, $input)
- Parallel stages (fan-out and newline join)
- Failure localisation via "<capability>#<index>" labels and short-circuit
- Modifiers (retry, timeout)
- Observer notifications
- description_step (compile + run)
"""

import asyncio

import pytest

from stepwise.adapters.capabilities import CapabilityCatalog, with_input
from stepwise.core.context import ExecutionContext
from stepwise.core.errors import ErrorKind, adapter_error
from stepwise.core.result import Failure, Success
from stepwise.core.step import Step
from stepwise.pipeline.interpreter import (
    Frame,
    PipelineError,
    description_step,
    to_step,
)
from stepwise.pipeline.parser import compile


class Recorder:
    """Catalog whose capabilities record what they receive."""

    def __init__(self):
        self.calls = []
        self.flaky_failures = 0
        self.catalog = CapabilityCatalog()
        self.catalog.register("upper", self._simple("upper", str.upper))
        self.catalog.register("exclaim", self._simple("exclaim", lambda s: s + "!"))
        self.catalog.register("echo", self._simple("echo", lambda s: s))
        self.catalog.register("fail", self._failing)
        self.catalog.register("flaky", self._flaky)
        self.catalog.register("slow", self._slow)
        self.catalog.register("pair", self._pair, max_args=2)

    def _simple(self, name, fn):
        def factory(args):
            async def _run(value, context):
                self.calls.append((name, value))
                return Success(fn(value))

            return with_input(Step(_run, name=name), args)

        return factory

    def _failing(self, args):
        async def _run(value, context):
            self.calls.append(("fail", value))
            return Failure(adapter_error("capability broke"))

        return Step(_run, name="fail")

    def _flaky(self, args):
        async def _run(value, context):
            self.calls.append(("flaky", value))
            if self.flaky_failures > 0:
                self.flaky_failures -= 1
                return Failure(adapter_error("try again"))
            return Success("steady")

        return Step(_run, name="flaky")

    def _slow(self, args):
        async def _run(value, context):
            await asyncio.sleep(1.0)
            return Success(value)

        return Step(_run, name="slow")

    def _pair(self, args):
        async def _run(value, context):
            self.calls.append(("pair", value))
            return Success(f"{args[0]}={value}")

        return with_input(Step(_run, name="pair"), args, position=1)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


def build(recorder: Recorder, description: str, observer=None) -> Step:
    spec = compile(description, recorder.catalog).value
    return to_step(spec, recorder.catalog, observer=observer)


# =============================================================================
# SEQUENTIAL
# =============================================================================


class TestSequential:
    """Stages chained with then()."""

    async def test_pipes_output_to_next_stage(self, recorder):
        result = await build(recorder, "upper -> exclaim").run("hi")

        assert result == Success("HI!")
        assert recorder.calls == [("upper", "hi"), ("exclaim", "HI")]

    async def test_literal_argument_replaces_input(self, recorder):
        result = await build(recorder, "upper('abc') -> exclaim").run("ignored")
        assert result == Success("ABC!")

    async def test_references(self, recorder):
        pipeline = build(recorder, "upper('a') as first -> exclaim('b') -> pair('k', $first)")
        result = await pipeline.run("")
        assert result == Success("k=A")

    async def test_input_reference(self, recorder):
        result = await build(recorder, "upper('x') -> echo($input)").run("original")
        assert result == Success("original")

    async def test_none_input_starts_empty(self, recorder):
        result = await build(recorder, "echo").run(None)
        assert result == Success("")


# =============================================================================
# FAILURES
# =============================================================================


class TestFailures:
    """Failure localisation and short-circuit."""

    async def test_failure_labelled_with_capability_and_index(self, recorder):
        result = await build(recorder, "upper -> fail -> exclaim").run("x")

        assert result.error.kind == ErrorKind.ADAPTER
        assert result.error.label == "fail#2"
        assert result.error.message == "capability broke"

    async def test_later_stages_not_run(self, recorder):
        await build(recorder, "upper -> fail -> exclaim").run("x")
        assert [name for name, _ in recorder.calls] == ["upper", "fail"]

    async def test_unknown_capability_is_programming_error(self, recorder):
        spec = compile("upper -> missing").value
        with pytest.raises(PipelineError):
            to_step(spec, recorder.catalog)

    async def test_cancellation_stops_pipeline(self, recorder):
        context = ExecutionContext.default()
        context.cancel()

        result = await build(recorder, "upper -> exclaim").run("x", context)

        assert result.error.kind == ErrorKind.CANCELLED
        assert recorder.calls == []


# =============================================================================
# PARALLEL STAGES
# =============================================================================


class TestParallelStages:
    """Parallel stages fan out and join with newlines."""

    async def test_outputs_joined_in_declaration_order(self, recorder):
        result = await build(recorder, "[upper & exclaim] -> echo").run("ab")
        assert result == Success("AB\nab!")

    async def test_branch_bindings_available_later(self, recorder):
        pipeline = build(recorder, "[upper as u & exclaim as e] -> pair('u', $u) -> pair('e', $e)")
        result = await pipeline.run("q")
        assert result == Success("e=q!")

    async def test_branch_failure_labelled(self, recorder):
        result = await build(recorder, "upper -> [echo & fail]").run("x")
        assert result.error.label == "fail#3"


# =============================================================================
# MODIFIERS
# =============================================================================


class TestModifiers:
    """retry= and timeout= keyword arguments."""

    async def test_retry_modifier(self, recorder):
        recorder.flaky_failures = 1
        result = await build(recorder, "flaky(retry=2)").run("x")

        assert result == Success("steady")
        assert [name for name, _ in recorder.calls] == ["flaky", "flaky"]

    async def test_without_retry_fails_once(self, recorder):
        recorder.flaky_failures = 1
        result = await build(recorder, "flaky").run("x")
        assert result.error.label == "flaky#1"

    async def test_timeout_modifier(self, recorder):
        result = await build(recorder, "upper -> slow(timeout=0.05)").run("x")

        assert result.error.kind == ErrorKind.TIMEOUT
        assert result.error.label == "slow#2"


# =============================================================================
# OBSERVER / FRAME
# =============================================================================


class TestObserver:
    """The observer sees every finished invocation."""

    async def test_events(self, recorder):
        events = []
        await build(recorder, "upper -> exclaim -> fail", observer=events.append).run("a")

        assert [(e.index, e.label, e.result.is_success) for e in events] == [
            (1, "upper#1", True),
            (2, "exclaim#2", True),
            (3, "fail#3", False),
        ]
        assert events[1].result == Success("A!")


class TestFrame:
    """Tests for the immutable frame."""

    def test_start_binds_input(self):
        frame = Frame.start("hello")
        assert frame.bindings["input"] == "hello"

    def test_advance_does_not_mutate(self):
        frame = Frame.start("a")
        later = frame.advance("b", "name")

        assert later.bindings["name"] == "b"
        assert "name" not in frame.bindings
        assert frame.value == "a"


# =============================================================================
# DESCRIPTION STEP
# =============================================================================


class TestDescriptionStep:
    """Compile-and-run step used for runPipeline."""

    async def test_runs_with_empty_input(self, recorder):
        result = await description_step(recorder.catalog).run("echo -> exclaim")
        assert result == Success("!")

    async def test_parse_failure_runs_nothing(self, recorder):
        result = await description_step(recorder.catalog).run("upper(' unterminated")

        assert result.error.kind == ErrorKind.PARSE
        assert recorder.calls == []

    async def test_blank_description(self, recorder):
        result = await description_step(recorder.catalog).run("  ")
        assert result.error.kind == ErrorKind.VALIDATION
