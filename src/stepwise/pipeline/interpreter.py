"""
Stepwise Pipeline - Interpreter
Purpose: Turn a PipelineSpec into a single Step[str, str]

Data flows between invocations as an immutable ``Frame``: the current value
plus the outputs bound so far with ``as name``. Arguments referencing
``$name`` are resolved from the frame when the invocation runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Sequence, Tuple

from stepwise.adapters.base import require_text
from stepwise.adapters.capabilities import CapabilityCatalog
from stepwise.core.context import ExecutionContext
from stepwise.core.errors import StepError, StepwiseError
from stepwise.core.result import Failure, Result, Success
from stepwise.core.step import Step, fan_out
from stepwise.pipeline.models import Invocation, Modifiers, PipelineSpec, Stage
from stepwise.pipeline.parser import INPUT_BINDING, compile, describe
from stepwise.utils.logging_config import set_run_context

logger = logging.getLogger(__name__)

PARALLEL_SEPARATOR = "\n"


class PipelineError(StepwiseError):
    """Raised when a spec cannot be turned into a Step with a given catalog"""

    pass


@dataclass(frozen=True)
class Frame:
    """Value flowing through a pipeline plus the outputs bound so far"""

    value: str
    bindings: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def start(cls, value: str) -> Frame:
        return cls(value=value, bindings=MappingProxyType({INPUT_BINDING: value}))

    def advance(self, value: str, binding: Optional[str] = None) -> Frame:
        if binding is None:
            return Frame(value=value, bindings=self.bindings)
        return Frame(value=value, bindings=MappingProxyType({**self.bindings, binding: value}))


@dataclass(frozen=True)
class InvocationEvent:
    """Reported to the observer after each invocation finishes"""

    index: int
    invocation: Invocation
    label: str
    result: Result[str, StepError]


Observer = Callable[[InvocationEvent], None]


def invocation_label(invocation: Invocation, index: int) -> str:
    return f"{invocation.capability}#{index}"


def apply_modifiers(step: Step[str, str], modifiers: Modifiers) -> Step[str, str]:
    """Timeout bounds each attempt; retry wraps the timed step"""
    if modifiers.timeout is not None:
        step = step.with_timeout(modifiers.timeout)
    if modifiers.retry is not None:
        step = step.with_retry(modifiers.retry)
    return step


def _invocation_step(
    invocation: Invocation,
    index: int,
    catalog: CapabilityCatalog,
    observer: Optional[Observer],
) -> Step[Frame, Frame]:
    label = invocation_label(invocation, index)

    async def _invoke(frame: Frame, context: ExecutionContext) -> Result[Frame, StepError]:
        args = tuple(
            frame.bindings[arg.value] if arg.is_reference else arg.value for arg in invocation.args
        )
        step = apply_modifiers(catalog.build(invocation.capability, args), invocation.modifiers)

        set_run_context(step_label=label)
        logger.debug(f"Running {label}")
        result = await step.named(label).run(frame.value, context)

        if observer is not None:
            observer(InvocationEvent(index, invocation, label, result))
        return result.map(lambda output: frame.advance(output, invocation.binding))

    return Step(_invoke, name=label)


def _merge_frames(frame: Frame, branches: Sequence[Invocation], outputs: Tuple[Frame, ...]) -> Frame:
    bindings = dict(frame.bindings)
    for invocation, output in zip(branches, outputs):
        if invocation.binding:
            bindings[invocation.binding] = output.value
    value = PARALLEL_SEPARATOR.join(output.value for output in outputs)
    return Frame(value=value, bindings=MappingProxyType(bindings))


def _stage_step(
    stage: Stage,
    first_index: int,
    catalog: CapabilityCatalog,
    observer: Optional[Observer],
) -> Step[Frame, Frame]:
    steps = [
        _invocation_step(invocation, first_index + offset, catalog, observer)
        for offset, invocation in enumerate(stage.invocations)
    ]
    if not stage.is_parallel:
        return steps[0]

    branches = fan_out(*steps)

    async def _parallel(frame: Frame, context: ExecutionContext) -> Result[Frame, StepError]:
        result = await branches.run(frame, context)
        return result.map(lambda outputs: _merge_frames(frame, stage.invocations, outputs))

    return Step(_parallel, name=branches.label)


def to_step(
    spec: PipelineSpec,
    catalog: CapabilityCatalog,
    observer: Optional[Observer] = None,
) -> Step[str, str]:
    """
    Compose a compiled pipeline into one Step.

    Stages run in order; a parallel stage fans the same frame out to its
    invocations and joins their outputs with newlines. Each invocation's
    Step is labelled "<capability>#<index>" (1-based across the pipeline).

    Raises:
        PipelineError: If the spec names a capability missing from ``catalog``
    """
    missing = sorted(
        {inv.capability for _, inv in spec.invocations() if inv.capability not in catalog}
    )
    if missing:
        raise PipelineError(f"Capabilities not in catalog: {', '.join(missing)}")

    stage_steps = []
    index = 1
    for stage in spec.stages:
        stage_steps.append(_stage_step(stage, index, catalog, observer))
        index += len(stage.invocations)

    async def _start(value: str, context: ExecutionContext) -> Result[Frame, StepError]:
        return Success(Frame.start(value if value is not None else ""))

    pipeline: Step = Step(_start, name="pipeline")
    for stage_step in stage_steps:
        pipeline = pipeline.then(stage_step)

    return pipeline.map(lambda frame: frame.value)


def description_step(catalog: CapabilityCatalog, initial_input: str = "") -> Step[str, str]:
    """
    Step that compiles its input as a pipeline description and runs it.

    The compiled pipeline starts from ``initial_input`` and shares the
    caller's execution context, so cancellation reaches nested invocations.
    """

    async def _run_description(dsl: str, context: ExecutionContext) -> Result[str, StepError]:
        error = require_text(dsl, "Usage: pipeline <step1> -> <step2> -> ...")
        if error:
            return Failure(error)

        compiled = compile(dsl, catalog)
        if compiled.is_failure:
            return compiled
        logger.info(f"Running pipeline: {describe(compiled.value)}")
        return await to_step(compiled.value, catalog).run(initial_input, context)

    return Step(_run_description, name="runPipeline")
