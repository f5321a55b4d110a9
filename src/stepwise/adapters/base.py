"""
Stepwise Adapters - Base
Purpose: Collaborator contracts and conversion of native outcomes to Results

Every collaborator method may be sync or async and may return a plain value,
a ``Result`` or raise. ``invoke_collaborator`` normalizes all of these into a
``Result[str, StepError]`` and observes the context's cancellation signal
while the collaborator is running.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from stepwise.core.context import ExecutionContext
from stepwise.core.errors import StepError, adapter_error, cancellation_error, validation_error
from stepwise.core.result import Failure, Result, Success

logger = logging.getLogger(__name__)


# ============================================================================
# COLLABORATOR PROTOCOLS
# ============================================================================


class Answerer(Protocol):
    """Answers a natural-language question"""

    def answer(self, question: str) -> Any:
        ...


class MeTTaEngine(Protocol):
    """Symbolic expression evaluation and query"""

    def evaluate(self, expression: str) -> Any:
        ...

    def query(self, query: str) -> Any:
        ...


class Researcher(Protocol):
    def fetch(self, topic: str) -> Any:
        ...


class MemoryStore(Protocol):
    """Session-scoped key/value memory"""

    def put(self, key: str, value: str, session: str = ...) -> Any:
        ...

    def get(self, key: str, session: str = ...) -> Any:
        ...


class SkillRunner(Protocol):
    def run(self, skill_name: str, args: str = ...) -> Any:
        ...


class ToolInvoker(Protocol):
    def invoke(self, tool_name: str, tool_input: str = ...) -> Any:
        ...


class Planner(Protocol):
    """Turns a goal into a pipeline description"""

    def plan(self, goal: str) -> Any:
        ...


class PipelineRunner(Protocol):
    """Runs a pipeline description"""

    def run(self, dsl: str) -> Any:
        ...


# ============================================================================
# OUTCOME CONVERSION
# ============================================================================


async def call_collaborator(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Call a sync or async collaborator method and return its raw outcome.

    Synchronous callables run in a worker thread so a slow collaborator
    does not hold up the event loop.
    """
    if inspect.iscoroutinefunction(fn):
        return await fn(*args, **kwargs)
    outcome = await asyncio.to_thread(fn, *args, **kwargs)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome


def to_result(
    outcome: Any, description: str = "collaborator", expects_value: bool = True
) -> Result[str, StepError]:
    """
    Convert a collaborator's return value into a Result.

    - Result: passed through; non-StepError failures become ADAPTER errors
    - None: ADAPTER failure, or an empty success when ``expects_value`` is False
    - anything else: success with its text form
    """
    if isinstance(outcome, Result):
        if outcome.is_failure:
            error = outcome.error
            return Failure(error if isinstance(error, StepError) else adapter_error(str(error)))
        outcome = outcome.value

    if outcome is None:
        if expects_value:
            return Failure(adapter_error(f"{description} returned no result"))
        return Success("")

    return Success(outcome if isinstance(outcome, str) else str(outcome))


async def invoke_collaborator(
    description: str,
    context: ExecutionContext,
    fn: Callable[..., Any],
    *args: Any,
    expects_value: bool = True,
    **kwargs: Any,
) -> Result[str, StepError]:
    """
    Run a collaborator call as a Result, racing it against cancellation.

    If the context is cancelled while the call is in flight, the call is
    cancelled and a CANCELLED failure is returned. Exceptions raised by the
    collaborator become ADAPTER failures carrying the exception message.
    Commands such as a memory write pass ``expects_value=False`` so that a
    ``None`` outcome counts as success.
    """
    work = asyncio.ensure_future(call_collaborator(fn, *args, **kwargs))
    cancel_waiter = asyncio.ensure_future(context.token.wait())

    try:
        done, _ = await asyncio.wait({work, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        cancel_waiter.cancel()

    if work not in done:
        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        logger.info(f"{description} cancelled while in flight")
        return Failure(cancellation_error(f"{description} was cancelled"))

    try:
        outcome = work.result()
    except Exception as e:
        message = str(e) or type(e).__name__
        logger.warning(f"{description} failed: {message}")
        return Failure(adapter_error(message))

    result = to_result(outcome, description, expects_value)
    if result.is_failure:
        logger.warning(f"{description} failed: {result.error.message}")
    return result


def missing_collaborator(message: str) -> Callable[[str, ExecutionContext], Awaitable[Result[str, StepError]]]:
    """Step body that always fails because a collaborator was not supplied"""

    async def _unavailable(value: str, context: ExecutionContext) -> Result[str, StepError]:
        return Failure(adapter_error(message))

    _unavailable.__name__ = "unavailable"
    return _unavailable


def require_text(value: Any, usage: str) -> Optional[StepError]:
    """VALIDATION error with a usage hint when ``value`` is blank"""
    if value is None or not str(value).strip():
        return validation_error(usage)
    return None
