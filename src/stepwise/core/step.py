"""
Stepwise Core - Step
Purpose: Named, reusable, asynchronous transformation producing a Result

A Step wraps ``async fn(value, context) -> Result``. Steps hold no mutable
state, so one Step value can be run concurrently with different inputs.
Every combinator returns a new Step.

Usage:
    upper = Step.lift(str.upper, label="upper")
    shout = upper.then(Step.lift(lambda s: s + "!")).named("shout")
    result = await shout.run("hello")        # Success(value='HELLO!')

    flaky = fetch_step.with_retry(RetryPolicy(max_attempts=3)).with_timeout(30)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, FrozenSet, Generic, Optional, Sequence, TypeVar, Union

from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_exponential

from .context import ExecutionContext
from .errors import (
    ErrorKind,
    StepError,
    adapter_error,
    cancellation_error,
    composition_error,
    timeout_error,
)
from .result import Failure, Result, Success

logger = logging.getLogger(__name__)

I = TypeVar("I")
O = TypeVar("O")
P = TypeVar("P")

StepFn = Callable[[Any, ExecutionContext], Awaitable[Result[Any, StepError]]]


# ============================================================================
# RETRY POLICY
# ============================================================================


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff.

    Attributes:
        max_attempts: Total attempts including the first one
        initial_delay: Delay in seconds before the second attempt
        multiplier: Growth factor applied per further attempt
        max_delay: Upper bound for a single delay
        retry_on: Error kinds that are worth another attempt
    """

    max_attempts: int = 3
    initial_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 10.0
    retry_on: FrozenSet[ErrorKind] = field(
        default_factory=lambda: frozenset({ErrorKind.ADAPTER, ErrorKind.TIMEOUT})
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")


# ============================================================================
# STEP
# ============================================================================


class Step(Generic[I, O]):
    """A named asynchronous transformation from ``I`` to ``Result[O, StepError]``.

    Only explicitly labelled steps (``label=`` or ``named()``) stamp their
    label onto failures, and only onto failures that carry no label yet, so
    the innermost labelled producer of a failure is the one reported.
    """

    __slots__ = ("_fn", "_label", "_name")

    def __init__(self, fn: StepFn, label: Optional[str] = None, name: Optional[str] = None):
        self._fn = fn
        self._label = label
        self._name = name or label or getattr(fn, "__name__", "step")

    @property
    def label(self) -> str:
        return self._label or self._name

    def __repr__(self) -> str:
        return f"Step({self.label!r})"

    def _stamp(self, error: StepError) -> StepError:
        """Attach the explicit label, if any"""
        if self._label is None:
            return error
        return error.with_label(self._label)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, value: I, context: Optional[ExecutionContext] = None) -> Result[O, StepError]:
        """Run the step; never raises except for ``asyncio.CancelledError``"""
        if context is None:
            context = ExecutionContext.default()

        if context.cancelled:
            return Failure(self._stamp(cancellation_error()))

        try:
            result = await self._fn(value, context)
        except Exception as e:
            logger.exception(f"Step '{self.label}' raised instead of returning a failure: {e}")
            result = Failure(adapter_error(str(e) or type(e).__name__))

        if result.is_success and context.cancelled:
            result = Failure(self._stamp(cancellation_error()))

        if result.is_failure and self._label is not None and isinstance(result.error, StepError):
            if result.error.label is None:
                result = Failure(result.error.with_label(self._label))
                logger.debug(f"Step '{self._label}' failed: {result.error}")

        return result

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @staticmethod
    def lift(fn: Callable[[I], O], label: Optional[str] = None) -> Step[I, O]:
        """Turn a pure function into a step that always succeeds"""

        async def _lifted(value: I, context: ExecutionContext) -> Result[O, StepError]:
            return Success(fn(value))

        return Step(_lifted, label=label, name=getattr(fn, "__name__", "lift"))

    @staticmethod
    def identity() -> Step[I, I]:
        async def _identity(value: I, context: ExecutionContext) -> Result[I, StepError]:
            return Success(value)

        return Step(_identity, name="identity")

    @staticmethod
    def constant(value: O) -> Step[Any, O]:
        """Ignore the input and succeed with ``value``"""

        async def _constant(_: Any, context: ExecutionContext) -> Result[O, StepError]:
            return Success(value)

        return Step(_constant, name=f"constant({value!r})")

    @staticmethod
    def fan_out(*steps: Step[I, Any]) -> Step[I, tuple]:
        return fan_out(*steps)

    # ------------------------------------------------------------------
    # Combinators
    # ------------------------------------------------------------------

    def named(self, label: str) -> Step[I, O]:
        """Relabel; an inner explicit label still takes precedence on failures"""
        inner = self

        async def _named(value: I, context: ExecutionContext) -> Result[O, StepError]:
            return await inner.run(value, context)

        return Step(_named, label=label)


    def then(self, next_step: Step[O, P]) -> Step[I, P]:
        """Sequential composition; ``next_step`` runs only on success"""
        first = self

        async def _sequence(value: I, context: ExecutionContext) -> Result[P, StepError]:
            result = await first.run(value, context)
            if result.is_failure:
                return result
            return await next_step.run(result.value, context)

        return Step(_sequence, name=f"{first.label} >> {next_step.label}")

    def map(self, fn: Callable[[O], P]) -> Step[I, P]:
        inner = self

        async def _mapped(value: I, context: ExecutionContext) -> Result[P, StepError]:
            result = await inner.run(value, context)
            return result.map(fn)

        return Step(_mapped, name=inner.label)

    def parallel(self, other: Step[Any, P]) -> Step[tuple, tuple]:
        """Run ``self`` and ``other`` concurrently on the two items of a pair"""
        left = self

        async def _parallel(pair: Any, context: ExecutionContext) -> Result[tuple, StepError]:
            if not isinstance(pair, (tuple, list)) or len(pair) != 2:
                return Failure(
                    composition_error(
                        f"parallel expects a pair of inputs, got {type(pair).__name__}"
                    )
                )
            left_input, right_input = pair
            results = await asyncio.gather(
                left.run(left_input, context), other.run(right_input, context)
            )
            return _combine(results)

        return Step(_parallel, name=f"{left.label} & {other.label}")

    def with_retry(self, policy: Union[RetryPolicy, int]) -> Step[I, O]:
        """Re-run on retryable failures; surfaces the last failure when exhausted"""
        if isinstance(policy, int):
            policy = RetryPolicy(max_attempts=policy)
        inner = self

        async def _retrying(value: I, context: ExecutionContext) -> Result[O, StepError]:
            def _should_retry(result: Result[O, StepError]) -> bool:
                if result.is_success or context.cancelled:
                    return False
                return getattr(result.error, "kind", None) in policy.retry_on

            def _log_retry(retry_state) -> None:
                failed = retry_state.outcome.result()
                logger.warning(
                    f"Step '{inner.label}' attempt {retry_state.attempt_number}/"
                    f"{policy.max_attempts} failed: {failed.error}"
                )

            async def _backoff(delay: float) -> None:
                # Cancellation cuts the wait short; the next attempt then reports it
                cancelled = asyncio.ensure_future(context.token.wait())
                try:
                    await asyncio.wait({cancelled}, timeout=delay)
                finally:
                    cancelled.cancel()

            retrying = AsyncRetrying(
                sleep=_backoff,
                stop=stop_after_attempt(policy.max_attempts),
                wait=wait_exponential(
                    multiplier=policy.initial_delay,
                    exp_base=policy.multiplier,
                    max=policy.max_delay,
                ),
                retry=retry_if_result(_should_retry),
                before_sleep=_log_retry,
                retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            )
            return await retrying(inner.run, value, context)

        return Step(_retrying, name=inner.label)

    def with_fallback(self, alternative: Step[I, O]) -> Step[I, O]:
        primary = self

        async def _fallback(value: I, context: ExecutionContext) -> Result[O, StepError]:
            result = await primary.run(value, context)
            if result.is_success or getattr(result.error, "kind", None) == ErrorKind.CANCELLED:
                return result
            logger.info(
                f"Step '{primary.label}' failed ({result.error}); "
                f"falling back to '{alternative.label}'"
            )
            return await alternative.run(value, context)

        return Step(_fallback, name=f"{primary.label} | {alternative.label}")

    def with_timeout(self, seconds: float) -> Step[I, O]:
        """Fail with a timeout if the step does not finish in ``seconds``"""
        inner = self

        async def _timed(value: I, context: ExecutionContext) -> Result[O, StepError]:
            try:
                return await asyncio.wait_for(inner.run(value, context), timeout=seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Step '{inner.label}' timed out after {seconds}s")
                return Failure(inner._stamp(timeout_error(f"did not complete within {seconds}s")))

        return Step(_timed, name=inner.label)


# ============================================================================
# MODULE-LEVEL COMBINATORS
# ============================================================================


def fan_out(*steps: Step[I, Any]) -> Step[I, tuple]:
    """Run every step concurrently on the same input.

    Succeeds with a tuple of outputs in declaration order, otherwise fails
    with the first failure in declaration order (not completion order).
    """
    if not steps:
        raise ValueError("fan_out requires at least one step")

    async def _fan_out(value: I, context: ExecutionContext) -> Result[tuple, StepError]:
        results = await asyncio.gather(*(step.run(value, context) for step in steps))
        return _combine(results)

    return Step(_fan_out, name=" & ".join(step.label for step in steps))


def _combine(results: Sequence[Result[Any, StepError]]) -> Result[tuple, StepError]:
    for result in results:
        if result.is_failure:
            return result
    return Success(tuple(result.value for result in results))
