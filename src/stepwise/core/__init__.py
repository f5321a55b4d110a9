"""
Stepwise Core

Result values, error kinds, execution context and the Step abstraction that
every capability, pipeline and plan is built from.

Usage:
    from stepwise.core import Step, RetryPolicy, ExecutionContext

    step = Step.lift(str.strip).then(Step.lift(str.upper)).named("normalize")
    result = await step.run("  hello ", ExecutionContext.default())
"""

from .context import CancellationToken, ExecutionContext
from .errors import (
    ErrorKind,
    StepError,
    StepwiseError,
    adapter_error,
    cancellation_error,
    composition_error,
    parse_error,
    timeout_error,
    validation_error,
)
from .result import Failure, Result, Success
from .step import RetryPolicy, Step, fan_out

__all__ = [
    # Result
    "Result",
    "Success",
    "Failure",
    # Errors
    "ErrorKind",
    "StepError",
    "StepwiseError",
    "parse_error",
    "validation_error",
    "adapter_error",
    "timeout_error",
    "cancellation_error",
    "composition_error",
    # Execution
    "CancellationToken",
    "ExecutionContext",
    "RetryPolicy",
    "Step",
    "fan_out",
]
