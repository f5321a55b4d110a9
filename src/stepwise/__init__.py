"""
Stepwise

Composable agent capabilities: every capability is available as an immediate
async call returning a Result and as a Step that can be chained, retried,
bounded by a timeout or run in parallel before it is executed.

Usage:
    from stepwise import AgentFacade, Capabilities

    facade = AgentFacade(Capabilities.with_defaults())
    result = await facade.run_pipeline("ask('capital of France') -> remember('fact1')")
    if result.is_success:
        print(result.value)
"""

from stepwise.core import (
    CancellationToken,
    ErrorKind,
    ExecutionContext,
    Failure,
    Result,
    RetryPolicy,
    Step,
    StepError,
    StepwiseError,
    Success,
    fan_out,
)
from stepwise.facade import AgentFacade, Capabilities
from stepwise.orchestrator import Orchestrator, OrchestrationOutcome, Phase, Plan
from stepwise.pipeline import PipelineSpec, compile, describe, to_step

__version__ = "0.4.0"

__all__ = [
    "AgentFacade",
    "Capabilities",
    "CancellationToken",
    "ErrorKind",
    "ExecutionContext",
    "Failure",
    "Result",
    "RetryPolicy",
    "Step",
    "StepError",
    "StepwiseError",
    "Success",
    "fan_out",
    "Orchestrator",
    "OrchestrationOutcome",
    "Phase",
    "Plan",
    "PipelineSpec",
    "compile",
    "describe",
    "to_step",
]
