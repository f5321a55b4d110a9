"""
Stepwise Orchestrator - Data Models
Purpose: Plan, per-run state and outcome of a plan-then-execute run

State values are frozen; every phase change produces a new copy through
``stepwise.orchestrator.transitions.transition``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from stepwise.core.errors import StepError
from stepwise.core.result import Failure, Result, Success
from stepwise.pipeline.models import Invocation, PipelineSpec, Stage

# ============================================================================
# ENUMS
# ============================================================================


class Phase(str, Enum):
    """Orchestration phases"""

    PLANNING = "planning"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETED, Phase.FAILED)


class Aggregation(str, Enum):
    """How entry outputs become the run's single value"""

    LAST = "last"
    JOIN = "join"


# ============================================================================
# PLAN
# ============================================================================


class PlanEntry(BaseModel):
    """One planned capability invocation"""

    index: int = Field(..., ge=1, description="1-based position in the plan")
    invocation: Invocation

    model_config = ConfigDict(frozen=True)

    @property
    def capability(self) -> str:
        return self.invocation.capability

    def render(self) -> str:
        return self.invocation.render()


class Plan(BaseModel):
    """Ordered capability invocations resolved for a goal"""

    goal: str = ""
    entries: Tuple[PlanEntry, ...] = ()
    aggregation: Aggregation = Aggregation.LAST

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_spec(
        cls,
        spec: PipelineSpec,
        goal: str = "",
        aggregation: Aggregation = Aggregation.LAST,
    ) -> Plan:
        entries = tuple(
            PlanEntry(index=index, invocation=invocation) for index, invocation in spec.invocations()
        )
        return cls(goal=goal, entries=entries, aggregation=aggregation)

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def get_entry(self, index: int) -> Optional[PlanEntry]:
        for entry in self.entries:
            if entry.index == index:
                return entry
        return None

    def to_spec(self) -> PipelineSpec:
        """One sequential stage per entry"""
        return PipelineSpec(
            stages=tuple(Stage(invocations=(entry.invocation,)) for entry in self.entries)
        )

    def render(self) -> str:
        """Pipeline description for this plan"""
        return " -> ".join(entry.render() for entry in self.entries)


# ============================================================================
# STATE
# ============================================================================


class EntryOutput(BaseModel):
    """Output recorded for a completed plan entry"""

    index: int
    capability: str
    output: str

    model_config = ConfigDict(frozen=True)


class OrchestrationState(BaseModel):
    """State of a single orchestration run"""

    phase: Phase = Phase.PLANNING
    goal: str = ""
    plan: Optional[Plan] = None
    outputs: Tuple[EntryOutput, ...] = ()
    failed_index: Optional[int] = None
    error: Optional[StepError] = None
    result: Optional[str] = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def partial_output(self) -> str:
        """Outputs of completed entries so far, one per line"""
        return "\n".join(entry.output for entry in self.outputs)

    @property
    def completed_count(self) -> int:
        return len(self.outputs)

    def with_output(self, index: int, capability: str, output: str) -> OrchestrationState:
        recorded = EntryOutput(index=index, capability=capability, output=output)
        return self.model_copy(update={"outputs": self.outputs + (recorded,)})


# ============================================================================
# OUTCOME
# ============================================================================


class OrchestrationOutcome(BaseModel):
    """Final state of a run plus its result"""

    state: OrchestrationState
    history: Tuple[Phase, ...] = ()
    duration_ms: float = 0.0

    model_config = ConfigDict(frozen=True)

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def succeeded(self) -> bool:
        return self.state.phase == Phase.COMPLETED

    def to_result(self) -> Result[str, StepError]:
        if self.succeeded:
            return Success(self.state.result or "")
        return Failure(self.state.error)
